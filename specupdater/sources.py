"""
sources.py

Responsibility: find the remote sources of a package and work out which ones a
version change adds or drops.

When a header declares no remote source at all, a single one is derived from
the homepage (through the rewrite rules) and the first declared file name.
"""

from __future__ import annotations

import logging
import posixpath
import re
from dataclasses import dataclass, field
from typing import Iterable, Sequence

from specupdater.errors import UnresolvableSourceURL
from specupdater.header import HeaderSnapshot
from specupdater.planner import FallbackPlanner, FetchPlan
from specupdater.rules import DEFAULT_REWRITE_RULES, RewriteRule, rewrite_homepage

logger = logging.getLogger(__name__)

REMOTE_SOURCE_RE = re.compile(r"(?:ftp|svns?|svn\+ssh|https?)://\S+")


@dataclass(frozen=True)
class SourceDelta:
    added: tuple[FetchPlan, ...] = field(default_factory=tuple)
    removed: tuple[str, ...] = field(default_factory=tuple)


def is_remote(source: str) -> bool:
    return REMOTE_SOURCE_RE.search(source) is not None


def basename(source: str) -> str:
    return posixpath.basename(source.split("?", 1)[0].rstrip("/"))


def _ordered_difference(left: Sequence[str], right: Iterable[str]) -> list[str]:
    exclude = set(right)
    seen: set[str] = set()
    out: list[str] = []
    for item in left:
        if item not in exclude and item not in seen:
            seen.add(item)
            out.append(item)
    return out


class SourceResolver:
    def __init__(
        self,
        *,
        rewrite_rules: Sequence[RewriteRule] = DEFAULT_REWRITE_RULES,
        planner: FallbackPlanner | None = None,
    ) -> None:
        self._rules = tuple(rewrite_rules)
        self._planner = planner or FallbackPlanner()

    def remote_sources(self, header: HeaderSnapshot) -> list[str]:
        sources = [s for s in header.sources if is_remote(s)]
        if sources:
            return sources

        logger.info("No remote sources were found, fall back on URL tag ...")
        if not header.sources:
            raise UnresolvableSourceURL(f"{header.name}: no source declared")
        if not header.url:
            raise UnresolvableSourceURL(f"{header.name}: no remote source and no URL tag")
        filename = basename(header.sources[0])
        if not filename:
            raise UnresolvableSourceURL(f"{header.name}: cannot extract a file name from {header.sources[0]!r}")

        base = rewrite_homepage(header.url, self._rules)
        return [f"{base.rstrip('/')}/{filename}"]

    def plan(self, source: str, new_version: str | None = None, old_version: str | None = None) -> FetchPlan:
        return self._planner.plan(source, new_version=new_version, old_version=old_version)

    def reconcile(
        self,
        old: HeaderSnapshot,
        new: HeaderSnapshot,
        new_version: str | None = None,
        old_version: str | None = None,
    ) -> SourceDelta:
        """
        Compare the sources before and after a spec update.

        `added` holds one fetch plan per new source, `removed` the sources no
        longer referenced. With `old_version`, each literal occurrence of it in
        an added source is replaced by the new version before planning.
        """
        before = self.remote_sources(old)
        after = self.remote_sources(new)
        added = _ordered_difference(after, before)
        removed = _ordered_difference(before, after)
        version = new_version or new.version
        return SourceDelta(
            added=tuple(self.plan(s, new_version=version, old_version=old_version) for s in added),
            removed=tuple(removed),
        )
