"""
planner.py

Responsibility: expand one canonical source URL into the ordered list of
candidates a fetcher should try.

Host handling:
- SourceForge redirector (prdownloads): one candidate per configured mirror.
- GNOME sources: the new version's major.minor is inserted as a directory.
- Archive hosts (CPAN, PEAR): scheme/host normalized to the canonical mirror
  and the extension switched to the one the host actually publishes; the
  candidate is then flagged as needing re-encoding after download.
- Anything else: the URL as-is.

This module performs no I/O.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Sequence

SOURCEFORGE_REDIRECTOR = "prdownloads.sourceforge.net"
GNOME_SOURCES_PATTERN = re.compile(r"ftp\.gnome\.org/pub/GNOME/sources/")

# Longest first, so ".tar.bz2" wins over ".bz2".
ARCHIVE_EXTENSIONS = (".tar.bz2", ".tar.gz", ".tar.xz", ".tar.lzma", ".tgz", ".tbz2", ".zip", ".bz2", ".gz")


@dataclass(frozen=True)
class ArchiveHost:
    """A host that only publishes one archive format."""

    pattern: str
    template: str
    extension: str


DEFAULT_ARCHIVE_HOSTS: tuple[ArchiveHost, ...] = (
    ArchiveHost(r"^(?:ftp|https?)://(?:ftp|www)\.(?:cpan|perl)\.org/(?:pub/(?:CPAN|perl/CPAN)/)?(.*)$", r"http://www.cpan.org/\1", ".tar.gz"),
    ArchiveHost(r"^https?://download\.pear\.php\.net/(.*)$", r"http://download.pear.php.net/\1", ".tgz"),
)
DEFAULT_SOURCEFORGE_MIRRORS: tuple[str, ...] = ("ovh", "mesh", "switch")
DEFAULT_SOURCEFORGE_MIRROR_HOST = "{mirror}.dl.sourceforge.net/sourceforge"


@dataclass(frozen=True)
class FetchPlanStep:
    url: str
    reencode_required: bool = False


@dataclass(frozen=True)
class FetchPlan:
    """All candidates for one logical source, in preference order."""

    source: str
    steps: tuple[FetchPlanStep, ...] = field(default_factory=tuple)

    @property
    def urls(self) -> list[str]:
        return [s.url for s in self.steps]


def split_extension(filename: str) -> tuple[str, str]:
    for ext in ARCHIVE_EXTENSIONS:
        if filename.endswith(ext):
            return filename[: -len(ext)], ext
    return filename, ""


def major_minor(version: str) -> str:
    parts = version.split(".")
    return ".".join(parts[:2])


def _insert_version_dir(url: str, version: str) -> str:
    head, _sep, filename = url.rpartition("/")
    return f"{head}/{major_minor(version)}/{filename}"


def _normalize_archive_host(url: str, host: ArchiveHost) -> FetchPlanStep | None:
    new_url, count = re.subn(host.pattern, host.template, url, count=1)
    if not count:
        return None
    base, ext = split_extension(new_url)
    if ext and ext != host.extension:
        return FetchPlanStep(url=base + host.extension, reencode_required=True)
    return FetchPlanStep(url=new_url)


class FallbackPlanner:
    def __init__(
        self,
        *,
        sourceforge_mirrors: Sequence[str] = DEFAULT_SOURCEFORGE_MIRRORS,
        sourceforge_mirror_host: str = DEFAULT_SOURCEFORGE_MIRROR_HOST,
        archive_hosts: Sequence[ArchiveHost] = DEFAULT_ARCHIVE_HOSTS,
    ) -> None:
        self._mirrors = tuple(sourceforge_mirrors)
        self._mirror_host = sourceforge_mirror_host
        self._archive_hosts = tuple(archive_hosts)

    def plan(self, url: str, new_version: str | None = None, old_version: str | None = None) -> FetchPlan:
        """
        Build the fetch plan for `url`.

        When both versions are given, every literal occurrence of `old_version`
        in the URL is replaced by `new_version` first.
        """
        source = url
        if new_version and old_version and old_version != new_version:
            url = url.replace(old_version, new_version)

        if SOURCEFORGE_REDIRECTOR in url:
            steps = tuple(
                FetchPlanStep(url=url.replace(SOURCEFORGE_REDIRECTOR, self._mirror_host.format(mirror=mirror), 1))
                for mirror in self._mirrors
            )
            return FetchPlan(source=source, steps=steps)

        if GNOME_SOURCES_PATTERN.search(url) and new_version:
            return FetchPlan(source=source, steps=(FetchPlanStep(url=_insert_version_dir(url, new_version)),))

        for host in self._archive_hosts:
            step = _normalize_archive_host(url, host)
            if step is not None:
                return FetchPlan(source=source, steps=(step,))

        return FetchPlan(source=source, steps=(FetchPlanStep(url=url),))
