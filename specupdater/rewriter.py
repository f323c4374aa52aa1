"""
rewriter.py

Responsibility: update a spec file for a new version or a rebuild.

Algorithm (one pass over the lines, then the changelog insertion):
1) First version definition -> replaced by the new version (only when one is given).
2) First release definition -> replaced by the explicit release, or the computed one
   (reset to 1 for a new version, incremented otherwise).
3) Every line goes through the optional line filter.
4) A new entry is inserted after `%changelog`, before the first existing entry.

The whole document is rewritten in memory; the file on disk is only replaced
once everything succeeded.
"""

from __future__ import annotations

import datetime as dt
import logging
import os
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Sequence

from specupdater import changelog
from specupdater.directives import scan_release, scan_version, split_line_ending
from specupdater.errors import ConfigError, SpecIOFailure
from specupdater.release import compute_release

logger = logging.getLogger(__name__)

LineFilter = Callable[[str], str]


@dataclass(frozen=True)
class RewriteResult:
    text: str
    version: str
    release: str
    version_updated: bool = False
    release_updated: bool = False
    changelog_updated: bool = False


class SpecRewriter:
    def __init__(
        self,
        *,
        packager: str,
        release_suffix: str | None = None,
        changelog_messages: Sequence[str] = (),
        update_revision: bool = True,
        update_changelog: bool = True,
        line_filter: LineFilter | None = None,
        today: Callable[[], dt.date] = dt.date.today,
    ) -> None:
        if not packager.strip():
            raise ConfigError("A packager identity is required for changelog entries")
        self._packager = packager
        self._release_suffix = release_suffix
        self._messages = tuple(changelog_messages)
        self._update_revision = update_revision
        self._update_changelog = update_changelog
        self._line_filter = line_filter
        self._today = today

    def rewrite(
        self,
        text: str,
        *,
        version: str,
        release: str,
        new_version: str | None = None,
        new_release: str | None = None,
        epoch: str | None = None,
        name: str = "",
        messages: Sequence[str] | None = None,
    ) -> RewriteResult:
        """
        Rewrite `text`, whose current header values are `version`/`release`.

        Missing version or release definitions are not an error: the value is
        simply reported unchanged.
        """
        final_version, final_release = version, release
        version_done = release_done = False
        out: list[str] = []

        for line in text.splitlines(keepends=True):
            if self._update_revision and new_version and not version_done:
                directive = scan_version(line)
                if directive is not None:
                    _body, ending = split_line_ending(line)
                    line = directive.render(new_version) + ending
                    final_version = new_version
                    version_done = True
                    logger.debug("version: %s -> %s", directive.value, new_version)

            if self._update_revision and not release_done:
                directive = scan_release(line)
                if directive is not None:
                    value = compute_release(
                        directive.value,
                        version_bump=bool(new_version),
                        explicit=new_release,
                        suffix=self._release_suffix,
                    )
                    _body, ending = split_line_ending(line)
                    line = directive.render(value) + ending
                    final_release = value
                    release_done = True
                    logger.debug("release: %s -> %s", directive.value, value)

            if self._line_filter is not None:
                line = self._line_filter(line)
            out.append(line)

        new_text = "".join(out)
        changelog_done = False
        if self._update_changelog and any(changelog.is_marker(line) for line in new_text.splitlines()):
            entry = changelog.build_entry(
                date=self._today(),
                packager=self._packager,
                version=final_version,
                release=final_release,
                epoch=epoch,
                new_version=new_version,
                templates=self._messages if messages is None else messages,
                name=name,
            )
            new_text = changelog.add_entry(new_text, entry)
            changelog_done = True
            logger.debug("changelog: %s", entry.title)

        return RewriteResult(
            text=new_text,
            version=final_version,
            release=final_release,
            version_updated=version_done,
            release_updated=release_done,
            changelog_updated=changelog_done,
        )


def read_spec(path: str | Path) -> str:
    try:
        with open(path, encoding="utf-8", newline="") as fh:
            return fh.read()
    except (OSError, UnicodeDecodeError) as e:
        raise SpecIOFailure(f"Unable to read spec file {path}: {e}") from e


def write_spec(path: str | Path, text: str) -> None:
    """Replace `path` with `text` in one step (temporary file + rename)."""
    target = Path(path)
    try:
        fd, tmp_name = tempfile.mkstemp(prefix=f".{target.name}.", dir=str(target.parent))
        try:
            with os.fdopen(fd, "w", encoding="utf-8", newline="") as fh:
                fh.write(text)
            if target.exists():
                os.chmod(tmp_name, target.stat().st_mode & 0o7777)
            os.replace(tmp_name, target)
        except BaseException:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise
    except OSError as e:
        raise SpecIOFailure(f"Unable to write spec file {path}: {e}") from e


def rewrite_file(path: str | Path, rewriter: SpecRewriter, **kwargs) -> RewriteResult:
    result = rewriter.rewrite(read_spec(path), **kwargs)
    write_spec(path, result.text)
    return result
