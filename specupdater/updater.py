"""
updater.py

Responsibility: drive a complete package update.

High-level flow (`build_from_spec`):
1) Parse the spec header
2) Rewrite version / release / changelog (written back only on success)
3) For a new version: compare sources before/after, download the added ones
   (mirrors and alternate formats in order), re-encode where needed
4) Install build requirements (callback or command)
5) Build with rpmbuild and hand the produced packages to the results hook

Each concern lives in its own module; this one only sequences them.
"""

from __future__ import annotations

import datetime as dt
import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Sequence

from specupdater.config import Settings
from specupdater.errors import BuildFailure, ProcessFailure, UpdaterError
from specupdater.fetcher import REENCODED_EXTENSION, SourceFetcher
from specupdater.header import HeaderParser, HeaderSnapshot, RpmspecHeaderParser
from specupdater.planner import FallbackPlanner, FetchPlan, split_extension
from specupdater.process import ProcessRunner
from specupdater.rewriter import LineFilter, RewriteResult, SpecRewriter, rewrite_file
from specupdater.sources import SourceDelta, SourceResolver, basename
from specupdater.vcs import SvnExporter, is_svn

logger = logging.getLogger(__name__)

PathsCallback = Callable[[list[str]], None]
PathCallback = Callable[[Path], None]

_SRPM_RE = re.compile(r"^(?P<name>.+)-[^-]+-[^-]+\.src\.rpm$")


@dataclass(frozen=True)
class UpdateResult:
    final_version: str
    final_release: str
    added_sources: tuple[Path, ...] = field(default_factory=tuple)
    added_plans: tuple[FetchPlan, ...] = field(default_factory=tuple)
    removed_sources: tuple[str, ...] = field(default_factory=tuple)
    built_packages: tuple[Path, ...] = field(default_factory=tuple)


class Updater:
    def __init__(
        self,
        settings: Settings,
        *,
        runner: ProcessRunner | None = None,
        header_parser: HeaderParser | None = None,
        fetcher: SourceFetcher | None = None,
        exporter: SvnExporter | None = None,
        line_filter: LineFilter | None = None,
        build_requires_callback: PathsCallback | None = None,
        build_results_callback: PathsCallback | None = None,
        new_source_callback: PathCallback | None = None,
        old_source_callback: PathCallback | None = None,
        today: Callable[[], dt.date] = dt.date.today,
    ) -> None:
        self.settings = settings
        self._runner = runner or ProcessRunner()
        self._parser = header_parser or RpmspecHeaderParser(
            self._runner,
            defines={"_topdir": str(settings.topdir_path), "_sourcedir": str(settings.sourcedir_path)},
        )
        self._fetcher = fetcher or SourceFetcher(alternate_extensions=settings.alternate_extensions, timeout=settings.timeout)
        self._exporter = exporter or SvnExporter(self._runner)
        self._line_filter = line_filter
        self._build_requires_callback = build_requires_callback
        self._build_results_callback = build_results_callback
        self._new_source_callback = new_source_callback
        self._old_source_callback = old_source_callback

        self.rewriter = SpecRewriter(
            packager=settings.packager,
            release_suffix=settings.release_suffix,
            changelog_messages=settings.changelog_messages,
            update_revision=settings.update_revision,
            update_changelog=settings.update_changelog,
            line_filter=line_filter,
            today=today,
        )
        self.resolver = SourceResolver(
            rewrite_rules=settings.rewrite_rules,
            planner=FallbackPlanner(
                sourceforge_mirrors=settings.sourceforge_mirrors,
                sourceforge_mirror_host=settings.sourceforge_mirror_host,
                archive_hosts=settings.archive_hosts,
            ),
        )

    def parse_header(self, spec_path: str | Path) -> HeaderSnapshot:
        return self._parser.parse(spec_path)

    def update_spec(
        self,
        spec_path: str | Path,
        header: HeaderSnapshot,
        new_version: str | None = None,
        release: str | None = None,
        messages: Sequence[str] | None = None,
    ) -> RewriteResult:
        return rewrite_file(
            spec_path,
            self.rewriter,
            version=header.version,
            release=header.release,
            new_version=new_version,
            new_release=release,
            epoch=header.epoch,
            name=header.name,
            messages=messages,
        )

    def plan_sources(
        self,
        old_header: HeaderSnapshot,
        new_header: HeaderSnapshot,
        new_version: str | None = None,
        old_version: str | None = None,
    ) -> SourceDelta:
        """
        Sources added and removed between two headers of the same spec.

        `old_version` is only meant for URLs that still carry the old version
        literally; headers parsed after the rewrite already carry the new one.
        """
        return self.resolver.reconcile(old_header, new_header, new_version, old_version=old_version)

    def fetch_sources(self, delta: SourceDelta) -> list[Path]:
        sourcedir = self.settings.sourcedir_path
        sourcedir.mkdir(parents=True, exist_ok=True)
        fetched: list[Path] = []
        for plan in delta.added:
            if is_svn(plan.source):
                fetched.append(self._exporter.export(plan.source, sourcedir))
                continue
            result = self._fetcher.fetch_plan(plan, sourcedir)
            path = result.path
            if result.reencode_required:
                path = self.reencode(path)
            fetched.append(path)
        return fetched

    def reencode(self, path: Path) -> Path:
        base, _ext = split_extension(path.name)
        target = path.with_name(base + REENCODED_EXTENSION)
        if path == target:
            return path
        logger.info("re-encoding %s", path.name)
        self._runner.run([*self.settings.reencode_command, str(path)], cwd=path.parent)
        return target

    def build_from_spec(
        self,
        spec_path: str | Path,
        new_version: str | None = None,
        release: str | None = None,
        messages: Sequence[str] | None = None,
    ) -> UpdateResult:
        s = self.settings
        header = self.parse_header(spec_path)
        if new_version:
            logger.info("building %s %s", header.name, new_version)
        else:
            logger.info("rebuilding %s", header.name)

        if s.update_revision or s.update_changelog or self._line_filter is not None:
            result = self.update_spec(spec_path, header, new_version, release, messages)
            final_version, final_release = result.version, result.release
        else:
            final_version, final_release = header.version, header.release

        added: list[Path] = []
        plans: tuple[FetchPlan, ...] = ()
        removed: tuple[str, ...] = ()
        current = header
        if new_version and s.download:
            current = self.parse_header(spec_path)
            delta = self.plan_sources(header, current, new_version)
            added = self.fetch_sources(delta)
            plans = delta.added
            removed = delta.removed

            if self._old_source_callback is not None:
                for old_source in removed:
                    self._old_source_callback(s.sourcedir_path / basename(old_source))
            if self._new_source_callback is not None:
                for path in added:
                    self._new_source_callback(path)

        built: list[Path] = []
        if s.build_source or s.build_binaries:
            built = self.build(spec_path, current)

        return UpdateResult(
            final_version=final_version,
            final_release=final_release,
            added_sources=tuple(added),
            added_plans=plans,
            removed_sources=removed,
            built_packages=tuple(built),
        )

    def _rpm_defines(self) -> list[str]:
        return [
            "--define", f"_topdir {self.settings.topdir_path}",
            "--define", f"_sourcedir {self.settings.sourcedir_path}",
        ]

    def _built_files(self) -> dict[Path, int]:
        top = self.settings.topdir_path
        return {
            p: p.stat().st_mtime_ns
            for d in ("RPMS", "SRPMS")
            if (top / d).is_dir()
            for p in (top / d).rglob("*.rpm")
        }

    def install_build_requires(self, header: HeaderSnapshot) -> None:
        requires = list(header.build_requires)
        if not requires:
            return
        logger.info("managing build dependencies : %s", " ".join(requires))
        if self.settings.build_requires_command:
            self._runner.run([*self.settings.build_requires_command, *requires])
        elif self._build_requires_callback is not None:
            self._build_requires_callback(requires)

    def build(self, spec_path: str | Path, header: HeaderSnapshot) -> list[Path]:
        s = self.settings
        self.install_build_requires(header)

        dirs = ["BUILD"]
        if s.build_source and s.build_binaries:
            mode, extra = "-ba", []
            dirs += ["RPMS", "SRPMS"]
        elif s.build_binaries:
            mode, extra = "-bb", []
            dirs += ["RPMS"]
        else:
            mode, extra = "-bs", ["--nodeps"]
            dirs += ["SRPMS"]
        for d in dirs:
            (s.topdir_path / d).mkdir(parents=True, exist_ok=True)
        s.sourcedir_path.mkdir(parents=True, exist_ok=True)

        before = self._built_files()
        cmd = ["rpmbuild", *self._rpm_defines(), mode, *s.build_options, *extra, str(spec_path)]
        try:
            self._runner.run(cmd)
        except ProcessFailure as e:
            raise BuildFailure(f"Build error for {header.name}: {e}") from e
        # new packages, and existing ones rpmbuild wrote over
        results = sorted(p for p, mtime in self._built_files().items() if before.get(p) != mtime)

        if results:
            names = [str(p) for p in results]
            logger.info("managing build results : %s", " ".join(names))
            if s.build_results_command:
                self._runner.run([*s.build_results_command, *names])
            elif self._build_results_callback is not None:
                self._build_results_callback(names)
        return results

    def build_from_source(self, srpm: str | Path, new_version: str | None = None, **kwargs) -> UpdateResult:
        path = Path(srpm)
        m = _SRPM_RE.match(path.name)
        if m is None:
            raise UpdaterError(f"Not a source package file name: {path.name}")
        try:
            self._runner.run(["rpm", *self._rpm_defines(), "-i", str(path)])
        except ProcessFailure as e:
            raise UpdaterError(f"Unable to install source package {path}, aborting") from e
        spec_path = self.settings.topdir_path / "SPECS" / f"{m.group('name')}.spec"
        if not spec_path.is_file():
            raise UpdaterError(f"Source package {path} did not provide {spec_path}")
        return self.build_from_spec(spec_path, new_version, **kwargs)

    def build_from_repository(self, name: str, new_version: str | None = None, **kwargs) -> UpdateResult:
        for srpm_dir in self.settings.srpm_dirs:
            srpm = find_source_package(srpm_dir, name)
            if srpm is not None:
                return self.build_from_source(srpm, new_version, **kwargs)
        raise UpdaterError(f"No source available for package {name}, aborting")


def find_source_package(directory: str | Path, name: str) -> Path | None:
    pattern = re.compile(rf"^{re.escape(name)}-[^-]+-[^-]+\.src\.rpm$")
    d = Path(directory).expanduser()
    try:
        entries = sorted(d.iterdir())
    except OSError as e:
        raise UpdaterError(f"Unable to open {d}: {e}") from e
    for entry in entries:
        if pattern.match(entry.name):
            return entry
    return None
