import datetime as dt
import os
from dataclasses import replace
from pathlib import Path

import pytest

from specupdater.config import Settings
from specupdater.errors import BuildFailure, ConfigError, DownloadFailure, UpdaterError
from specupdater.fetcher import FetchResult
from specupdater.header import HeaderSnapshot, parse_preamble
from specupdater.updater import Updater, find_source_package


class FakeParser:
    def parse(self, spec_path):
        h = parse_preamble(Path(spec_path).read_text())
        return replace(h, sources=tuple(s.replace("%{version}", h.version) for s in h.sources))


class FakeFetcher:
    def __init__(self, reencode: bool = False, fail: bool = False) -> None:
        self.plans = []
        self.reencode = reencode
        self.fail = fail

    def fetch_plan(self, plan, dest_dir):
        self.plans.append(plan)
        if self.fail:
            raise DownloadFailure(plan.source, plan.urls)
        url = plan.steps[0].url
        name = url.rsplit("/", 1)[1]
        if self.reencode:
            name = name.replace(".tar.bz2", ".tar.gz")
        path = Path(dest_dir) / name
        path.write_bytes(b"archive")
        return FetchResult(path=path, url=url, reencode_required=self.reencode)


def _settings(tmp_path: Path, **kwargs) -> Settings:
    kwargs.setdefault("packager", "Jane <jane@example.org>")
    return Settings(topdir=str(tmp_path / "top"), **kwargs)


def _fake_rpmbuild(top: Path):
    def handler(args):
        (top / "RPMS" / "x86_64").mkdir(parents=True, exist_ok=True)
        (top / "RPMS" / "x86_64" / "foo-2.0-1.x86_64.rpm").write_bytes(b"")
        (top / "SRPMS" / "foo-2.0-1.src.rpm").write_bytes(b"")
        return ""
    return handler


def _updater(tmp_path: Path, runner, fetcher=None, **kwargs) -> Updater:
    return Updater(
        _settings(tmp_path, **kwargs.pop("settings", {})),
        runner=runner,
        header_parser=FakeParser(),
        fetcher=fetcher or FakeFetcher(),
        today=lambda: dt.date(2026, 10, 17),
        **kwargs,
    )


def test_build_new_version(tmp_path: Path, runner, spec_file: Path) -> None:
    top = (tmp_path / "top").resolve()
    runner.handlers["rpmbuild"] = _fake_rpmbuild(top)
    old_sources, new_sources = [], []
    fetcher = FakeFetcher()
    u = _updater(
        tmp_path,
        runner,
        fetcher,
        settings={"build_requires_command": ("sudo", "dnf", "install", "-y")},
        old_source_callback=old_sources.append,
        new_source_callback=new_sources.append,
    )

    r = u.build_from_spec(spec_file, "2.0")

    assert (r.final_version, r.final_release) == ("2.0", "%mkrel 1")
    text = spec_file.read_text()
    assert "Version: 2.0\n" in text
    assert "Release: %mkrel 1\n" in text
    assert "* Sat Oct 17 2026 Jane <jane@example.org> 2.0-%mkrel 1\n- New version 2.0\n" in text

    assert [p.source for p in fetcher.plans] == ["http://download.example.org/foo-2.0.tar.bz2"]
    assert r.added_sources == (top / "SOURCES" / "foo-2.0.tar.bz2",)
    assert [p.source for p in r.added_plans] == ["http://download.example.org/foo-2.0.tar.bz2"]
    assert r.added_plans[0].steps[0].url == "http://download.example.org/foo-2.0.tar.bz2"
    assert r.removed_sources == ("http://download.example.org/foo-1.0.tar.bz2",)
    assert old_sources == [top.resolve() / "SOURCES" / "foo-1.0.tar.bz2"]
    assert new_sources == list(r.added_sources)

    assert runner.calls[0] == ["sudo", "dnf", "install", "-y", "gcc", "zlib-devel >= 1.2"]
    rpmbuild = runner.calls[1]
    assert rpmbuild[:5] == ["rpmbuild", "--define", f"_topdir {top.resolve()}", "--define", f"_sourcedir {top.resolve() / 'SOURCES'}"]
    assert rpmbuild[5] == "-ba"
    assert rpmbuild[-1] == str(spec_file)
    assert [p.name for p in r.built_packages] == ["foo-2.0-1.x86_64.rpm", "foo-2.0-1.src.rpm"]


def test_rebuild_skips_download(tmp_path: Path, runner, spec_file: Path) -> None:
    fetcher = FakeFetcher()
    u = _updater(tmp_path, runner, fetcher, settings={"build_source": False, "build_binaries": False})
    r = u.build_from_spec(spec_file)
    assert (r.final_version, r.final_release) == ("1.0", "%mkrel 3")
    assert fetcher.plans == []
    assert runner.calls == []
    assert "- Rebuild\n" in spec_file.read_text()


def test_reencode(tmp_path: Path, runner, spec_file: Path) -> None:
    u = _updater(tmp_path, runner, FakeFetcher(reencode=True), settings={"build_source": False, "build_binaries": False})
    r = u.build_from_spec(spec_file, "2.0")
    sources = (tmp_path / "top" / "SOURCES").resolve()
    assert runner.calls == [["bzme", "-f", "-F", str(sources / "foo-2.0.tar.gz")]]
    assert r.added_sources == (sources / "foo-2.0.tar.bz2",)


def test_reencode_renames_to_bz2(tmp_path: Path, runner) -> None:
    u = _updater(tmp_path, runner)
    src = tmp_path / "foo-2.0.tar.gz"
    assert u.reencode(src) == tmp_path / "foo-2.0.tar.bz2"
    assert runner.calls == [["bzme", "-f", "-F", str(src)]]


def test_download_failure_after_rewrite(tmp_path: Path, runner, spec_file: Path) -> None:
    u = _updater(tmp_path, runner, FakeFetcher(fail=True))
    with pytest.raises(DownloadFailure):
        u.build_from_spec(spec_file, "2.0")
    assert "rpmbuild" not in runner.programs()


def test_build_failure(tmp_path: Path, runner, spec_file: Path) -> None:
    runner.failing.add("rpmbuild")
    u = _updater(tmp_path, runner, settings={"download": False})
    with pytest.raises(BuildFailure):
        u.build_from_spec(spec_file, "2.0")


def test_build_modes(tmp_path: Path, runner, spec_file: Path) -> None:
    u = _updater(tmp_path, runner, settings={"build_binaries": False, "build_options": ("--with", "docs")})
    header = u.parse_header(spec_file)
    u.build(spec_file, header)
    cmd = runner.calls[-1]
    assert cmd[5:] == ["-bs", "--with", "docs", "--nodeps", str(spec_file)]
    assert (tmp_path / "top" / "SRPMS").is_dir()


def test_build_results_callback(tmp_path: Path, runner, spec_file: Path) -> None:
    runner.handlers["rpmbuild"] = _fake_rpmbuild(tmp_path / "top")
    results = []
    requires = []
    u = _updater(tmp_path, runner, build_results_callback=results.append, build_requires_callback=requires.append)
    u.build(spec_file, u.parse_header(spec_file))
    assert requires == [["gcc", "zlib-devel >= 1.2"]]
    assert len(results) == 1 and len(results[0]) == 2


def test_build_reports_overwritten_package(tmp_path: Path, runner, spec_file: Path) -> None:
    top = (tmp_path / "top").resolve()
    existing = top / "SRPMS" / "foo-1.0-3.src.rpm"
    existing.parent.mkdir(parents=True)
    existing.write_bytes(b"old")
    os.utime(existing, ns=(0, 0))

    def rpmbuild(args):
        existing.write_bytes(b"new")
        return ""

    runner.handlers["rpmbuild"] = rpmbuild
    results = []
    u = _updater(tmp_path, runner, settings={"build_binaries": False}, build_results_callback=results.append)
    built = u.build(spec_file, u.parse_header(spec_file))
    assert built == [existing]
    assert results == [[str(existing)]]


def test_build_ignores_untouched_packages(tmp_path: Path, runner, spec_file: Path) -> None:
    top = (tmp_path / "top").resolve()
    (top / "SRPMS").mkdir(parents=True)
    (top / "SRPMS" / "foo-0.9-1.src.rpm").write_bytes(b"")
    runner.handlers["rpmbuild"] = _fake_rpmbuild(top)
    u = _updater(tmp_path, runner)
    built = u.build(spec_file, u.parse_header(spec_file))
    assert [p.name for p in built] == ["foo-2.0-1.x86_64.rpm", "foo-2.0-1.src.rpm"]


def test_plan_sources_substitutes_old_version(tmp_path: Path, runner) -> None:
    old = HeaderSnapshot(name="foo", version="1.0", release="1", sources=("http://example.org/1.0/foo-1.0.tar.bz2",))
    new = replace(old, version="2.0", sources=("http://example.org/1.0/foo-2.0.tar.bz2",))
    u = _updater(tmp_path, runner)

    delta = u.plan_sources(old, new, "2.0", old_version="1.0")
    assert delta.added[0].urls == ["http://example.org/2.0/foo-2.0.tar.bz2"]
    assert delta.removed == ("http://example.org/1.0/foo-1.0.tar.bz2",)

    assert u.plan_sources(old, new, "2.0").added[0].urls == ["http://example.org/1.0/foo-2.0.tar.bz2"]


def test_line_filter(tmp_path: Path, runner, spec_file: Path) -> None:
    u = _updater(
        tmp_path,
        runner,
        settings={"update_revision": False, "update_changelog": False, "build_source": False, "build_binaries": False},
        line_filter=lambda line: line.replace("Foo.", "Bar."),
    )
    u.build_from_spec(spec_file)
    assert "\nBar.\n" in spec_file.read_text()


def test_build_from_source(tmp_path: Path, runner, spec_file: Path) -> None:
    top = tmp_path / "top"

    def install(args):
        (top / "SPECS").mkdir(parents=True, exist_ok=True)
        (top / "SPECS" / "foo.spec").write_text(spec_file.read_text())
        return ""

    runner.handlers["rpm"] = install
    u = _updater(tmp_path, runner, settings={"download": False, "build_source": False, "build_binaries": False})
    r = u.build_from_source(tmp_path / "foo-1.0-2.src.rpm")
    assert r.final_release == "%mkrel 3"
    assert runner.calls[0][0] == "rpm" and runner.calls[0][-2:] == ["-i", str(tmp_path / "foo-1.0-2.src.rpm")]


def test_build_from_source_bad_name(tmp_path: Path, runner) -> None:
    with pytest.raises(UpdaterError):
        _updater(tmp_path, runner).build_from_source(tmp_path / "foo.rpm")


def test_find_source_package(tmp_path: Path) -> None:
    for name in ("foo-devel-1.0-1.src.rpm", "foo-1.0-1.src.rpm", "foobar-2-1.src.rpm"):
        (tmp_path / name).write_bytes(b"")
    assert find_source_package(tmp_path, "foo") == tmp_path / "foo-1.0-1.src.rpm"
    assert find_source_package(tmp_path, "baz") is None


def test_build_from_repository_missing(tmp_path: Path, runner) -> None:
    u = _updater(tmp_path, runner, settings={"srpm_dirs": (str(tmp_path),)})
    with pytest.raises(UpdaterError):
        u.build_from_repository("foo", "2.0")


def test_settings_without_packager_are_rejected(tmp_path: Path, runner) -> None:
    with pytest.raises(ConfigError):
        Updater(Settings(topdir=str(tmp_path / "top")), runner=runner, header_parser=FakeParser(), fetcher=FakeFetcher())
