from pathlib import Path

import pytest

from specupdater.errors import DownloadFailure
from specupdater.vcs import SvnExporter, is_svn, parse_reference


def test_parse_reference() -> None:
    ref = parse_reference("svn://svn.example.org/trunk/foo/foo-1.0svnrev1234.tar.bz2")
    assert ref.repository == "http://svn.example.org/trunk/foo"
    assert ref.revision == "1234"
    assert ref.directory == "foo-1.0svnrev1234"


def test_secure_scheme() -> None:
    assert parse_reference("svns://svn.example.org/foo/foo-rev7.tar.bz2").repository == "https://svn.example.org/foo"


def test_bad_reference() -> None:
    with pytest.raises(DownloadFailure):
        parse_reference("svn://svn.example.org/foo/foo-1.0.tar.bz2")


def test_is_svn() -> None:
    assert is_svn("svn+ssh://host/x")
    assert not is_svn("http://host/x")


def test_export(runner, tmp_path: Path) -> None:
    dest = SvnExporter(runner).export("svn://svn.example.org/foo/foo-1.0svnrev12.tar.bz2", tmp_path)
    assert dest == tmp_path / "foo-1.0svnrev12.tar.bz2"
    svn, tar = runner.calls
    assert svn[:5] == ["svn", "export", "--quiet", "-r", "12"]
    assert svn[5] == "http://svn.example.org/foo"
    assert svn[6].endswith("foo-1.0svnrev12")
    assert tar[:3] == ["tar", "-cjf", str(dest)]
    assert tar[-1] == "foo-1.0svnrev12"


def test_export_failure(runner, tmp_path: Path) -> None:
    runner.failing.add("svn")
    with pytest.raises(DownloadFailure):
        SvnExporter(runner).export("svn://svn.example.org/foo/foo-1.0svnrev12.tar.bz2", tmp_path)
