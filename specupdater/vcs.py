"""
vcs.py

Responsibility: produce a source archive from a Subversion reference.

A reference such as

    svn://svn.example.org/trunk/foo/foo-1.0svnrev1234.tar.bz2

names the repository (the URL without the file name, reached over http or
https) and the revision (the digits after `rev`). The tree is exported at that
revision and packed as the named archive.
"""

from __future__ import annotations

import re
import tempfile
from dataclasses import dataclass
from pathlib import Path

from specupdater.errors import DownloadFailure, ProcessFailure
from specupdater.process import ProcessRunner

_ARCHIVE_RE = re.compile(r"^(?P<name>.*)-(?P<prefix>[^-]*rev)(?P<revision>\d+)\.tar\.bz2$")
_SCHEMES = {"svn": "http", "svns": "https", "svn+ssh": "svn+ssh"}


@dataclass(frozen=True)
class SvnReference:
    repository: str
    revision: str
    archive: str

    @property
    def directory(self) -> str:
        return self.archive[: -len(".tar.bz2")]


def is_svn(url: str) -> bool:
    return url.split("://", 1)[0] in _SCHEMES


def parse_reference(url: str) -> SvnReference:
    scheme, sep, rest = url.partition("://")
    if not sep or scheme not in _SCHEMES:
        raise DownloadFailure(url)
    repository, _slash, archive = rest.rpartition("/")
    m = _ARCHIVE_RE.match(archive)
    if m is None or not repository:
        raise DownloadFailure(url)
    return SvnReference(
        repository=f"{_SCHEMES[scheme]}://{repository}",
        revision=m.group("revision"),
        archive=archive,
    )


class SvnExporter:
    def __init__(self, runner: ProcessRunner | None = None) -> None:
        self._runner = runner or ProcessRunner()

    def export(self, url: str, dest_dir: str | Path) -> Path:
        ref = parse_reference(url)
        dest = Path(dest_dir) / ref.archive
        with tempfile.TemporaryDirectory(prefix="specupdater-svn-") as tmp:
            try:
                self._runner.run(["svn", "export", "--quiet", "-r", ref.revision, ref.repository, str(Path(tmp) / ref.directory)])
                self._runner.run(["tar", "-cjf", str(dest), "-C", tmp, ref.directory])
            except ProcessFailure as e:
                raise DownloadFailure(url) from e
        return dest
