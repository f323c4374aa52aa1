"""
fetcher.py

Responsibility: download source archives.

This module must be the only place that talks HTTP/FTP. It walks a fetch plan
in order and stops at the first candidate that yields an archive:
- an existing file with the same name in the destination is reused,
- responses whose Content-Type is not an archive (typically an HTML error page)
  are discarded,
- a missing `.tar.bz2` is retried under each alternate extension, the result
  then has to be re-encoded by the caller.
"""

from __future__ import annotations

import logging
import os
import posixpath
import re
import tempfile
import urllib.error
import urllib.request
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Sequence

import requests

from specupdater.errors import DownloadFailure
from specupdater.planner import FetchPlan, FetchPlanStep

logger = logging.getLogger(__name__)

DEFAULT_ALTERNATE_EXTENSIONS: tuple[str, ...] = (".tar.gz", ".tgz", ".zip")
REENCODED_EXTENSION = ".tar.bz2"

_ARCHIVE_TYPE_RE = re.compile(
    r"^application/(?:x-(?:tar|gtar|gz|gzip|bz2|bzip2|xz|compressed-tar|zip-compressed)|gzip|zip|octet-stream)\b"
)


@dataclass(frozen=True)
class FetchResult:
    path: Path
    url: str
    reencode_required: bool = False


def is_archive_type(content_type: str | None) -> bool:
    if not content_type:
        return False
    return _ARCHIVE_TYPE_RE.match(content_type.strip().lower()) is not None


def url_filename(url: str) -> str:
    return posixpath.basename(url.split("?", 1)[0])


def _write_atomically(dest: Path, chunks: Iterable[bytes]) -> None:
    """Write `chunks` to `dest`; nothing is left under that name unless all of them were written."""
    fd, tmp_name = tempfile.mkstemp(prefix=f".{dest.name}.", dir=str(dest.parent))
    try:
        with os.fdopen(fd, "wb") as fh:
            for chunk in chunks:
                fh.write(chunk)
        os.replace(tmp_name, dest)
    except BaseException:
        if os.path.exists(tmp_name):
            os.unlink(tmp_name)
        raise


class SourceFetcher:
    def __init__(
        self,
        *,
        alternate_extensions: Sequence[str] = DEFAULT_ALTERNATE_EXTENSIONS,
        timeout: float = 60.0,
        session: requests.Session | None = None,
        user_agent: str = "specupdater",
    ) -> None:
        self._alternates = tuple(alternate_extensions)
        self._timeout = timeout
        self._session = session or requests.Session()
        self._session.headers.setdefault("User-Agent", user_agent)

    def fetch(self, url: str, dest_dir: str | Path) -> Path | None:
        """Download one URL into dest_dir; None when it is not available as an archive."""
        dest = Path(dest_dir) / url_filename(url)
        if dest.is_file():
            logger.info("%s already present, skipping download", dest.name)
            return dest
        logger.info("attempting to download %s", url)
        dest.parent.mkdir(parents=True, exist_ok=True)
        if url.startswith("ftp://"):
            return self._fetch_ftp(url, dest)
        return self._fetch_http(url, dest)

    def _fetch_http(self, url: str, dest: Path) -> Path | None:
        try:
            with self._session.get(url, stream=True, timeout=self._timeout) as r:
                logger.debug("response: %s %s", r.status_code, url)
                if r.status_code >= 400:
                    return None
                content_type = r.headers.get("Content-Type")
                logger.debug("content-type: %s", content_type)
                if not is_archive_type(content_type):
                    return None
                _write_atomically(dest, r.iter_content(chunk_size=65536))
        except (requests.RequestException, OSError) as e:
            logger.debug("download of %s failed: %s", url, e)
            return None
        return dest

    def _fetch_ftp(self, url: str, dest: Path) -> Path | None:
        try:
            with urllib.request.urlopen(url, timeout=self._timeout) as resp:
                _write_atomically(dest, iter(lambda: resp.read(65536), b""))
        except (urllib.error.URLError, OSError) as e:
            logger.debug("download of %s failed: %s", url, e)
            return None
        return dest

    def fetch_step(self, step: FetchPlanStep, dest_dir: str | Path) -> FetchResult | None:
        path = self.fetch(step.url, dest_dir)
        if path is not None:
            return FetchResult(path=path, url=step.url, reencode_required=step.reencode_required)

        if not step.url.endswith(REENCODED_EXTENSION):
            return None
        stem = step.url[: -len(REENCODED_EXTENSION)]
        for extension in self._alternates:
            alternate = stem + extension
            path = self.fetch(alternate, dest_dir)
            if path is not None:
                return FetchResult(path=path, url=alternate, reencode_required=True)
        return None

    def fetch_plan(self, plan: FetchPlan, dest_dir: str | Path) -> FetchResult:
        """Try every candidate of `plan` in order; DownloadFailure when none succeeds."""
        for step in plan.steps:
            result = self.fetch_step(step, dest_dir)
            if result is not None:
                return result
        raise DownloadFailure(plan.source, plan.urls)
