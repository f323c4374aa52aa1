"""
header.py

Responsibility: obtain the package header of a spec file (name, version,
release, epoch, homepage, sources, build requirements).

The default parser asks `rpmspec --parse` for the macro-expanded spec and reads
the tag lines of its preamble; anything exposing `parse(spec_path)` can be
used instead.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Protocol

from specupdater.errors import ProcessFailure, SpecParseFailure
from specupdater.process import ProcessRunner

_TAG_RE = re.compile(r"^(?P<tag>[A-Za-z]+)(?P<index>\d*)\s*:\s*(?P<value>.*?)\s*$")
_SECTION_RE = re.compile(r"^%(?:package|description|prep|build|install|check|clean|files|changelog|pre|post|preun|postun)\b")


@dataclass(frozen=True)
class HeaderSnapshot:
    name: str
    version: str
    release: str
    epoch: str | None = None
    url: str = ""
    sources: tuple[str, ...] = field(default_factory=tuple)
    build_requires: tuple[str, ...] = field(default_factory=tuple)


class HeaderParser(Protocol):
    def parse(self, spec_path: str | Path) -> HeaderSnapshot: ...


def _split_requires(value: str) -> list[str]:
    """Split `a >= 1.0, b c` into ['a >= 1.0', 'b', 'c']."""
    out: list[str] = []
    for chunk in value.split(","):
        tokens = chunk.split()
        i = 0
        while i < len(tokens):
            if i + 2 < len(tokens) and tokens[i + 1] in ("<", "<=", "=", ">=", ">"):
                out.append(" ".join(tokens[i : i + 3]))
                i += 3
            else:
                out.append(tokens[i])
                i += 1
    return out


def parse_preamble(text: str) -> HeaderSnapshot:
    """
    Read the main package preamble of an already macro-expanded spec.

    Only the first preamble is read (up to the first section such as
    `%description` or `%package`).
    """
    tags: dict[str, str] = {}
    sources: list[tuple[int, str]] = []
    requires: list[str] = []

    for order, line in enumerate(text.splitlines()):
        if _SECTION_RE.match(line):
            break
        m = _TAG_RE.match(line)
        if m is None:
            continue
        tag = m.group("tag").lower()
        value = m.group("value")
        if tag == "source":
            index = int(m.group("index")) if m.group("index") else 0
            sources.append((index, value))
        elif tag == "buildrequires":
            requires.extend(_split_requires(value))
        elif not m.group("index"):
            tags.setdefault(tag, value)

    missing = [t for t in ("name", "version", "release") if not tags.get(t)]
    if missing:
        raise SpecParseFailure(f"Spec header lacks required tags: {', '.join(missing)}")

    return HeaderSnapshot(
        name=tags["name"],
        version=tags["version"],
        release=tags["release"],
        epoch=tags.get("epoch") or None,
        url=tags.get("url", ""),
        sources=tuple(v for _i, v in sorted(sources, key=lambda s: s[0])),
        build_requires=tuple(requires),
    )


class RpmspecHeaderParser:
    def __init__(self, runner: ProcessRunner | None = None, *, defines: dict[str, str] | None = None) -> None:
        self._runner = runner or ProcessRunner()
        self._defines = dict(defines or {})

    def parse(self, spec_path: str | Path) -> HeaderSnapshot:
        path = Path(spec_path)
        if not path.is_file():
            raise SpecParseFailure(f"Spec file does not exist: {path}")
        cmd = ["rpmspec"]
        for key, value in self._defines.items():
            cmd += ["--define", f"{key} {value}"]
        cmd += ["--parse", str(path)]
        try:
            text = self._runner.run(cmd)
        except ProcessFailure as e:
            raise SpecParseFailure(f"Unable to parse spec {path}: {e}") from e
        return parse_preamble(text)
