"""
release.py

Responsibility: compute the next release value of a package.

    explicit release given      -> used verbatim
    new version                 -> reset to 1
    rebuild                     -> rightmost number incremented

A leading macro token (such as `%mkrel `) is preserved in both computed cases.
The configured release suffix is matched literally at the end of the value.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

from specupdater.errors import UnparsableRelease

_MACRO_RE = re.compile(r"^(%\w+\s+)?(.*)$", re.DOTALL)
_NUMBER_RE = re.compile(r"^(.*?)(\d+)$", re.DOTALL)


@dataclass(frozen=True)
class ReleaseValue:
    macro: str
    prefix: str
    number: int
    suffix: str

    def __str__(self) -> str:
        return f"{self.macro}{self.prefix}{self.number}{self.suffix}"


def split_macro(text: str) -> tuple[str, str]:
    m = _MACRO_RE.match(text)
    assert m is not None  # the pattern matches any string
    return m.group(1) or "", m.group(2)


def parse_release(text: str, suffix: str | None = None) -> ReleaseValue:
    """
    Decompose a release value into macro, literal prefix, number and suffix.

    The suffix is only split off when it is configured and the value ends
    with it exactly; otherwise the whole remainder is searched for a number.
    """
    macro, value = split_macro(text)

    candidates: list[tuple[str, str]] = []
    if suffix and value.endswith(suffix):
        candidates.append((value[: -len(suffix)], suffix))
    candidates.append((value, ""))

    for body, tail in candidates:
        m = _NUMBER_RE.match(body)
        if m is not None:
            return ReleaseValue(macro=macro, prefix=m.group(1), number=int(m.group(2)), suffix=tail)
    raise UnparsableRelease(value)


def compute_release(
    current: str,
    version_bump: bool,
    explicit: str | None = None,
    suffix: str | None = None,
) -> str:
    if explicit:
        return explicit

    if version_bump:
        macro, value = split_macro(current)
        tail = suffix if suffix and value.endswith(suffix) else ""
        return f"{macro}1{tail}"

    parsed = parse_release(current, suffix)
    return str(ReleaseValue(macro=parsed.macro, prefix=parsed.prefix, number=parsed.number + 1, suffix=parsed.suffix))
