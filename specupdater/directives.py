"""
directives.py

Responsibility: recognize version and release definitions in a spec file line.

Two forms are supported, anything else is ignored:

    %define version 1.0        (macro; release may also be named `rel`)
    Version:    1.0            (tag; case-insensitive)
"""

from __future__ import annotations

import enum
import re
from dataclasses import dataclass

_WS = r"[ \t]"


class DirectiveKind(enum.Enum):
    VERSION = "version"
    RELEASE = "release"


class DirectiveForm(enum.Enum):
    MACRO = "macro"
    TAG = "tag"


@dataclass(frozen=True)
class Directive:
    kind: DirectiveKind
    form: DirectiveForm
    prefix: str
    value: str

    def render(self, value: str) -> str:
        return self.prefix + value


def _directive_re(macro_names: str, tag: str) -> re.Pattern[str]:
    return re.compile(
        rf"^(?:(?P<macro>%define{_WS}+(?:{macro_names}){_WS}+)|(?P<tag>(?i:{tag}):{_WS}*))"
        rf"(?P<value>\S+(?:{_WS}+\S+)*){_WS}*$"
    )


_PATTERNS = {
    DirectiveKind.VERSION: _directive_re("version", "version"),
    DirectiveKind.RELEASE: _directive_re("release|rel", "release"),
}


def split_line_ending(line: str) -> tuple[str, str]:
    stripped = line.rstrip("\r\n")
    return stripped, line[len(stripped):]


def scan(line: str, kind: DirectiveKind) -> Directive | None:
    """
    Match `line` (with or without its line ending) against the `kind` directive.

    Returns None when the line is not such a directive.
    """
    body, _ending = split_line_ending(line)
    m = _PATTERNS[kind].match(body)
    if m is None:
        return None
    if m.group("macro") is not None:
        return Directive(kind=kind, form=DirectiveForm.MACRO, prefix=m.group("macro"), value=m.group("value"))
    return Directive(kind=kind, form=DirectiveForm.TAG, prefix=m.group("tag"), value=m.group("value"))


def scan_version(line: str) -> Directive | None:
    return scan(line, DirectiveKind.VERSION)


def scan_release(line: str) -> Directive | None:
    return scan(line, DirectiveKind.RELEASE)
