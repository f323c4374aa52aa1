"""
changelog.py

Responsibility: build one new `%changelog` entry and place it in front of the
existing ones.

Entry layout:

    * Sat Oct 17 2026 Jane Packager <jane@example.org> 1:2.0-1
    - New version 2.0
    <blank line>

Messages may reference the new version either as `%%VERSION` or through Jinja2
markers (`{{ version }}`, `{{ release }}`, `{{ epoch }}`, `{{ name }}`).
"""

from __future__ import annotations

import datetime as dt
from dataclasses import dataclass, field
from typing import Any, Iterable, Iterator, Sequence

from jinja2 import Environment, StrictUndefined, TemplateError

from specupdater.errors import ConfigError

CHANGELOG_MARKER = "%changelog"
ENTRY_SIGIL = "*"
VERSION_PLACEHOLDER = "%%VERSION"
DATE_FORMAT = "%a %b %d %Y"

_env = Environment(autoescape=False, undefined=StrictUndefined, keep_trailing_newline=False)


@dataclass(frozen=True)
class ChangelogEntry:
    date: dt.date
    packager: str
    version: str
    release: str
    epoch: str | None = None
    messages: tuple[str, ...] = field(default_factory=tuple)

    @property
    def title(self) -> str:
        evr = f"{self.epoch}:" if self.epoch else ""
        evr += f"{self.version}-{self.release}"
        return f"{ENTRY_SIGIL} {self.date.strftime(DATE_FORMAT)} {self.packager} {evr}"

    def render(self, newline: str = "\n") -> str:
        lines = [self.title]
        lines.extend(f"- {m}" for m in self.messages)
        lines.append("")
        return newline.join(lines) + newline


def default_messages(new_version: str | None) -> list[str]:
    return [f"New version {new_version}"] if new_version else ["Rebuild"]


def render_message(template: str, context: dict[str, Any]) -> str:
    text = template.replace(VERSION_PLACEHOLDER, str(context.get("version") or ""))
    if ("{{" in text) or ("{%" in text) or ("{#" in text):
        try:
            return _env.from_string(text).render(**context)
        except TemplateError as e:
            raise ConfigError(f"Invalid changelog message template: {template!r}: {e}") from e
    return text


def build_entry(
    *,
    date: dt.date,
    packager: str,
    version: str,
    release: str,
    epoch: str | None = None,
    new_version: str | None = None,
    templates: Sequence[str] = (),
    name: str = "",
) -> ChangelogEntry:
    context = {"version": version, "release": release, "epoch": epoch or "", "name": name}
    if templates:
        messages = [render_message(t, context) for t in templates]
    else:
        messages = default_messages(new_version)
    return ChangelogEntry(
        date=date,
        packager=packager,
        version=version,
        release=release,
        epoch=epoch,
        messages=tuple(messages),
    )


def is_marker(line: str) -> bool:
    return line.startswith(CHANGELOG_MARKER)


def insert_entry(lines: Iterator[str], entry: ChangelogEntry, newline: str = "\n") -> Iterable[str]:
    """
    Consume `lines` (the lines following the marker) up to the first existing
    entry, yielding them unchanged, then the new entry, then the rest.

    Without any existing entry the new one ends up at the end of the document.
    """
    for line in lines:
        if line.startswith(ENTRY_SIGIL):
            yield entry.render(newline)
            yield line
            break
        yield terminated(line, newline)
    else:
        yield entry.render(newline)
        return
    yield from lines


def terminated(line: str, newline: str = "\n") -> str:
    return line if line.endswith(("\n", "\r")) else line + newline


def add_entry(text: str, entry: ChangelogEntry) -> str:
    """Insert `entry` after the marker of `text`; unchanged if there is no marker."""
    lines = iter(text.splitlines(keepends=True))
    out: list[str] = []
    for line in lines:
        if is_marker(line):
            out.append(terminated(line))
            out.extend(insert_entry(lines, entry))
            break
        out.append(line)
    return "".join(out)
