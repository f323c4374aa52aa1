"""Shared fakes for the external collaborators."""

from __future__ import annotations

from pathlib import Path
from typing import Callable

import pytest

from specupdater.errors import ProcessFailure


class FakeRunner:
    """Records commands; `handlers` map a program name to a side effect returning output."""

    def __init__(self) -> None:
        self.calls: list[list[str]] = []
        self.handlers: dict[str, Callable[[list[str]], str]] = {}
        self.failing: set[str] = set()

    def run(self, cmd, *, cwd=None, env=None) -> str:
        args = [str(a) for a in cmd]
        self.calls.append(args)
        if args[0] in self.failing:
            raise ProcessFailure(args, "boom", 1)
        handler = self.handlers.get(args[0])
        return handler(args) if handler else ""

    def programs(self) -> list[str]:
        return [c[0] for c in self.calls]


@pytest.fixture
def runner() -> FakeRunner:
    return FakeRunner()


@pytest.fixture
def spec_file(tmp_path: Path) -> Path:
    p = tmp_path / "foo.spec"
    p.write_text(
        "Name: foo\n"
        "Version: 1.0\n"
        "Release: %mkrel 2\n"
        "URL: http://www.example.org/foo\n"
        "Source0: http://download.example.org/foo-%{version}.tar.bz2\n"
        "BuildRequires: gcc, zlib-devel >= 1.2\n"
        "\n"
        "%description\n"
        "Foo.\n"
        "\n"
        "%changelog\n"
        "* Mon Jan 01 2024 Old <old@example.org> 1.0-1\n"
        "- first\n"
    )
    return p
