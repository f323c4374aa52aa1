"""
config.py

Responsibility: load the updater configuration into an immutable `Settings`.

Configuration is a YAML mapping; every key is optional and falls back to the
built-in defaults:

    packager: Jane Packager <jane@example.org>
    release_suffix: mdv2007.0
    changelog_messages: ["New version {{ version }}"]
    rewrite_rules:
      - {pattern: 'https?://(.*)\\.example\\.org/(.*)', template: 'http://dl.example.org/\\1/\\2'}
    sourceforge_mirrors: [ovh, mesh, switch]
    alternate_extensions: [.tar.gz, .tgz, .zip]
    archive_hosts:
      - {pattern: ..., template: ..., extension: .tar.gz}
    topdir: ~/rpmbuild
    build_requires_command: [sudo, dnf, builddep, -y]

Nothing in here is looked up again after loading.
"""

from __future__ import annotations

import getpass
import os
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Any, Mapping

import yaml

from specupdater.errors import ConfigError
from specupdater.fetcher import DEFAULT_ALTERNATE_EXTENSIONS
from specupdater.planner import (
    DEFAULT_ARCHIVE_HOSTS,
    DEFAULT_SOURCEFORGE_MIRROR_HOST,
    DEFAULT_SOURCEFORGE_MIRRORS,
    ArchiveHost,
)
from specupdater.rules import DEFAULT_REWRITE_RULES, RewriteRule


@dataclass(frozen=True)
class Settings:
    """Everything the updater needs, fixed for the lifetime of one `Updater`."""

    packager: str = ""
    release_suffix: str | None = None
    changelog_messages: tuple[str, ...] = ()
    rewrite_rules: tuple[RewriteRule, ...] = DEFAULT_REWRITE_RULES
    sourceforge_mirrors: tuple[str, ...] = DEFAULT_SOURCEFORGE_MIRRORS
    sourceforge_mirror_host: str = DEFAULT_SOURCEFORGE_MIRROR_HOST
    alternate_extensions: tuple[str, ...] = DEFAULT_ALTERNATE_EXTENSIONS
    archive_hosts: tuple[ArchiveHost, ...] = DEFAULT_ARCHIVE_HOSTS
    verbosity: int = 0
    timeout: float = 60.0
    topdir: str = "~/rpmbuild"
    sourcedir: str | None = None
    build_options: tuple[str, ...] = ()
    download: bool = True
    update_revision: bool = True
    update_changelog: bool = True
    build_source: bool = True
    build_binaries: bool = True
    srpm_dirs: tuple[str, ...] = ()
    build_requires_command: tuple[str, ...] = ()
    build_results_command: tuple[str, ...] = ()
    reencode_command: tuple[str, ...] = ("bzme", "-f", "-F")

    @property
    def topdir_path(self) -> Path:
        return Path(self.topdir).expanduser().resolve()

    @property
    def sourcedir_path(self) -> Path:
        if self.sourcedir:
            return Path(self.sourcedir).expanduser().resolve()
        return self.topdir_path / "SOURCES"


_STR_LISTS = {
    "changelog_messages",
    "sourceforge_mirrors",
    "alternate_extensions",
    "build_options",
    "srpm_dirs",
    "build_requires_command",
    "build_results_command",
    "reencode_command",
}
_BOOLS = {"download", "update_revision", "update_changelog", "build_source", "build_binaries"}
_OPTIONAL_STRS = {"release_suffix", "sourcedir"}
_STRS = {"packager", "sourceforge_mirror_host", "topdir"}


def default_packager(env: Mapping[str, str] | None = None) -> str:
    """`login <EMAIL>`, or `login <login@localhost>` without EMAIL."""
    env = os.environ if env is None else env
    login = env.get("USER") or env.get("LOGNAME") or getpass.getuser()
    email = env.get("EMAIL") or f"{login}@localhost"
    return f"{login} <{email}>"


def _str_list(key: str, raw: Any) -> tuple[str, ...]:
    if isinstance(raw, str):
        return (raw,)
    if not isinstance(raw, list) or not all(isinstance(v, (str, int, float)) for v in raw):
        raise ConfigError(f"`{key}` must be a list of strings.")
    return tuple(str(v) for v in raw)


def _rules(key: str, raw: Any) -> tuple[RewriteRule, ...]:
    if not isinstance(raw, list):
        raise ConfigError(f"`{key}` must be a list of {{pattern, template}} mappings.")
    out: list[RewriteRule] = []
    for item in raw:
        if not isinstance(item, dict) or not item.get("pattern") or "template" not in item:
            raise ConfigError(f"Each `{key}` entry needs `pattern` and `template`.")
        out.append(RewriteRule(pattern=str(item["pattern"]), template=str(item["template"])))
    return tuple(out)


def _archive_hosts(key: str, raw: Any) -> tuple[ArchiveHost, ...]:
    if not isinstance(raw, list):
        raise ConfigError(f"`{key}` must be a list of {{pattern, template, extension}} mappings.")
    out: list[ArchiveHost] = []
    for item in raw:
        if not isinstance(item, dict) or not all(item.get(k) for k in ("pattern", "template", "extension")):
            raise ConfigError(f"Each `{key}` entry needs `pattern`, `template` and `extension`.")
        out.append(ArchiveHost(pattern=str(item["pattern"]), template=str(item["template"]), extension=str(item["extension"])))
    return tuple(out)


def settings_from_mapping(data: Mapping[str, Any], base: Settings | None = None) -> Settings:
    known = {f.name for f in fields(Settings)}
    unknown = sorted(set(data) - known)
    if unknown:
        raise ConfigError(f"Unknown configuration keys: {', '.join(unknown)}")

    values: dict[str, Any] = {}
    for key, raw in data.items():
        if key in _STR_LISTS:
            values[key] = _str_list(key, raw)
        elif key in _BOOLS:
            if not isinstance(raw, bool):
                raise ConfigError(f"`{key}` must be true or false.")
            values[key] = raw
        elif key in _OPTIONAL_STRS:
            values[key] = None if raw is None else str(raw)
        elif key in _STRS:
            if raw is None:
                raise ConfigError(f"`{key}` must be a string.")
            values[key] = str(raw)
        elif key == "rewrite_rules":
            values[key] = _rules(key, raw)
        elif key == "archive_hosts":
            values[key] = _archive_hosts(key, raw)
        elif key == "verbosity":
            if isinstance(raw, bool) or not isinstance(raw, int):
                raise ConfigError("`verbosity` must be an integer.")
            values[key] = raw
        elif key == "timeout":
            if isinstance(raw, bool) or not isinstance(raw, (int, float)) or raw <= 0:
                raise ConfigError("`timeout` must be a positive number.")
            values[key] = float(raw)
    return replace(base or Settings(), **values)


def load_settings(path: str | Path | None = None, **overrides: Any) -> Settings:
    """
    Load settings from the YAML file at `path` (if any), then apply `overrides`
    (already typed values, e.g. from the command line; None values are ignored).
    """
    settings = Settings()
    if path is not None:
        p = Path(path)
        if not p.is_file():
            raise ConfigError(f"Configuration file does not exist: {p}")
        try:
            data = yaml.safe_load(p.read_text(encoding="utf-8")) or {}
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML in {p}: {e}") from e
        if not isinstance(data, dict):
            raise ConfigError("Configuration must be a mapping at the top level.")
        settings = settings_from_mapping(data, settings)

    settings = replace(settings, **{k: v for k, v in overrides.items() if v is not None})
    if not settings.packager:
        settings = replace(settings, packager=default_packager())
    return settings
