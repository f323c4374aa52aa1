"""
cli.py

Responsibility: CLI entrypoint for specupdater.

Commands:
- `update`        rewrite version/release/changelog of a spec file only
- `sources`       show the download candidates of a spec's sources for a version
- `build`         full update of a spec file: rewrite, download, build
- `rebuild-srpm`  same, starting from a source package
- `rebuild-name`  same, starting from a package name looked up in `srpm_dirs`
"""

from __future__ import annotations

import argparse
import logging
import sys

from specupdater.config import Settings, load_settings
from specupdater.errors import UpdaterError
from specupdater.updater import UpdateResult, Updater


def _configure_logging(verbosity: int) -> None:
    level = logging.WARNING if verbosity <= 0 else logging.INFO if verbosity == 1 else logging.DEBUG
    logging.basicConfig(level=level, format="%(levelname)-7s | %(message)s")


def _settings(args: argparse.Namespace, **overrides: object) -> Settings:
    settings = load_settings(
        args.config,
        verbosity=args.verbose or None,
        topdir=getattr(args, "topdir", None),
        sourcedir=getattr(args, "sourcedir", None),
        **overrides,
    )
    _configure_logging(settings.verbosity)
    return settings


def _print_result(result: UpdateResult) -> None:
    print(f"{result.final_version}-{result.final_release}")
    for path in result.added_sources:
        print(f"added source: {path}")
    for url in result.removed_sources:
        print(f"removed source: {url}")
    for path in result.built_packages:
        print(f"built: {path}")


def update_cmd(args: argparse.Namespace) -> int:
    settings = _settings(
        args,
        update_changelog=False if args.no_changelog else None,
        update_revision=False if args.no_revision else None,
    )
    updater = Updater(settings)
    header = updater.parse_header(args.spec_path)
    result = updater.update_spec(args.spec_path, header, args.version, args.release, args.message or None)
    print(f"{result.version}-{result.release}")
    return 0


def sources_cmd(args: argparse.Namespace) -> int:
    updater = Updater(_settings(args))
    header = updater.parse_header(args.spec_path)
    for source in updater.resolver.remote_sources(header):
        plan = updater.resolver.plan(source, new_version=args.version, old_version=header.version)
        print(source)
        for step in plan.steps:
            flag = " (re-encode)" if step.reencode_required else ""
            print(f"  {step.url}{flag}")
    return 0


def _build_overrides(args: argparse.Namespace) -> dict[str, object]:
    overrides: dict[str, object] = {}
    if args.no_download:
        overrides["download"] = False
    if args.source_only:
        overrides["build_binaries"] = False
    if args.binary_only:
        overrides["build_source"] = False
    if args.no_changelog:
        overrides["update_changelog"] = False
    return overrides


def build_cmd(args: argparse.Namespace) -> int:
    updater = Updater(_settings(args, **_build_overrides(args)))
    _print_result(updater.build_from_spec(args.spec_path, args.version, release=args.release))
    return 0


def rebuild_srpm_cmd(args: argparse.Namespace) -> int:
    updater = Updater(_settings(args, **_build_overrides(args)))
    _print_result(updater.build_from_source(args.srpm_path, args.version, release=args.release))
    return 0


def rebuild_name_cmd(args: argparse.Namespace) -> int:
    updater = Updater(_settings(args, **_build_overrides(args)))
    _print_result(updater.build_from_repository(args.name, args.version, release=args.release))
    return 0


def _add_build_options(b: argparse.ArgumentParser) -> None:
    b.add_argument("version", nargs="?", default=None, help="New upstream version (omit for a rebuild)")
    b.add_argument("--release", default=None, help="Force the release instead of computing it")
    b.add_argument("--no-download", action="store_true", help="Do not download new sources")
    b.add_argument("--no-changelog", action="store_true", help="Do not add a changelog entry")
    g = b.add_mutually_exclusive_group()
    g.add_argument("--source-only", action="store_true", help="Only build the source package")
    g.add_argument("--binary-only", action="store_true", help="Only build the binary packages")
    b.add_argument("--topdir", default=None, help="rpm top directory (default: ~/rpmbuild)")
    b.add_argument("--sourcedir", default=None, help="rpm source directory (default: <topdir>/SOURCES)")


def _build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="specupdater", description="Update RPM spec files and sources to a new version")
    p.add_argument("-v", "--verbose", action="count", default=0, help="Increase verbosity (repeatable)")
    p.add_argument("--config", default=None, help="YAML configuration file")
    sub = p.add_subparsers(dest="command", required=True)

    u = sub.add_parser("update", help="Rewrite version, release and changelog of a spec file")
    u.add_argument("spec_path", help="Path to the spec file")
    u.add_argument("version", nargs="?", default=None, help="New upstream version (omit for a rebuild)")
    u.add_argument("--release", default=None, help="Force the release instead of computing it")
    u.add_argument("-m", "--message", action="append", default=[], help="Changelog message (repeatable)")
    u.add_argument("--no-changelog", action="store_true", help="Do not add a changelog entry")
    u.add_argument("--no-revision", action="store_true", help="Do not touch version and release")
    u.set_defaults(func=update_cmd)

    s = sub.add_parser("sources", help="Show download candidates of the spec sources for a new version")
    s.add_argument("spec_path", help="Path to the spec file")
    s.add_argument("version", help="Target version")
    s.set_defaults(func=sources_cmd)

    b = sub.add_parser("build", help="Update a spec file, download new sources and build")
    b.add_argument("spec_path", help="Path to the spec file")
    _add_build_options(b)
    b.set_defaults(func=build_cmd)

    r = sub.add_parser("rebuild-srpm", help="Same as build, starting from a source package")
    r.add_argument("srpm_path", help="Path to the .src.rpm file")
    _add_build_options(r)
    r.set_defaults(func=rebuild_srpm_cmd)

    n = sub.add_parser("rebuild-name", help="Same as build, looking the package up in srpm_dirs")
    n.add_argument("name", help="Package name")
    _add_build_options(n)
    n.set_defaults(func=rebuild_name_cmd)

    return p


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    try:
        return int(args.func(args))
    except UpdaterError as e:
        print(f"error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
