from __future__ import annotations

import argparse
import asyncio
import json
import sys
from collections.abc import Sequence
from typing import Any

from buildkit.errors import BuildkitError


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="packsmith", add_help=True)
    parser.add_argument("--log-dir", default=None, help="Also write a DEBUG log file here")
    parser.add_argument("-v", "--verbose", action="store_true", help="Log DEBUG to stderr")
    sub = parser.add_subparsers(dest="command", required=True)

    build = sub.add_parser("build", help="Discover, build and store a package")
    build.add_argument("path", help="Package directory or importable package name")
    build.add_argument("--environment", default=None)
    build.add_argument("--out", default=None, help="Storage directory (default: <root>/.packsmith)")
    build.add_argument("--no-store", action="store_true", help="Build without storing")

    inspect = sub.add_parser("inspect", help="List included files and their adapter chains")
    inspect.add_argument("path")
    inspect.add_argument("--environment", default=None)

    deps = sub.add_parser("deps", help="Print the normalized dependency graph as JSON")
    deps.add_argument("path")
    deps.add_argument("--environment", default=None)

    sub.add_parser("list-adapters", help="List well-known adapter names")

    return parser


def _options(args: argparse.Namespace) -> dict[str, Any]:
    options: dict[str, Any] = {"path": args.path}
    if getattr(args, "environment", None):
        options["environment"] = args.environment
    return options


async def _build(args: argparse.Namespace, logger) -> int:
    from .framework.package import Package
    from .framework.store import LocalDirectoryStorage

    storage = LocalDirectoryStorage(args.out) if args.out else None
    package = Package(_options(args), storage=storage)
    artifact = await package.build()
    if args.no_store:
        logger.info("Built %s@%s (not stored)", artifact.name, artifact.version)
        return 0
    location = await package.store()
    logger.info("Stored %s@%s at %s", artifact.name, artifact.version, location)
    return 0


async def _inspect(args: argparse.Namespace) -> int:
    from .framework.package import Package

    package = Package(_options(args))
    records = await package.discover()
    print(f"{package.name}@{package.version} ({package.environment}) {package.path}")
    for record in records:
        chain = " -> ".join(record.adapter_names()) or "<passthrough>"
        print(f"  {record.relative}: {chain}")
    return 0


def _deps(args: argparse.Namespace) -> int:
    from .framework.package import Package

    package = Package(_options(args))
    payload = {
        "rules": package.dependencies.to_dict(),
        "effective": package.dependencies.for_environment(package.environment),
    }
    print(json.dumps(payload, indent=2, sort_keys=True))
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(list(argv) if argv is not None else None)

    from .foundation.logging_utils import setup_operational_logger

    logger, _log_file = setup_operational_logger(log_dir=args.log_dir, verbose=args.verbose)

    try:
        if args.command == "build":
            return asyncio.run(_build(args, logger))

        if args.command == "inspect":
            return asyncio.run(_inspect(args))

        if args.command == "deps":
            return _deps(args)

        if args.command == "list-adapters":
            from .adapters import get_adapter_kinds

            for name in get_adapter_kinds().available():
                print(name)
            return 0
    except BuildkitError as exc:
        logger.error("%s failed: %s", args.command, exc)
        return 1

    raise AssertionError(f"Unhandled command: {args.command}")


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main(sys.argv[1:]))
