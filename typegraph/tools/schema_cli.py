"""
Schema CLI tool for typegraph.

This tool compiles YAML schema sources and inspects the result:
- compile: Print the compiled entity list as JSON
- types: Print all types (or one) with fields and params
- interfaces: Print interface types with their implementers
- check: Report dangling references and orphaned fields/params

Usage:
    typegraph compile schemas/ > entities.json
    typegraph types schemas/ --name User
    typegraph interfaces schemas/
    typegraph check schemas/ --strict

Invariants:
    - Problems found by check cause a non-zero exit code
    - JSON output is deterministic (sorted keys)

How to change safely:
    - Add new commands, don't modify existing ones
    - Keep output format stable for CI parsing
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from collections.abc import Sequence
from typing import Any

import json_log_formatter
from pydantic import ValidationError

from ..config import Settings, get_settings
from ..errors import TypeGraphError
from ..loader import load_paths
from ..schema import compile_entities, compile_schema, dangling_references, parent_errors

logger = logging.getLogger(__name__)


class SchemaCLI:
    """CLI commands over a set of schema paths.

    Example:
        >>> cli = SchemaCLI(Settings(strict=True))
        >>> print(cli.compile(["schemas/"]))
        >>> ok, issues = cli.check(["schemas/"])
    """

    def __init__(self, settings: Settings | None = None) -> None:
        self.settings = settings or get_settings()

    def _sources(self, paths: Sequence[str]) -> list[list[Any]]:
        return load_paths(paths, self.settings.schema_suffixes)

    def compile(self, paths: Sequence[str]) -> str:
        """Compile schema paths to the transaction-form entity list.

        Args:
            paths: Schema files or directories

        Returns:
            JSON string representation
        """
        entities = compile_entities(*self._sources(paths), settings=self.settings)
        return _dumps([e.to_dict() for e in entities])

    def types(self, paths: Sequence[str], name: str | None = None) -> str | None:
        """Compile into a store and pull all types, or the named one.

        Returns:
            JSON string, or None if the named type does not exist
        """
        with self._store(paths) as store:
            if name is None:
                return _dumps(store.all_types())
            found = store.one_type(name)
            return _dumps(found) if found is not None else None

    def interfaces(self, paths: Sequence[str]) -> str:
        """Compile into a store and pull interface types with implementers."""
        with self._store(paths) as store:
            return _dumps(store.all_interfaces())

    def check(self, paths: Sequence[str]) -> tuple[bool, list[str]]:
        """Check a schema for dangling references and orphaned entities.

        Returns:
            Tuple of (is_clean, list_of_issues)
        """
        entities = compile_entities(*self._sources(paths), settings=self.settings)
        issues = parent_errors(entities) + dangling_references(entities)
        return len(issues) == 0, issues

    def _store(self, paths: Sequence[str]):
        sources = self._sources(paths)
        if not sources:
            sources = [[]]
        return compile_schema(*sources, settings=self.settings)


def _dumps(data: Any) -> str:
    return json.dumps(data, indent=2, sort_keys=True)


def setup_logging(settings: Settings) -> None:
    """Send typegraph logs to stderr at the configured level and format.

    Args:
        settings: Settings carrying log_level and log_format
    """
    if settings.log_format == "json":
        formatter: logging.Formatter = json_log_formatter.JSONFormatter()
    else:
        formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(formatter)

    package_logger = logging.getLogger("typegraph")
    package_logger.setLevel(settings.log_level)
    package_logger.handlers = [handler]


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="typegraph", description="typegraph schema compiler")
    parser.add_argument("--log-level", help="Override TYPEGRAPH_LOG_LEVEL")
    parser.add_argument("--log-format", choices=["text", "json"], help="Override TYPEGRAPH_LOG_FORMAT")
    parser.add_argument(
        "--strict",
        action="store_true",
        default=None,
        help="Reject malformed declarations instead of skipping them",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    compile_parser = subparsers.add_parser("compile", help="Print the compiled entity list")
    compile_parser.add_argument("paths", nargs="+", help="Schema files or directories")
    compile_parser.add_argument("--output", "-o", help="Output file (default: stdout)")

    types_parser = subparsers.add_parser("types", help="Print types with fields and params")
    types_parser.add_argument("paths", nargs="+", help="Schema files or directories")
    types_parser.add_argument("--name", help="Only this type")

    interfaces_parser = subparsers.add_parser("interfaces", help="Print interface types")
    interfaces_parser.add_argument("paths", nargs="+", help="Schema files or directories")

    check_parser = subparsers.add_parser("check", help="Report dangling references")
    check_parser.add_argument("paths", nargs="+", help="Schema files or directories")

    return parser


def main(argv: Sequence[str] | None = None) -> int:
    """CLI entry point for the schema tool."""
    args = build_parser().parse_args(argv)

    overrides: dict[str, Any] = {}
    if args.strict is not None:
        overrides["strict"] = args.strict
    if args.log_level:
        overrides["log_level"] = args.log_level
    if args.log_format:
        overrides["log_format"] = args.log_format
    try:
        settings = Settings(**overrides)
    except ValidationError as e:
        for err in e.errors():
            field = ".".join(str(part) for part in err["loc"])
            print(f"error: {field}: {err['msg']}", file=sys.stderr)
        return 2

    setup_logging(settings)
    cli = SchemaCLI(settings)

    try:
        if args.command == "compile":
            output = cli.compile(args.paths)
            if args.output:
                with open(args.output, "w") as f:
                    f.write(output)
                print(f"Entities written to {args.output}", file=sys.stderr)
            else:
                print(output)

        elif args.command == "types":
            output = cli.types(args.paths, args.name)
            if output is None:
                print(f"Type '{args.name}' not found", file=sys.stderr)
                return 1
            print(output)

        elif args.command == "interfaces":
            print(cli.interfaces(args.paths))

        elif args.command == "check":
            is_clean, issues = cli.check(args.paths)
            if is_clean:
                print("Schema is clean")
                return 0
            print(f"Schema check found {len(issues)} issue(s):")
            for issue in issues:
                print(f"  - {issue}")
            return 1

    except TypeGraphError as e:
        print(f"error: {e.message}", file=sys.stderr)
        return 2

    return 0


if __name__ == "__main__":
    sys.exit(main())
