"""
YAML schema sources for typegraph.

A schema file is a YAML list of groups. Inside a group, field list or
parameter list:
- a plain string is a bare symbol
- a single-key mapping {Name: {meta...}} is a symbol with metadata
  ({default: {...}} is the group's default marker)
- a list is a vector

Example schema:
    - - default: {sql/tag: true}
      - Node: {interface: true}
      - - id: {type: ID}
      - User: {implements: [Node]}
      - - id: {type: ID}
        - friends: {type: User}
        - - first: {type: Integer}
          - after: {type: String}
    - - Query
      - - user: {type: User}
        - - id: {type: ID}

Invariants:
    - Files under a directory are loaded in sorted path order
    - One file is one schema source; metadata values are left as written

How to change safely:
    - Keep the mapping-as-symbol rule single-key; multi-key mappings are
      rejected so that typos do not silently become metadata
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from pathlib import Path
from typing import Any

import yaml

from .errors import SchemaSourceError
from .schema.symbols import Symbol

logger = logging.getLogger(__name__)

DEFAULT_SUFFIXES = (".yaml", ".yml")

# YAML 1.1 reads bare on/off/yes/no as booleans and null or ~ as None
_QUOTE_HINT = "quote names such as on, off, yes, no and null"


def parse_element(data: Any, path: str | None = None) -> Any:
    """Convert one YAML node into a declaration tree element.

    Raises:
        SchemaSourceError: If a mapping does not have exactly one string key
            with a mapping (or empty) value, or a scalar that is not a
            non-empty string sits where a symbol is expected
    """
    if isinstance(data, str) and data:
        return Symbol(data)
    if isinstance(data, list):
        return [parse_element(item, path) for item in data]
    if isinstance(data, dict):
        if len(data) != 1:
            raise SchemaSourceError(
                f"Symbol mapping must have exactly one key, got {sorted(map(str, data))}",
                path=path,
            )
        (name, meta), = data.items()
        if not isinstance(name, str) or not name:
            raise SchemaSourceError(
                f"Symbol name must be a string, got {name!r}; {_QUOTE_HINT}", path=path
            )
        if meta is None:
            meta = {}
        if not isinstance(meta, dict):
            raise SchemaSourceError(
                f"Metadata for '{name}' must be a mapping, got {type(meta).__name__}",
                path=path,
            )
        return Symbol(name, {str(k): v for k, v in meta.items()})
    raise SchemaSourceError(f"Expected a symbol name, got {data!r}; {_QUOTE_HINT}", path=path)


def parse_source(data: Any, path: str | None = None) -> list[Any]:
    """Convert a loaded YAML document into a schema source (a list of groups)."""
    if data is None:
        return []
    if not isinstance(data, list):
        raise SchemaSourceError(
            f"Schema source must be a list of groups, got {type(data).__name__}",
            path=path,
        )
    return [parse_element(group, path) for group in data]


def parse_yaml(yaml_str: str, path: str | None = None) -> list[Any]:
    """Parse a schema source from a YAML string."""
    try:
        data = yaml.safe_load(yaml_str)
    except yaml.YAMLError as e:
        raise SchemaSourceError(f"Invalid YAML: {e}", path=path) from e
    return parse_source(data, path)


def load_file(path: str | Path) -> list[Any]:
    """Load one schema source file."""
    path = Path(path)
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as e:
        raise SchemaSourceError(f"Cannot read schema file: {e}", path=str(path)) from e
    source = parse_yaml(text, str(path))
    logger.debug(f"Loaded {len(source)} group(s) from {path}")
    return source


def schema_files(
    paths: Iterable[str | Path],
    suffixes: Sequence[str] = DEFAULT_SUFFIXES,
) -> list[Path]:
    """Expand files and directories (recursively) into schema file paths.

    Args:
        paths: Files or directories
        suffixes: File suffixes picked up inside directories

    Returns:
        Explicit files as given, directory contents sorted by path

    Raises:
        SchemaSourceError: If a path does not exist
    """
    files: list[Path] = []
    for p in paths:
        p = Path(p)
        if p.is_dir():
            found = sorted(f for f in p.rglob("*") if f.is_file() and f.suffix in suffixes)
            if not found:
                logger.warning(f"No schema files under {p}")
            files.extend(found)
        elif p.is_file():
            files.append(p)
        else:
            raise SchemaSourceError(f"Schema path does not exist: {p}", path=str(p))
    return files


def load_paths(
    paths: Iterable[str | Path],
    suffixes: Sequence[str] = DEFAULT_SUFFIXES,
) -> list[list[Any]]:
    """Load every schema file under the given paths, one source per file."""
    sources = [load_file(f) for f in schema_files(paths, suffixes)]
    logger.info(f"Loaded {len(sources)} schema source(s)")
    return sources
