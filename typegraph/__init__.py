"""
typegraph - compile schema declarations into a queryable entity graph.

Schemas are written as nested declarations: groups of named types, each
with fields, each field with parameters, all annotated with free-form
metadata. The compiler resolves every symbol to a stable per-pass identity,
normalizes metadata into namespaced attributes, and produces Type, Field and
Param entities ready to be transacted into a graph store.

Pipeline:
    declaration tree ──▶ seed primitives ──▶ build entities ──▶ validate
                                                                   │
                                            query handle ◀── store transaction

Invariants:
    - Every pass starts from a fresh identity table
    - Primitive types (String, Float, Integer, Boolean, DateTime, ID) are
      present exactly once in every pass, before user types
    - Type names are unique within a store (upsert by name)

How to change safely:
    - New metadata keys: register readers, do not edit the builder
    - New store backends: subclass typegraph.store.GraphStore

Example:
    >>> from typegraph import compile_schema, sym
    >>> store = compile_schema([
    ...     [sym("A", implements=["B"]), [sym("f", type="String"), [sym("p")]],
    ...      sym("B")],
    ... ])
    >>> store.one_type("A")["field/_parent"][0]["field/name"]
    'f'
"""

from ._version import __version__
from .config import Settings, get_settings
from .errors import (
    MalformedDeclarationError,
    SchemaSourceError,
    SchemaValidationError,
    TransactionError,
    TypeGraphError,
)
from .schema import (
    AttributeReader,
    Entity,
    EntityKind,
    ReaderKind,
    ReaderRegistry,
    Ref,
    Symbol,
    compile_entities,
    compile_schema,
    sym,
)
from .store import GraphStore, SqliteGraphStore

__all__ = [
    "__version__",
    # Configuration
    "Settings",
    "get_settings",
    # Errors
    "TypeGraphError",
    "MalformedDeclarationError",
    "SchemaValidationError",
    "TransactionError",
    "SchemaSourceError",
    # Compiler
    "Symbol",
    "sym",
    "Entity",
    "EntityKind",
    "Ref",
    "AttributeReader",
    "ReaderKind",
    "ReaderRegistry",
    "compile_entities",
    "compile_schema",
    # Store
    "GraphStore",
    "SqliteGraphStore",
]
