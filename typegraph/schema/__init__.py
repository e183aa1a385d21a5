"""
Schema compiler for typegraph.

This package turns declaration trees (groups of type symbols, field lists
and parameter lists annotated with metadata) into entity lists:
- Symbols and the default marker (symbols.py)
- Per-pass identity resolution (identity.py)
- Attribute readers for metadata keys (readers.py)
- Primitive seeding, entity building, validation (primitives.py,
  builder.py, validator.py)
- Compiler entry points (compiler.py)

Invariants:
    - Identities are negative and stable within one pass
    - Every Field has a Type parent and every Param a Field parent
    - Primitives come first in every entity list

How to change safely:
    - Add metadata behavior by registering readers, not by editing the builder
    - Keep compile passes independent: no module-level mutable state
"""

from .builder import EntityBuilder
from .compiler import compile_entities, compile_schema
from .entities import Entity, EntityKind, Ref
from .identity import CompilationContext
from .primitives import PRIMITIVE_TYPES, seed_primitives
from .readers import DROP, AttributeReader, ReaderKind, ReaderRegistry, qualify
from .symbols import DEFAULT_MARKER, Symbol, sym
from .validator import Validator, accept_all, dangling_references, parent_errors

__all__ = [
    # Declaration tree
    "Symbol",
    "sym",
    "DEFAULT_MARKER",
    # Entities
    "Entity",
    "EntityKind",
    "Ref",
    # Resolution
    "CompilationContext",
    "AttributeReader",
    "ReaderKind",
    "ReaderRegistry",
    "DROP",
    "qualify",
    # Building
    "PRIMITIVE_TYPES",
    "seed_primitives",
    "EntityBuilder",
    # Validation
    "Validator",
    "accept_all",
    "dangling_references",
    "parent_errors",
    # Entry points
    "compile_entities",
    "compile_schema",
]
