"""
Graph store for compiled typegraph schemas.

The compiler only produces entity lists; a store accepts them as one
transaction and answers queries afterwards. SqliteGraphStore is the
bundled backend.
"""

from .base import GraphStore, StoreFactory, TransactionReport
from .meta_schema import (
    META_SCHEMA,
    extend_meta_schema,
    AttributeSpec,
    Cardinality,
    Uniqueness,
    ValueType,
)
from .sqlite import SqliteGraphStore

__all__ = [
    "GraphStore",
    "StoreFactory",
    "TransactionReport",
    "SqliteGraphStore",
    "META_SCHEMA",
    "extend_meta_schema",
    "AttributeSpec",
    "Cardinality",
    "ValueType",
    "Uniqueness",
]
