"""
Schema compiler entry points.

A compilation pass runs to completion synchronously:

    sources -> seed primitives -> build entities -> validate -> transact

Invariants:
    - Each call creates its own CompilationContext; no identity state
      survives a call, so concurrent calls do not interfere
    - Primitives hold the first identities of every pass
    - A validator veto raises SchemaValidationError and the store is never
      created
    - Store failures propagate unchanged; there is no retry

How to change safely:
    - Keep compile_entities() free of store concerns so the entity list can
      be inspected or serialized without a store
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from typing import TYPE_CHECKING, Any

from ..errors import SchemaValidationError
from .builder import EntityBuilder
from .entities import Entity
from .identity import CompilationContext
from .primitives import seed_primitives
from .readers import ReaderRegistry
from .validator import Validator, accept_all

if TYPE_CHECKING:
    from ..config import Settings
    from ..store.base import GraphStore, StoreFactory

logger = logging.getLogger(__name__)

Source = Iterable[Sequence[Any]]


def compile_entities(
    *sources: Source,
    settings: Settings | None = None,
    registry: ReaderRegistry | None = None,
) -> list[Entity]:
    """Compile schema sources into one ordered entity list.

    Args:
        *sources: Schema sources, each a sequence of groups
        settings: Compiler settings (environment defaults if omitted)
        registry: Attribute readers (the default registry if omitted)

    Returns:
        Primitive types followed by every declared entity, in build order

    Raises:
        MalformedDeclarationError: On malformed shapes, in strict mode only

    Example:
        >>> entities = compile_entities([[sym("A"), [sym("f", type="String")]]])
        >>> [e.name for e in entities][-2:]
        ['A', 'f']
    """
    if settings is None:
        from ..config import get_settings

        settings = get_settings()

    ctx = CompilationContext(strict=settings.strict)
    entities = seed_primitives(ctx, [], settings.extra_primitive_types)
    builder = EntityBuilder(ctx, registry, entities)
    builder.build(sources)

    undeclared = ctx.undeclared()
    if undeclared:
        names = sorted(".".join(key) for key in undeclared)
        logger.warning(f"Referenced but never declared: {names}")
    logger.info(
        f"Compiled {len(sources)} source(s) into {len(entities)} entities "
        f"({len(ctx)} identities)"
    )
    return entities


def compile_schema(
    source: Source,
    *others: Source,
    settings: Settings | None = None,
    registry: ReaderRegistry | None = None,
    validator: Validator | None = None,
    store_factory: StoreFactory | None = None,
) -> GraphStore:
    """Compile schema sources and transact them into a new store.

    Args:
        source: First schema source
        *others: Further sources, compiled into the same pass
        settings: Compiler settings (environment defaults if omitted)
        registry: Attribute readers (the default registry if omitted)
        validator: Veto hook run before the transaction (accept_all if omitted)
        store_factory: Builds the store from the attribute declarations,
            META_SCHEMA plus the reference attributes of the registry's
            readers (a SqliteGraphStore on settings.database if omitted)

    Returns:
        Live store handle holding the compiled schema

    Raises:
        SchemaValidationError: If the validator rejects the entity list
        MalformedDeclarationError: On malformed shapes, in strict mode only

    Example:
        >>> store = compile_schema([[sym("A", implements=["B"]), sym("B")]])
        >>> store.one_type("A")["type/implements"][0]["type/name"]
        'B'
    """
    if settings is None:
        from ..config import get_settings

        settings = get_settings()

    entities = compile_entities(source, *others, settings=settings, registry=registry)

    validator = validator or accept_all
    if not validator(entities):
        raise SchemaValidationError(
            f"Schema validation failed for {len(entities)} entities",
            entity_count=len(entities),
        )

    from ..store.meta_schema import extend_meta_schema

    registry = registry or ReaderRegistry.default()
    schema = extend_meta_schema(registry.reference_attributes())

    if store_factory is None:
        from ..store.sqlite import SqliteGraphStore

        database = settings.database

        def _default_factory(schema):
            return SqliteGraphStore(schema, database=database)

        store_factory = _default_factory

    store = store_factory(schema)
    try:
        store.transact(entities)
    except Exception:
        store.close()
        raise
    return store
