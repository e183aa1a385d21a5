"""
Built-in primitive types seeded into every compilation pass.

Invariants:
    - Primitives are seeded exactly once per pass, before any user
      declaration, so they hold the first identities of the pass
    - The six PRIMITIVE_TYPES are always seeded; extra primitives follow
      them and never replace them
    - A primitive Type carries only its name
"""

from __future__ import annotations

import logging
from collections.abc import Iterable

from .entities import Entity, EntityKind
from .identity import CompilationContext

logger = logging.getLogger(__name__)

PRIMITIVE_TYPES: tuple[str, ...] = ("String", "Float", "Integer", "Boolean", "DateTime", "ID")


def seed_primitives(
    ctx: CompilationContext,
    entities: list[Entity],
    extra: Iterable[str] = (),
) -> list[Entity]:
    """Append one Type entity per primitive name.

    Args:
        ctx: Context of the current pass
        entities: Entity list to append to (usually empty)
        extra: Additional primitive names, seeded after PRIMITIVE_TYPES;
            names already seeded are skipped

    Returns:
        The same list, for chaining
    """
    seeded: list[str] = []
    for name in (*PRIMITIVE_TYPES, *extra):
        if name in seeded:
            continue
        entities.append(
            Entity(EntityKind.TYPE, ctx.declare(name), {"type/name": name})
        )
        seeded.append(name)
    logger.debug(f"Seeded {len(seeded)} primitive types")
    return entities
