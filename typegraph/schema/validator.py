"""
Schema validation hook for typegraph.

The validator sees the complete entity list after it is built and before it
is transacted, and can veto the transaction by returning False. The stock
policy accepts everything; callers plug in their own rules.

Invariants:
    - A validator never mutates the entity list
    - A vetoed pass never reaches the store
"""

from __future__ import annotations

from collections.abc import Callable, Sequence

from .entities import Entity, EntityKind

Validator = Callable[[Sequence[Entity]], bool]


def accept_all(entities: Sequence[Entity]) -> bool:
    """Default policy: every schema is valid."""
    return True


def dangling_references(entities: Sequence[Entity]) -> list[str]:
    """Describe references whose target has no entity in the list.

    These are expected for forward references to types that are never
    declared (an ``implements`` naming an external type); they are reported,
    not rejected.

    Args:
        entities: The compiled entity list

    Returns:
        List of diagnostics (empty if every reference resolves)
    """
    by_id = {e.id: e for e in entities}
    issues = []
    for entity in entities:
        for attr, ref in entity.references():
            if ref.id not in by_id:
                issues.append(
                    f"{entity.kind.value.capitalize()} '{entity.name}' (id={entity.id}) "
                    f"{attr} references undeclared identity {ref.id}"
                )
    return issues


def parent_errors(entities: Sequence[Entity]) -> list[str]:
    """Check that every field has a Type parent and every param a Field parent."""
    by_id = {e.id: e for e in entities}
    expected = {EntityKind.FIELD: EntityKind.TYPE, EntityKind.PARAM: EntityKind.FIELD}
    errors = []
    for entity in entities:
        if entity.kind not in expected:
            continue
        parent = entity.parent
        target = by_id.get(parent.id) if parent is not None else None
        if target is None or target.kind != expected[entity.kind]:
            errors.append(
                f"{entity.kind.value.capitalize()} '{entity.name}' (id={entity.id}) "
                f"has no {expected[entity.kind].value} parent"
            )
    return errors
