"""
Entity records produced by one compilation pass.

This module defines the records handed to the graph store:
- Ref: A reference to another entity by identity
- EntityKind: Type, Field or Param
- Entity: One record with an identity and namespaced attributes

Invariants:
    - Attribute keys are always qualified ("type/name", "field/parent")
    - Reference-valued attributes hold Ref (single) or frozenset[Ref] (many)
    - Entities are immutable once built

How to change safely:
    - New attributes need no change here; they arrive through the reader
      registry as namespaced keys
    - Keep to_dict() output stable, the CLI and store tests depend on it

Example:
    >>> A = Entity(EntityKind.TYPE, -7, {"type/name": "A"})
    >>> f = Entity(EntityKind.FIELD, -8, {"field/name": "f", "field/parent": Ref(-7)})
    >>> f.parent
    Ref(id=-7)
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import Any

from .symbols import Symbol

ID_KEY = "db/id"


@dataclass(frozen=True, order=True)
class Ref:
    """Reference to an entity by (temporary or permanent) identity."""

    id: int

    def to_dict(self) -> dict[str, int]:
        return {ID_KEY: self.id}


class EntityKind(Enum):
    """Entity kinds; the value doubles as the attribute namespace."""

    TYPE = "type"
    FIELD = "field"
    PARAM = "param"

    @classmethod
    def from_str(cls, value: str) -> EntityKind:
        """Convert a namespace string to EntityKind.

        Raises:
            ValueError: If value is not an entity namespace
        """
        for kind in cls:
            if kind.value == value:
                return kind
        valid = [k.value for k in cls]
        raise ValueError(f"Invalid entity kind '{value}'. Valid kinds: {valid}")


@dataclass(frozen=True)
class Entity:
    """A Type, Field or Param record.

    Attributes:
        kind: Which kind of entity this is
        id: Pass-local negative identity
        attrs: Qualified attribute map, including "<kind>/name"
    """

    kind: EntityKind
    id: int
    attrs: Mapping[str, Any]

    def __post_init__(self) -> None:
        """Validate and freeze the attribute map."""
        if not isinstance(self.id, int):
            raise ValueError(f"Entity id must be an int, got {type(self.id).__name__}")
        object.__setattr__(self, "attrs", MappingProxyType(dict(self.attrs)))

    def qualify(self, attr: str) -> str:
        return attr if "/" in attr else f"{self.kind.value}/{attr}"

    def get(self, attr: str, default: Any = None) -> Any:
        """Get an attribute by qualified or unqualified name."""
        return self.attrs.get(self.qualify(attr), default)

    @property
    def name(self) -> str | None:
        return self.get("name")

    @property
    def parent(self) -> Ref | None:
        """Owning Type (for fields) or Field (for params)."""
        return self.get("parent")

    def references(self) -> list[tuple[str, Ref]]:
        """All (attribute, ref) pairs held by this entity."""
        refs: list[tuple[str, Ref]] = []
        for key, value in self.attrs.items():
            if isinstance(value, Ref):
                refs.append((key, value))
            elif isinstance(value, frozenset):
                refs.extend((key, r) for r in sorted(value, reverse=True) if isinstance(r, Ref))
        return refs

    def to_dict(self) -> dict[str, Any]:
        """Transaction form: {"db/id": id, attr: value, ...}."""
        result: dict[str, Any] = {ID_KEY: self.id}
        for key, value in self.attrs.items():
            result[key] = render_value(value)
        return result


def render_value(value: Any) -> Any:
    if isinstance(value, Ref):
        return value.to_dict()
    if isinstance(value, Symbol):
        return value.name
    if isinstance(value, frozenset):
        # Allocation order: -1 before -2
        return [render_value(v) for v in sorted(value, key=_sort_key, reverse=True)]
    if isinstance(value, Mapping):
        return {k: render_value(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [render_value(v) for v in value]
    return value


def _sort_key(value: Any) -> Any:
    if isinstance(value, Ref):
        return (1, value.id, "")
    return (0, 0, repr(value))
