"""
Graph store interface for typegraph.

This module defines the GraphStore base class that store backends
implement, plus the stock queries built on top of it:
- all_types(): every type with its interfaces, fields and params
- one_type(name): the same shape for a single type
- all_interfaces(): interface types with the types implementing them

Invariants:
    - transact() is atomic: the whole entity list commits or nothing does
    - Temporary (negative) identities are only meaningful inside one
      transact() call; the report maps them to permanent ids
    - Pulled entities are plain dicts keyed by qualified attribute names,
      with "db/id" holding the permanent id

How to change safely:
    - Add new abstract methods only with a default implementation
    - Keep pulled shapes stable; the CLI prints them verbatim
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

from ..schema.entities import ID_KEY, Entity
from .meta_schema import AttributeSpec


@dataclass
class TransactionReport:
    """Outcome of one transaction.

    Attributes:
        tempids: Temporary identity -> permanent id
        entity_count: Entity records applied
        datom_count: Attribute values written
        dangling: Temporary identities that were referenced but never
            backed by an entity record
    """

    tempids: dict[int, int] = field(default_factory=dict)
    entity_count: int = 0
    datom_count: int = 0
    dangling: list[int] = field(default_factory=list)

    def resolve(self, tempid: int) -> int | None:
        return self.tempids.get(tempid)


class GraphStore(ABC):
    """Base class for stores that accept typegraph entity lists.

    Attributes:
        schema: Attribute constraint declarations given at creation
    """

    def __init__(self, schema: Mapping[str, AttributeSpec]) -> None:
        self.schema = dict(schema)

    @abstractmethod
    def transact(self, entities: Sequence[Entity]) -> TransactionReport:
        """Apply the entity list as one atomic transaction.

        Raises:
            TransactionError: If the entity list cannot be applied
        """

    @abstractmethod
    def pull(self, entity_id: int) -> dict[str, Any] | None:
        """All attributes of one entity, or None if it does not exist."""

    @abstractmethod
    def find(self, attr: str, value: Any) -> list[int]:
        """Ids of entities whose attr holds value (a Ref or int for references)."""

    @abstractmethod
    def entities_with(self, attr: str) -> list[int]:
        """Ids of entities that have any value for attr."""

    @abstractmethod
    def referrers(self, attr: str, entity_id: int) -> list[int]:
        """Ids of entities whose reference attr points at entity_id."""

    def close(self) -> None:
        """Release backend resources."""

    def __enter__(self) -> GraphStore:
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()

    # Stock queries

    def all_types(self) -> list[dict[str, Any]]:
        """Every type with its interfaces, fields (and their types) and params."""
        return [self._pull_type_tree(e) for e in self.entities_with("type/name")]

    def one_type(self, name: str) -> dict[str, Any] | None:
        """The all_types() shape for the type with the given name."""
        found = self.find("type/name", name)
        if not found:
            return None
        return self._pull_type_tree(found[0])

    def all_interfaces(self) -> list[dict[str, Any]]:
        """Interface types, each with the types that implement it."""
        result = []
        for entity_id in self.find("type/interface", True):
            pulled = self.pull(entity_id) or {ID_KEY: entity_id}
            pulled["type/_implements"] = [
                self.pull(i) for i in self.referrers("type/implements", entity_id)
            ]
            result.append(pulled)
        return result

    def _pull_ref(self, value: Any) -> Any:
        if isinstance(value, dict) and set(value) == {ID_KEY}:
            return self.pull(value[ID_KEY]) or value
        return value

    def _pull_type_tree(self, entity_id: int) -> dict[str, Any]:
        pulled = self.pull(entity_id) or {ID_KEY: entity_id}
        if "type/implements" in pulled:
            pulled["type/implements"] = [self._pull_ref(r) for r in pulled["type/implements"]]

        fields = []
        for field_id in self.referrers("field/parent", entity_id):
            f = self.pull(field_id) or {ID_KEY: field_id}
            if "field/type" in f:
                f["field/type"] = self._pull_ref(f["field/type"])
            params = []
            for param_id in self.referrers("param/parent", field_id):
                p = self.pull(param_id) or {ID_KEY: param_id}
                if "param/type" in p:
                    p["param/type"] = self._pull_ref(p["param/type"])
                params.append(p)
            f["param/_parent"] = params
            fields.append(f)
        pulled["field/_parent"] = fields
        return pulled


StoreFactory = Callable[[Mapping[str, AttributeSpec]], GraphStore]
