"""
Attribute constraint declarations for the typegraph store.

The store receives these declarations once, when it is created. They tell
it which attributes are references, which hold many values, which identify
an entity for upserts, and which are indexed for lookup.

Invariants:
    - "type/name" identifies a Type: transacting an existing name updates
      that entity instead of creating a second one
    - "type/implements" holds many references
    - "<kind>/parent" and "<kind>/type" hold exactly one reference
    - Attributes not declared here are single-valued scalars

How to change safely:
    - Reference attributes of registered SINGLE_REFERENCE and
      REFERENCE_EXPANDER readers are declared by extend_meta_schema();
      attributes written by CUSTOM readers must be declared here
    - Changing a declaration changes how existing stores are read; create
      a fresh store instead
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Any


class Cardinality(Enum):
    ONE = "one"
    MANY = "many"


class ValueType(Enum):
    SCALAR = "scalar"
    REF = "ref"


class Uniqueness(Enum):
    """Uniqueness constraints.

    IDENTITY upserts onto the existing entity; VALUE rejects the duplicate.
    """

    IDENTITY = "identity"
    VALUE = "value"


@dataclass(frozen=True)
class AttributeSpec:
    """Constraint declaration for one attribute.

    Attributes:
        cardinality: One value or a set of values per entity
        value_type: Scalar (JSON-encoded) or reference to another entity
        unique: Uniqueness constraint, if any
        index: Whether lookups by value should be indexed
    """

    cardinality: Cardinality = Cardinality.ONE
    value_type: ValueType = ValueType.SCALAR
    unique: Uniqueness | None = None
    index: bool = False

    @property
    def is_ref(self) -> bool:
        return self.value_type == ValueType.REF

    @property
    def is_many(self) -> bool:
        return self.cardinality == Cardinality.MANY

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary representation."""
        result: dict[str, Any] = {
            "cardinality": self.cardinality.value,
            "value_type": self.value_type.value,
        }
        if self.unique is not None:
            result["unique"] = self.unique.value
        if self.index:
            result["index"] = True
        return result

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> AttributeSpec:
        """Create from dictionary representation."""
        return cls(
            cardinality=Cardinality(data.get("cardinality", "one")),
            value_type=ValueType(data.get("value_type", "scalar")),
            unique=Uniqueness(data["unique"]) if data.get("unique") else None,
            index=data.get("index", False),
        )


SCALAR = AttributeSpec()

_ONE_REF = AttributeSpec(value_type=ValueType.REF)

META_SCHEMA: Mapping[str, AttributeSpec] = {
    "type/name": AttributeSpec(unique=Uniqueness.IDENTITY, index=True),
    "type/implements": AttributeSpec(cardinality=Cardinality.MANY, value_type=ValueType.REF),
    "type/interface": AttributeSpec(index=True),
    "field/name": AttributeSpec(index=True),
    "field/parent": _ONE_REF,
    "field/type": _ONE_REF,
    "param/name": AttributeSpec(index=True),
    "param/parent": _ONE_REF,
    "param/type": _ONE_REF,
}


def attribute_spec(schema: Mapping[str, AttributeSpec], attr: str) -> AttributeSpec:
    """Declared spec for an attribute, or the scalar default."""
    return schema.get(attr, SCALAR)


def extend_meta_schema(
    references: Mapping[str, bool],
    base: Mapping[str, AttributeSpec] = META_SCHEMA,
) -> dict[str, AttributeSpec]:
    """Declare extra reference attributes on top of a base schema.

    Args:
        references: Attribute name -> whether it holds many references
        base: Declarations that take precedence over the extra ones

    Returns:
        New declaration map; base entries are never overridden
    """
    schema = {
        attr: AttributeSpec(
            cardinality=Cardinality.MANY if many else Cardinality.ONE,
            value_type=ValueType.REF,
        )
        for attr, many in references.items()
    }
    schema.update(base)
    return schema
