"""
Declaration tree values for typegraph schemas.

A schema source is an ordered sequence of groups. Each group, field list and
parameter list is a vector (a Python list or tuple) whose elements are
symbols or further vectors:

    [
        [sym("default", **{"sql/tag": True}),
         sym("A", implements=["B"]), [sym("f", type="String"), [sym("p")]],
         sym("B")],
    ]

Invariants:
    - A Symbol's identity is its name; attached metadata does not take part
      in equality or hashing
    - Metadata is read-only once attached
    - Qualified metadata keys are "ns/name" strings

How to change safely:
    - Keep vectors as plain lists/tuples so YAML-loaded trees need no wrapping
    - New symbol-shaped inputs must be accepted by symbol_name()
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from dataclasses import field as dataclass_field
from types import MappingProxyType
from typing import Any

DEFAULT_MARKER = "default"


@dataclass(frozen=True, eq=False)
class Symbol:
    """A name with attached metadata.

    Attributes:
        name: Printed form of the symbol, used as the entity name
        meta: Attached metadata map (raw, unqualified or qualified keys)

    Example:
        >>> A = Symbol("A", {"implements": ["B"], "interface": False})
        >>> A == Symbol("A")
        True
    """

    name: str
    meta: Mapping[str, Any] = dataclass_field(default_factory=dict)

    def __post_init__(self) -> None:
        if not isinstance(self.name, str) or not self.name:
            raise ValueError(f"Symbol name must be a non-empty string, got {self.name!r}")
        object.__setattr__(self, "meta", MappingProxyType(dict(self.meta)))

    def with_meta(self, **meta: Any) -> Symbol:
        """Return a copy of this symbol with extra metadata merged in."""
        return Symbol(self.name, {**self.meta, **meta})

    def __str__(self) -> str:
        return self.name

    def __repr__(self) -> str:
        if self.meta:
            return f"Symbol({self.name!r}, {dict(self.meta)!r})"
        return f"Symbol({self.name!r})"

    def __hash__(self) -> int:
        return hash(self.name)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Symbol):
            return NotImplemented
        return self.name == other.name


def sym(name: str, **meta: Any) -> Symbol:
    """Convenience constructor for a symbol with metadata.

    Qualified keys cannot be keyword arguments; pass them with ``**{}``.

    Example:
        >>> sym("f", type="String")
        Symbol('f', {'type': 'String'})
        >>> sym("default", **{"sql/tag": True})
        Symbol('default', {'sql/tag': True})
    """
    return Symbol(name, meta)


def is_symbol(value: Any) -> bool:
    return isinstance(value, Symbol)


def is_vector(value: Any) -> bool:
    """Whether a declaration element is vector-shaped (list or tuple)."""
    return isinstance(value, (list, tuple))


def is_symbolic(value: Any) -> bool:
    """Whether a metadata value can name an entity (a Symbol or a string)."""
    return isinstance(value, Symbol) or (isinstance(value, str) and bool(value))


def is_default_marker(value: Any) -> bool:
    return isinstance(value, Symbol) and value.name == DEFAULT_MARKER


def symbol_name(value: Symbol | str) -> str:
    """Printed name of a symbol-like value.

    Raises:
        TypeError: If value is neither a Symbol nor a non-empty string
    """
    if isinstance(value, Symbol):
        return value.name
    if isinstance(value, str) and value:
        return value
    raise TypeError(f"Expected a symbol or name string, got {type(value).__name__}")
