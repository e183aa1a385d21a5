"""
Attribute reader registry for typegraph.

Readers normalize one raw metadata (key, value) pair into a qualified
attribute key and a processed value. The registry maps raw keys, per entity
kind, to a reader; keys without a reader pass through with namespacing only.

Reader kinds:
- PASS_THROUGH: value unchanged
- SINGLE_REFERENCE: one symbol -> one Ref
- REFERENCE_EXPANDER: symbol or nested vector of symbols -> frozenset[Ref]
- CUSTOM: any callable (ctx, qualified_key, value) -> (key, value)

Invariants:
    - Lookup uses the raw key, so "sql/tag" never matches the "tag" reader
    - Unqualified keys are qualified with the entity kind; qualified keys
      are left unchanged
    - Readers are bound to their namespace once, at registration time

How to change safely:
    - Register new keys on a copy of the default registry instead of
      mutating the shared default
    - A reader may return DROP as the value to omit the attribute

Example:
    >>> registry = ReaderRegistry.default()
    >>> registry.register("type", "extends", AttributeReader(ReaderKind.REFERENCE_EXPANDER))
    >>> registry.read(ctx, "type", "extends", ["B", ["C"]])
    ('type/extends', frozenset({Ref(id=-1), Ref(id=-2)}))
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterator
from dataclasses import dataclass
from enum import Enum
from typing import Any

from ..errors import MalformedDeclarationError
from .entities import EntityKind, Ref
from .identity import CompilationContext
from .symbols import is_symbolic, is_vector

logger = logging.getLogger(__name__)

ReaderFn = Callable[[CompilationContext, str, Any], tuple[str, Any]]


class _Drop:
    def __repr__(self) -> str:
        return "DROP"


DROP: Any = _Drop()


class ReaderKind(Enum):
    """Normalization behaviors available to metadata keys."""

    PASS_THROUGH = "pass_through"
    SINGLE_REFERENCE = "single_reference"
    REFERENCE_EXPANDER = "reference_expander"
    CUSTOM = "custom"


def qualify(namespace: str | EntityKind, key: str) -> str:
    """Qualify a metadata key with an entity namespace.

    Example:
        >>> qualify("type", "interface")
        'type/interface'
        >>> qualify("field", "sql/tag")
        'sql/tag'
    """
    if isinstance(namespace, EntityKind):
        namespace = namespace.value
    if "/" in key:
        return key
    return f"{namespace}/{key}"


def flatten(value: Any) -> Iterator[Any]:
    """Flatten arbitrarily nested vectors, depth-first in source order."""
    if is_vector(value):
        for item in value:
            yield from flatten(item)
    else:
        yield value


def _reject(ctx: CompilationContext, key: str, value: Any) -> Any:
    message = f"Attribute '{key}' expects a symbol reference, got {value!r}"
    if ctx.strict:
        raise MalformedDeclarationError(message, element=value, position=key)
    logger.warning(f"{message}; dropping it")
    return DROP


def _pass_through(ctx: CompilationContext, key: str, value: Any) -> tuple[str, Any]:
    return key, value


def _single_reference(target: str | None) -> ReaderFn:
    def read(ctx: CompilationContext, key: str, value: Any) -> tuple[str, Any]:
        new_key = qualify(key.split("/", 1)[0], target) if target else key
        if not is_symbolic(value):
            return new_key, _reject(ctx, key, value)
        return new_key, Ref(ctx.resolve(value))

    return read


def _reference_expander(target: str | None) -> ReaderFn:
    def read(ctx: CompilationContext, key: str, value: Any) -> tuple[str, Any]:
        new_key = qualify(key.split("/", 1)[0], target) if target else key
        refs = set()
        for item in flatten(value):
            if not is_symbolic(item):
                _reject(ctx, key, item)
                continue
            refs.add(Ref(ctx.resolve(item)))
        return new_key, frozenset(refs)

    return read


@dataclass(frozen=True)
class AttributeReader:
    """How one metadata key is normalized.

    Attributes:
        kind: The normalization behavior
        target: Unqualified attribute name to write instead of the raw key
            (e.g. "tag" is written as "<kind>/type")
        fn: The normalization callable, for CUSTOM readers only
    """

    kind: ReaderKind
    target: str | None = None
    fn: ReaderFn | None = None

    def __post_init__(self) -> None:
        if self.kind == ReaderKind.CUSTOM and self.fn is None:
            raise ValueError("fn required for CUSTOM reader")
        if self.kind != ReaderKind.CUSTOM and self.fn is not None:
            raise ValueError(f"fn is only allowed on CUSTOM readers, not {self.kind.value}")

    def bind(self) -> ReaderFn:
        """Resolve this reader into its normalization callable."""
        if self.kind == ReaderKind.CUSTOM:
            assert self.fn is not None
            return self.fn
        if self.kind == ReaderKind.SINGLE_REFERENCE:
            return _single_reference(self.target)
        if self.kind == ReaderKind.REFERENCE_EXPANDER:
            return _reference_expander(self.target)
        if self.target:
            target = self.target
            return lambda ctx, key, value: (qualify(key.split("/", 1)[0], target), value)
        return _pass_through


class ReaderRegistry:
    """Per entity kind mapping of raw metadata keys to readers.

    Example:
        >>> registry = ReaderRegistry()
        >>> registry.register("field", "type", AttributeReader(ReaderKind.SINGLE_REFERENCE))
        >>> registry.read(ctx, "field", "type", "String")
        ('field/type', Ref(id=-1))
    """

    def __init__(self) -> None:
        self._readers: dict[EntityKind, dict[str, AttributeReader]] = {k: {} for k in EntityKind}
        self._bound: dict[EntityKind, dict[str, ReaderFn]] = {k: {} for k in EntityKind}

    @classmethod
    def default(cls) -> ReaderRegistry:
        """Registry with the readers every schema relies on."""
        registry = cls()
        registry.register(EntityKind.TYPE, "implements", AttributeReader(ReaderKind.REFERENCE_EXPANDER))
        registry.register(EntityKind.TYPE, "interface", AttributeReader(ReaderKind.PASS_THROUGH))
        for kind in (EntityKind.FIELD, EntityKind.PARAM):
            registry.register(kind, "type", AttributeReader(ReaderKind.SINGLE_REFERENCE))
            registry.register(kind, "tag", AttributeReader(ReaderKind.SINGLE_REFERENCE, target="type"))
        return registry

    def register(
        self,
        kind: EntityKind | str,
        key: str,
        reader: AttributeReader | ReaderFn,
    ) -> None:
        """Register a reader for a raw metadata key.

        Args:
            kind: Entity kind the key is read on
            key: Raw metadata key, exactly as written in the source
            reader: An AttributeReader, or a plain callable (wrapped as CUSTOM)

        Example:
            >>> registry.register("type", "extends", AttributeReader(ReaderKind.REFERENCE_EXPANDER))
        """
        if isinstance(kind, str):
            kind = EntityKind.from_str(kind)
        if not isinstance(reader, AttributeReader):
            reader = AttributeReader(ReaderKind.CUSTOM, fn=reader)
        if key in self._readers[kind]:
            logger.debug(f"Replacing reader for {kind.value} key '{key}'")
        self._readers[kind][key] = reader
        self._bound[kind][key] = reader.bind()

    def reader_for(self, kind: EntityKind | str, key: str) -> AttributeReader | None:
        if isinstance(kind, str):
            kind = EntityKind.from_str(kind)
        return self._readers[kind].get(key)

    def read(
        self,
        ctx: CompilationContext,
        kind: EntityKind | str,
        key: str,
        value: Any,
    ) -> tuple[str, Any]:
        """Normalize one raw (key, value) pair read on an entity kind.

        Returns:
            Tuple of (qualified_key, processed_value); the value is DROP when
            the attribute should be omitted
        """
        if isinstance(kind, str):
            kind = EntityKind.from_str(kind)
        qualified = qualify(kind, key)
        fn = self._bound[kind].get(key)
        if fn is None:
            return qualified, value
        return fn(ctx, qualified, value)

    def copy(self) -> ReaderRegistry:
        """Independent copy, for registering extra keys without side effects."""
        clone = ReaderRegistry()
        for kind in EntityKind:
            clone._readers[kind] = dict(self._readers[kind])
            clone._bound[kind] = dict(self._bound[kind])
        return clone

    def keys(self, kind: EntityKind | str) -> list[str]:
        if isinstance(kind, str):
            kind = EntityKind.from_str(kind)
        return sorted(self._readers[kind])

    def reference_attributes(self) -> dict[str, bool]:
        """Attributes written by reference readers, mapped to whether they hold many refs.

        CUSTOM readers are not included; their output is opaque until run.

        Example:
            >>> registry.register("type", "extends", AttributeReader(ReaderKind.REFERENCE_EXPANDER))
            >>> registry.reference_attributes()["type/extends"]
            True
        """
        result: dict[str, bool] = {}
        for kind in EntityKind:
            for key, reader in self._readers[kind].items():
                if reader.kind not in (ReaderKind.SINGLE_REFERENCE, ReaderKind.REFERENCE_EXPANDER):
                    continue
                qualified = qualify(kind, key)
                if reader.target:
                    qualified = qualify(qualified.split("/", 1)[0], reader.target)
                result[qualified] = reader.kind == ReaderKind.REFERENCE_EXPANDER
        return result
