"""
Entity builder for typegraph.

Walks the declaration tree (groups -> types -> fields -> params) and turns
it into an ordered list of Type, Field and Param entities linked by
identity references.

Group shape:
    [default?, TypeSym, [fields]?, TypeSym, [fields]?, ...]
Field list shape:
    [FieldSym, [params]?, FieldSym, ...]
Param list shape:
    [ParamSym, ParamSym, ...]

Invariants:
    - Entities are appended in construction order: type, then its fields,
      each field followed by its params
    - Group defaults reach every entity of their group and no other group
    - Symbol metadata overrides group defaults key by key
    - "<kind>/name" and "<kind>/parent" always come from the tree structure;
      metadata can set them for no entity kind

How to change safely:
    - New metadata behavior belongs in the reader registry, not here
    - Malformed shapes go through _malformed() so strict/lenient stays
      a single policy point
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping, Sequence
from typing import Any

from ..errors import MalformedDeclarationError
from .entities import Entity, EntityKind, Ref
from .identity import CompilationContext
from .readers import DROP, ReaderRegistry
from .symbols import Symbol, is_default_marker, is_symbol, is_vector

logger = logging.getLogger(__name__)

# Attributes only the tree structure may set, for every entity kind
STRUCTURAL_KEYS = frozenset(
    f"{kind.value}/{attr}" for kind in EntityKind for attr in ("name", "parent")
)


class EntityBuilder:
    """Builds the entity list of one compilation pass.

    Attributes:
        ctx: Identity table and policy for the pass
        registry: Attribute readers applied to every metadata key
        entities: Entities built so far, in construction order

    Example:
        >>> ctx = CompilationContext()
        >>> builder = EntityBuilder(ctx)
        >>> builder.build_group([sym("A"), [sym("f", type="String")]])
        >>> [e.name for e in builder.entities]
        ['A', 'f']
    """

    def __init__(
        self,
        ctx: CompilationContext,
        registry: ReaderRegistry | None = None,
        entities: list[Entity] | None = None,
    ) -> None:
        self.ctx = ctx
        self.registry = registry or ReaderRegistry.default()
        self.entities: list[Entity] = entities if entities is not None else []

    def build(self, sources: Iterable[Iterable[Sequence[Any]]]) -> list[Entity]:
        """Build every group of every source, in order.

        Args:
            sources: Schema sources, each a sequence of groups

        Returns:
            The full entity list
        """
        for source in sources:
            for group in source:
                self.build_group(group)
        return self.entities

    def build_group(self, group: Sequence[Any]) -> None:
        """Build one group: optional default marker, then type/fields pairs."""
        if not is_vector(group):
            self._malformed(f"Expected a group vector, got {group!r}", group, "group")
            return

        elements = list(group)
        defaults: Mapping[str, Any] = {}
        if elements and is_default_marker(elements[0]):
            defaults = elements[0].meta
            elements = elements[1:]

        i = 0
        while i < len(elements):
            element = elements[i]
            if not is_symbol(element):
                self._malformed(
                    f"Expected a type symbol, got {element!r}", element, "type"
                )
                i += 1
                continue

            self._build_type(element, defaults)
            if i + 1 < len(elements) and is_vector(elements[i + 1]):
                self._build_fields(element, elements[i + 1], defaults)
                i += 2
            else:
                i += 1

    def _build_type(self, t: Symbol, defaults: Mapping[str, Any]) -> None:
        identity = self.ctx.declare(t)
        attrs = self._apply_metas(EntityKind.TYPE, t, defaults)
        attrs["type/name"] = t.name
        self._append(Entity(EntityKind.TYPE, identity, attrs))

    def _build_fields(
        self,
        t: Symbol,
        fields: Sequence[Any],
        defaults: Mapping[str, Any],
    ) -> None:
        last_field: Symbol | None = None
        for element in fields:
            if is_symbol(element):
                identity = self.ctx.declare(element, t)
                parent = Ref(self.ctx.resolve(t))
                attrs = self._apply_metas(EntityKind.FIELD, element, defaults)
                attrs["field/name"] = element.name
                attrs["field/parent"] = parent
                self._append(Entity(EntityKind.FIELD, identity, attrs))
                last_field = element
            elif is_vector(element):
                if last_field is None:
                    self._malformed(
                        f"Parameter list {element!r} in type '{t.name}' has no preceding field",
                        element,
                        f"{t.name}.params",
                        level=logging.DEBUG,
                    )
                else:
                    self._build_params(t, last_field, element, defaults)
                last_field = None
            else:
                self._malformed(
                    f"Expected a field symbol or parameter list in type '{t.name}', got {element!r}",
                    element,
                    f"{t.name}.fields",
                )

    def _build_params(
        self,
        t: Symbol,
        field: Symbol,
        params: Sequence[Any],
        defaults: Mapping[str, Any],
    ) -> None:
        parent = Ref(self.ctx.resolve(field, t))
        for element in params:
            if not is_symbol(element):
                self._malformed(
                    f"Expected a param symbol in '{t.name}.{field.name}', got {element!r}",
                    element,
                    f"{t.name}.{field.name}.params",
                )
                continue
            identity = self.ctx.declare(element, t, field)
            attrs = self._apply_metas(EntityKind.PARAM, element, defaults)
            attrs["param/name"] = element.name
            attrs["param/parent"] = parent
            self._append(Entity(EntityKind.PARAM, identity, attrs))

    def _apply_metas(
        self,
        kind: EntityKind,
        symbol: Symbol,
        defaults: Mapping[str, Any],
    ) -> dict[str, Any]:
        """Merge defaults with symbol metadata and run every key through the readers."""
        attrs: dict[str, Any] = {}
        for key, value in {**defaults, **symbol.meta}.items():
            new_key, new_value = self.registry.read(self.ctx, kind, key, value)
            if new_value is DROP:
                continue
            attrs[new_key] = new_value
        for key in [k for k in attrs if k in STRUCTURAL_KEYS]:
            logger.warning(f"Ignoring metadata '{key}' on {kind.value} '{symbol.name}'")
            del attrs[key]
        return attrs

    def _append(self, entity: Entity) -> None:
        logger.debug(f"Built {entity.kind.value} '{entity.name}' (id={entity.id})")
        self.entities.append(entity)

    def _malformed(
        self,
        message: str,
        element: Any,
        position: str,
        level: int = logging.WARNING,
    ) -> None:
        if self.ctx.strict:
            raise MalformedDeclarationError(message, element=element, position=position)
        logger.log(level, f"{message}; skipping")
