"""
Unit tests for validation helpers.

Tests cover:
- The accept-all default policy
- Dangling reference diagnostics
- Parent integrity checks
"""

from typegraph.schema.entities import Entity, EntityKind, Ref
from typegraph.schema.validator import accept_all, dangling_references, parent_errors


def type_entity(id, name, **attrs):
    return Entity(EntityKind.TYPE, id, {"type/name": name, **attrs})


class TestValidator:
    """Tests for validator helpers."""

    def test_accept_all(self):
        assert accept_all([]) is True
        assert accept_all([type_entity(-1, "A")]) is True

    def test_no_dangling_references(self):
        entities = [
            type_entity(-1, "A", **{"type/implements": frozenset({Ref(-2)})}),
            type_entity(-2, "B"),
        ]
        assert dangling_references(entities) == []

    def test_dangling_reference_reported(self):
        entities = [type_entity(-1, "A", **{"type/implements": frozenset({Ref(-2)})})]
        issues = dangling_references(entities)
        assert len(issues) == 1
        assert "Type 'A'" in issues[0]
        assert "undeclared identity -2" in issues[0]

    def test_parent_errors(self):
        entities = [
            type_entity(-1, "A"),
            Entity(EntityKind.FIELD, -2, {"field/name": "f", "field/parent": Ref(-1)}),
            Entity(EntityKind.PARAM, -3, {"param/name": "p", "param/parent": Ref(-1)}),
            Entity(EntityKind.FIELD, -4, {"field/name": "g"}),
        ]
        errors = parent_errors(entities)
        assert len(errors) == 2
        assert "Param 'p'" in errors[0]
        assert "Field 'g'" in errors[1]
