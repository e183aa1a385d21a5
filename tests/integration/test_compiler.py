"""
Integration tests for full compile passes.

Tests cover:
- Scenarios: implements across types, per-group defaults, types without
  fields, dangling implements
- Primitive seeding and type-name uniqueness in the store
- Identity stability within a pass and isolation between passes
- Validation veto and store failure propagation
- Strict mode
"""

import logging
import threading

import pytest

from typegraph.config import Settings
from typegraph.errors import MalformedDeclarationError, SchemaValidationError, TransactionError
from typegraph.schema import compile_entities, compile_schema, dangling_references, sym
from typegraph.schema.entities import EntityKind, Ref
from typegraph.schema.primitives import PRIMITIVE_TYPES
from typegraph.schema.readers import AttributeReader, ReaderKind, ReaderRegistry
from typegraph.store.sqlite import SqliteGraphStore


@pytest.fixture
def settings():
    return Settings(strict=False, database=":memory:")


def canonical(entities):
    """Entity list with identities replaced by declaration names."""
    names = {}
    for e in entities:
        owner = names.get(e.parent.id) if e.parent else None
        names[e.id] = f"{owner}.{e.name}" if owner else e.name

    def render(value):
        if isinstance(value, Ref):
            return names.get(value.id, "?")
        if isinstance(value, frozenset):
            return sorted(render(v) for v in value)
        return value

    return [
        (e.kind.value, names[e.id], sorted((k, repr(render(v))) for k, v in e.attrs.items()))
        for e in entities
    ]


class TestScenarios:
    """End-to-end scenarios."""

    def test_implements_and_nested_params(self, settings):
        """Type A with field f and param p implements B, declared later."""
        store = compile_schema(
            [[sym("A", implements=["B"]), [sym("f"), [sym("p")]], sym("B")]],
            settings=settings,
        )
        a = store.one_type("A")
        assert [f["field/name"] for f in a["field/_parent"]] == ["f"]
        assert [p["param/name"] for p in a["field/_parent"][0]["param/_parent"]] == ["p"]
        assert [t["type/name"] for t in a["type/implements"]] == ["B"]

        b = store.one_type("B")
        assert b["field/_parent"] == []
        assert a["type/implements"][0]["db/id"] == b["db/id"]

    def test_group_defaults_stay_in_their_group(self, settings):
        """Each group's default flag reaches only its own types."""
        store = compile_schema(
            [
                [sym("default", **{"datomic/tag": True}), sym("A"), [sym("f")], sym("B")],
                [sym("default", **{"sql/tag": True}), sym("C"), [sym("f")]],
            ],
            settings=settings,
        )
        for name in ("A", "B"):
            t = store.one_type(name)
            assert t["datomic/tag"] is True
            assert "sql/tag" not in t
        c = store.one_type("C")
        assert c["sql/tag"] is True
        assert "datomic/tag" not in c
        assert c["field/_parent"][0]["sql/tag"] is True

    def test_type_without_fields(self, settings):
        store = compile_schema([[sym("Lonely")]], settings=settings)
        assert store.one_type("Lonely")["field/_parent"] == []

    def test_dangling_implements(self, settings, caplog):
        """An undeclared implements target is a dangling identity, not a failure."""
        caplog.set_level(logging.WARNING, logger="typegraph")
        entities = compile_entities([[sym("A", implements=["Ghost"])]], settings=settings)
        a = [e for e in entities if e.name == "A"][0]
        (ghost_ref,) = a.get("implements")
        assert ghost_ref.id not in {e.id for e in entities}
        assert "Ghost" in caplog.text

        store = compile_schema([[sym("A", implements=["Ghost"])]], settings=settings)
        assert store.one_type("Ghost") is None
        implemented = store.one_type("A")["type/implements"]
        assert len(implemented) == 1
        assert "type/name" not in implemented[0]


class TestProperties:
    """Invariants that hold for any schema."""

    SOURCE = [
        [
            sym("default", doc="core"),
            sym("Node", interface=True),
            [sym("id", type="ID")],
            sym("User", implements=["Node", ["Entity"]]),
            [sym("id", type="ID"), sym("friends", type="User"), [sym("first", type="Integer")]],
            sym("Entity", interface=True),
        ],
        [
            sym("Query"),
            [sym("user", type="User"), [sym("id", type="ID")], sym("node", type="Node")],
            sym("User", **{"sql/table": "users"}),
        ],
    ]

    def test_primitives_first_and_once(self, settings):
        entities = compile_entities(self.SOURCE, settings=settings)
        assert [e.name for e in entities[: len(PRIMITIVE_TYPES)]] == list(PRIMITIVE_TYPES)

        store = compile_schema(self.SOURCE, settings=settings)
        for name in PRIMITIVE_TYPES:
            assert len(store.find("type/name", name)) == 1

    def test_one_type_entity_per_name(self, settings):
        """User is declared twice but stored once, with both attribute sets."""
        store = compile_schema(self.SOURCE, settings=settings)
        assert len(store.find("type/name", "User")) == 1
        user = store.one_type("User")
        assert user["sql/table"] == "users"
        assert sorted(t["type/name"] for t in user["type/implements"]) == ["Entity", "Node"]

    def test_every_occurrence_same_identity(self, settings):
        entities = compile_entities(self.SOURCE, settings=settings)
        ids = {}
        for e in entities:
            if e.kind == EntityKind.TYPE:
                ids.setdefault(e.name, set()).add(e.id)
        assert all(len(v) == 1 for v in ids.values())

        refs = {ref.id for e in entities for _attr, ref in e.references()}
        type_ids = {next(iter(v)) for v in ids.values()}
        assert refs <= type_ids | {e.id for e in entities}

    def test_parents_resolve_in_pass(self, settings):
        entities = compile_entities(self.SOURCE, settings=settings)
        by_id = {e.id: e for e in entities}
        for e in entities:
            if e.kind == EntityKind.FIELD:
                assert by_id[e.parent.id].kind == EntityKind.TYPE
            elif e.kind == EntityKind.PARAM:
                assert by_id[e.parent.id].kind == EntityKind.FIELD

    def test_same_field_name_in_two_types(self, settings):
        store = compile_schema(self.SOURCE, settings=settings)
        node_id = store.one_type("Node")["field/_parent"][0]["db/id"]
        user_id = store.one_type("User")["field/_parent"][0]["db/id"]
        assert node_id != user_id

    def test_repeated_passes_are_isomorphic(self, settings):
        first = compile_entities(self.SOURCE, settings=settings)
        compile_entities([[sym("Other"), [sym("x")]]], settings=settings)
        second = compile_entities(self.SOURCE, settings=settings)
        assert canonical(first) == canonical(second)
        assert [e.id for e in first] == [e.id for e in second]

    def test_concurrent_passes_do_not_interfere(self, settings):
        """Each pass owns its identity table."""
        results = {}

        def run(key):
            results[key] = canonical(compile_entities(self.SOURCE, settings=settings))

        threads = [threading.Thread(target=run, args=(i,)) for i in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert len({repr(r) for r in results.values()}) == 1

    def test_multiple_sources_form_one_pass(self, settings):
        store = compile_schema(
            [[sym("A", implements=["B"])]],
            [[sym("B")]],
            settings=settings,
        )
        a = store.one_type("A")
        assert a["type/implements"][0]["type/name"] == "B"
        assert len(store.find("type/name", "B")) == 1


class TestCompilerPolicy:
    """Validation, store failures and strictness."""

    def test_validator_sees_full_list(self, settings):
        seen = []

        def validator(entities):
            seen.extend(entities)
            return True

        compile_schema([[sym("A")]], settings=settings, validator=validator)
        assert [e.name for e in seen] == list(PRIMITIVE_TYPES) + ["A"]

    def test_validation_failure_skips_store(self, settings):
        created = []

        def factory(schema):
            created.append(schema)
            return SqliteGraphStore(schema)

        with pytest.raises(SchemaValidationError, match="validation failed") as exc_info:
            compile_schema(
                [[sym("A")]],
                settings=settings,
                validator=lambda entities: False,
                store_factory=factory,
            )
        assert exc_info.value.entity_count == len(PRIMITIVE_TYPES) + 1
        assert created == []

    def test_store_failure_propagates(self, settings):
        """A reader that emits a scalar for a reference attribute fails the transaction."""
        registry = ReaderRegistry.default()
        registry.register("field", "type", AttributeReader(ReaderKind.PASS_THROUGH))
        with pytest.raises(TransactionError, match="expects a reference"):
            compile_schema(
                [[sym("A"), [sym("f", type="String")]]],
                settings=settings,
                registry=registry,
            )

    def test_registered_expander_reaches_the_store(self, settings):
        registry = ReaderRegistry.default()
        registry.register("type", "extends", AttributeReader(ReaderKind.REFERENCE_EXPANDER))
        store = compile_schema(
            [[sym("A", extends=["B", ["C"]]), sym("B"), sym("C")]],
            settings=settings,
            registry=registry,
        )
        assert store.schema["type/extends"].is_many
        a = store.one_type("A")
        extended = sorted(store.pull(r["db/id"])["type/name"] for r in a["type/extends"])
        assert extended == ["B", "C"]

    def test_registered_single_reference_reaches_the_store(self, settings):
        registry = ReaderRegistry.default()
        registry.register("field", "owner", AttributeReader(ReaderKind.SINGLE_REFERENCE))
        store = compile_schema(
            [[sym("A"), [sym("f", owner="B")], sym("B")]],
            settings=settings,
            registry=registry,
        )
        f = store.one_type("A")["field/_parent"][0]
        assert store.pull(f["field/owner"]["db/id"])["type/name"] == "B"

    def test_store_factory_receives_meta_schema(self, settings):
        received = {}

        def factory(schema):
            received.update(schema)
            return SqliteGraphStore(schema)

        compile_schema([[sym("A")]], settings=settings, store_factory=factory)
        assert "type/name" in received
        assert received["type/implements"].is_many

    def test_strict_mode_rejects_nested_type_vector(self):
        source = [[sym("C"), [sym("f"), [sym("p")]], [sym("D"), [sym("f"), [sym("p")]]]]]
        lenient = compile_entities(source, settings=Settings(strict=False))
        assert "D" not in {e.name for e in lenient}
        with pytest.raises(MalformedDeclarationError):
            compile_entities(source, settings=Settings(strict=True))

    def test_extra_primitives(self):
        entities = compile_entities([[sym("A")]], settings=Settings(extra_primitive_types=["Money"]))
        assert [e.name for e in entities] == [*PRIMITIVE_TYPES, "Money", "A"]

    def test_builtin_primitives_cannot_be_removed(self):
        entities = compile_entities(
            [[sym("A"), [sym("f", type="String")]]],
            settings=Settings(extra_primitive_types=[]),
        )
        assert [e.name for e in entities[: len(PRIMITIVE_TYPES)]] == list(PRIMITIVE_TYPES)
        assert dangling_references(entities) == []

    def test_transaction_form(self, settings):
        entities = compile_entities(
            [[sym("A", implements=["B"]), [sym("f", tag="String")], sym("B")]],
            settings=settings,
        )
        assert [e.to_dict() for e in entities[len(PRIMITIVE_TYPES):]] == [
            {"db/id": -7, "type/implements": [{"db/id": -8}], "type/name": "A"},
            {"db/id": -9, "field/type": {"db/id": -1}, "field/name": "f", "field/parent": {"db/id": -7}},
            {"db/id": -8, "type/name": "B"},
        ]

    def test_foreign_structural_metadata_does_not_merge_entities(self, settings):
        store = compile_schema(
            [[sym("A"), [sym("f", **{"type/name": "String"})]]],
            settings=settings,
        )
        assert len(store.find("type/name", "String")) == 1
        string = store.one_type("String")
        assert "field/name" not in string
        assert [f["field/name"] for f in store.one_type("A")["field/_parent"]] == ["f"]
