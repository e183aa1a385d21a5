"""
SQLite-backed graph store for typegraph.

This module stores compiled entities as attribute values in SQLite:
- Scalar attribute values (JSON-encoded)
- Reference attribute values (entity -> entity)
- The attribute constraint declarations the store was created with

Invariants:
    - One transact() call is one SQLite transaction (BEGIN IMMEDIATE /
      COMMIT, ROLLBACK on any failure)
    - Permanent ids are positive and allocated in entity-list order
    - An entity carrying an existing value of an identity attribute
      ("type/name") resolves to that entity instead of a new one
    - Cardinality-one attributes are replaced, cardinality-many accumulate

How to change safely:
    - Table changes must keep existing databases readable
    - Use transactions for all write operations

Table schema:
    attributes:
        - name TEXT PRIMARY KEY
        - spec_json TEXT
    entities:
        - id INTEGER PRIMARY KEY AUTOINCREMENT
    datoms:
        - e INTEGER, a TEXT, v TEXT (JSON)
        - PRIMARY KEY (e, a, v), INDEX on (a, v)
    refs:
        - e INTEGER, a TEXT, target INTEGER
        - PRIMARY KEY (e, a, target), INDEX on (a, target)
"""

from __future__ import annotations

import json
import logging
import sqlite3
import threading
from collections.abc import Iterator, Mapping, Sequence
from contextlib import contextmanager
from pathlib import Path
from typing import Any

from ..errors import TransactionError
from ..schema.entities import ID_KEY, Entity, Ref, render_value
from .base import GraphStore, TransactionReport
from .meta_schema import META_SCHEMA, AttributeSpec, Uniqueness, attribute_spec

logger = logging.getLogger(__name__)


class SqliteGraphStore(GraphStore):
    """Graph store on a single SQLite database.

    Thread safety:
        Writes are serialized with an internal lock. The connection is
        shared, so reads from other threads require check_same_thread=False,
        which is set.

    Example:
        >>> store = SqliteGraphStore(META_SCHEMA)
        >>> report = store.transact(entities)
        >>> store.one_type("Query")["field/_parent"][0]["field/name"]
        'user'
    """

    def __init__(
        self,
        schema: Mapping[str, AttributeSpec] = META_SCHEMA,
        database: str = ":memory:",
        busy_timeout_ms: int = 5000,
    ) -> None:
        """Create or open the store and record the attribute declarations.

        Args:
            schema: Attribute constraint declarations
            database: SQLite path, or ":memory:"
            busy_timeout_ms: SQLite busy timeout
        """
        super().__init__(schema)
        self.database = database
        if database != ":memory:":
            Path(database).parent.mkdir(parents=True, exist_ok=True)

        self._conn = sqlite3.connect(
            database,
            timeout=busy_timeout_ms / 1000.0,
            isolation_level=None,  # Autocommit by default, explicit transactions
            check_same_thread=False,
        )
        self._conn.row_factory = sqlite3.Row
        self._conn.execute(f"PRAGMA busy_timeout = {busy_timeout_ms}")
        self._conn.execute("PRAGMA foreign_keys = ON")
        self._lock = threading.Lock()
        self._create_schema()
        logger.info(f"Opened graph store {database} with {len(self.schema)} declared attributes")

    def _create_schema(self) -> None:
        self._conn.executescript("""
            CREATE TABLE IF NOT EXISTS attributes (
                name TEXT PRIMARY KEY,
                spec_json TEXT NOT NULL
            );

            CREATE TABLE IF NOT EXISTS entities (
                id INTEGER PRIMARY KEY AUTOINCREMENT
            );

            CREATE TABLE IF NOT EXISTS datoms (
                e INTEGER NOT NULL REFERENCES entities(id),
                a TEXT NOT NULL,
                v TEXT NOT NULL,
                PRIMARY KEY (e, a, v)
            );

            CREATE INDEX IF NOT EXISTS idx_datoms_av ON datoms(a, v);

            CREATE TABLE IF NOT EXISTS refs (
                e INTEGER NOT NULL REFERENCES entities(id),
                a TEXT NOT NULL,
                target INTEGER NOT NULL REFERENCES entities(id),
                PRIMARY KEY (e, a, target)
            );

            CREATE INDEX IF NOT EXISTS idx_refs_target ON refs(a, target);
        """)
        with self._transaction() as conn:
            for name, spec in self.schema.items():
                conn.execute(
                    "INSERT OR REPLACE INTO attributes (name, spec_json) VALUES (?, ?)",
                    (name, json.dumps(spec.to_dict(), sort_keys=True)),
                )

    @contextmanager
    def _transaction(self) -> Iterator[sqlite3.Connection]:
        with self._lock:
            self._conn.execute("BEGIN IMMEDIATE")
            try:
                yield self._conn
                self._conn.execute("COMMIT")
            except Exception:
                self._conn.execute("ROLLBACK")
                raise

    def close(self) -> None:
        self._conn.close()

    def declared_attributes(self) -> dict[str, AttributeSpec]:
        """Attribute declarations as persisted in the database."""
        rows = self._conn.execute("SELECT name, spec_json FROM attributes").fetchall()
        return {row["name"]: AttributeSpec.from_dict(json.loads(row["spec_json"])) for row in rows}

    def transact(self, entities: Sequence[Entity]) -> TransactionReport:
        """Apply the entity list as one transaction.

        Args:
            entities: Entity records; records sharing an id are merged

        Returns:
            TransactionReport with the temporary -> permanent id mapping

        Raises:
            TransactionError: If an entity is invalid or violates a
                declared constraint (nothing is committed)
        """
        report = TransactionReport()
        pending: dict[tuple[str, str], int] = {}
        try:
            with self._transaction() as conn:
                for entity in entities:
                    self._resolve_entity_id(conn, entity, report, pending)

                for entity in entities:
                    for _, ref in entity.references():
                        if ref.id < 0 and ref.id not in report.tempids:
                            report.tempids[ref.id] = self._new_entity(conn)
                            report.dangling.append(ref.id)

                for entity in entities:
                    entity_id = report.tempids.get(entity.id, entity.id)
                    for attr, value in entity.attrs.items():
                        report.datom_count += self._write(conn, entity_id, attr, value, report)
                    report.entity_count += 1
        except sqlite3.IntegrityError as e:
            raise TransactionError(f"Transaction violates store constraints: {e}") from e

        if report.dangling:
            logger.warning(
                f"Transaction created {len(report.dangling)} entities with no attributes "
                f"for undeclared references: {report.dangling}"
            )
        logger.info(
            f"Transacted {report.entity_count} entities "
            f"({report.datom_count} values, {len(report.tempids)} ids resolved)"
        )
        return report

    def _new_entity(self, conn: sqlite3.Connection) -> int:
        cursor = conn.execute("INSERT INTO entities DEFAULT VALUES")
        return int(cursor.lastrowid)

    def _resolve_entity_id(
        self,
        conn: sqlite3.Connection,
        entity: Entity,
        report: TransactionReport,
        pending: dict[tuple[str, str], int],
    ) -> None:
        if entity.id >= 0:
            row = conn.execute("SELECT 1 FROM entities WHERE id = ?", (entity.id,)).fetchone()
            if row is None:
                raise TransactionError(
                    f"Entity {entity.id} does not exist", entity_id=entity.id
                )
            return
        if entity.id in report.tempids:
            return

        for attr, value in entity.attrs.items():
            spec = attribute_spec(self.schema, attr)
            if spec.unique != Uniqueness.IDENTITY:
                continue
            key = (attr, _encode(value))
            existing = pending.get(key) or self._lookup(conn, attr, value)
            if existing is not None:
                logger.debug(f"Upserting {attr}={value!r} onto entity {existing}")
                report.tempids[entity.id] = existing
                return

        report.tempids[entity.id] = self._new_entity(conn)
        for attr, value in entity.attrs.items():
            if attribute_spec(self.schema, attr).unique == Uniqueness.IDENTITY:
                pending[(attr, _encode(value))] = report.tempids[entity.id]

    def _lookup(self, conn: sqlite3.Connection, attr: str, value: Any) -> int | None:
        row = conn.execute(
            "SELECT e FROM datoms WHERE a = ? AND v = ? LIMIT 1",
            (attr, _encode(value)),
        ).fetchone()
        return row["e"] if row else None

    def _target(self, value: Any, attr: str, entity_id: int, report: TransactionReport) -> int:
        if not isinstance(value, Ref):
            raise TransactionError(
                f"Attribute '{attr}' expects a reference, got {value!r}",
                entity_id=entity_id,
                attribute=attr,
            )
        return report.tempids.get(value.id, value.id)

    def _write(
        self,
        conn: sqlite3.Connection,
        entity_id: int,
        attr: str,
        value: Any,
        report: TransactionReport,
    ) -> int:
        spec = attribute_spec(self.schema, attr)
        is_ref = spec.is_ref or isinstance(value, Ref) or (
            isinstance(value, frozenset) and bool(value) and all(isinstance(v, Ref) for v in value)
        )

        if spec.is_many:
            values = list(value) if isinstance(value, (frozenset, set, list, tuple)) else [value]
        elif isinstance(value, (frozenset, set)) and is_ref:
            raise TransactionError(
                f"Attribute '{attr}' holds one value, got {len(value)} references",
                entity_id=entity_id,
                attribute=attr,
            )
        else:
            values = [value]
            if is_ref:
                conn.execute("DELETE FROM refs WHERE e = ? AND a = ?", (entity_id, attr))
            else:
                conn.execute("DELETE FROM datoms WHERE e = ? AND a = ?", (entity_id, attr))

        written = 0
        for v in values:
            if is_ref:
                target = self._target(v, attr, entity_id, report)
                conn.execute(
                    "INSERT OR IGNORE INTO refs (e, a, target) VALUES (?, ?, ?)",
                    (entity_id, attr, target),
                )
            else:
                if spec.unique == Uniqueness.VALUE:
                    existing = self._lookup(conn, attr, v)
                    if existing is not None and existing != entity_id:
                        raise TransactionError(
                            f"Value {v!r} of unique attribute '{attr}' already belongs "
                            f"to entity {existing}",
                            entity_id=entity_id,
                            attribute=attr,
                        )
                conn.execute(
                    "INSERT OR IGNORE INTO datoms (e, a, v) VALUES (?, ?, ?)",
                    (entity_id, attr, _encode(v)),
                )
            written += 1
        return written

    def pull(self, entity_id: int) -> dict[str, Any] | None:
        if self._conn.execute("SELECT 1 FROM entities WHERE id = ?", (entity_id,)).fetchone() is None:
            return None

        result: dict[str, Any] = {ID_KEY: entity_id}
        for row in self._conn.execute(
            "SELECT a, v FROM datoms WHERE e = ? ORDER BY a, rowid", (entity_id,)
        ):
            value = json.loads(row["v"])
            if attribute_spec(self.schema, row["a"]).is_many:
                result.setdefault(row["a"], []).append(value)
            else:
                result[row["a"]] = value
        for row in self._conn.execute(
            "SELECT a, target FROM refs WHERE e = ? ORDER BY a, target", (entity_id,)
        ):
            ref = {ID_KEY: row["target"]}
            if attribute_spec(self.schema, row["a"]).is_many:
                result.setdefault(row["a"], []).append(ref)
            else:
                result[row["a"]] = ref
        return result

    def find(self, attr: str, value: Any) -> list[int]:
        if isinstance(value, Ref):
            value = value.id
        if attribute_spec(self.schema, attr).is_ref:
            return self.referrers(attr, value)
        rows = self._conn.execute(
            "SELECT DISTINCT e FROM datoms WHERE a = ? AND v = ? ORDER BY e",
            (attr, _encode(value)),
        )
        return [row["e"] for row in rows]

    def entities_with(self, attr: str) -> list[int]:
        rows = self._conn.execute(
            """
            SELECT e FROM datoms WHERE a = ?
            UNION
            SELECT e FROM refs WHERE a = ?
            ORDER BY e
            """,
            (attr, attr),
        )
        return [row["e"] for row in rows]

    def referrers(self, attr: str, entity_id: int) -> list[int]:
        rows = self._conn.execute(
            "SELECT e FROM refs WHERE a = ? AND target = ? ORDER BY e",
            (attr, entity_id),
        )
        return [row["e"] for row in rows]

    def count(self) -> int:
        """Number of entities in the store, including attribute-less ones."""
        return int(self._conn.execute("SELECT COUNT(*) FROM entities").fetchone()[0])


def _encode(value: Any) -> str:
    return json.dumps(render_value(value), sort_keys=True)
