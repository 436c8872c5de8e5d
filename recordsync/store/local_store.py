"""Normalized in-memory store of entity records.

Each entity type maps identity values to the canonical snapshot of a record.
Snapshots only hold attribute fields; relations are normalized out on merge
and resolved again by the query builder.
"""

import logging
from typing import Any, Callable

from ..schema import EntitySchema, SchemaRegistry
from .query import Query

logger = logging.getLogger(__name__)


class LocalStore:
    """Process-local canonical cache of records, keyed by entity and identity."""

    def __init__(self, registry: SchemaRegistry):
        """Initialize the store.

        Args:
            registry: Schemas of the entities this store may hold.
        """
        self.registry = registry
        self._tables: dict[str, dict[Any, dict[str, Any]]] = {}
        self._pending: dict[str, set[Any]] = {}
        self._counters: dict[str, int] = {}

    def _table(self, entity: str) -> dict[Any, dict[str, Any]]:
        # Unknown entities fail here with SchemaError
        self.registry.get(entity)
        return self._tables.setdefault(entity, {})

    # === Reads ===

    def query(self, entity: str) -> Query:
        """Start a query against one entity."""
        return Query(self, entity)

    def rows(self, entity: str) -> list[dict[str, Any]]:
        """Canonical snapshots in insertion order. Callers must not mutate them."""
        return list(self._table(entity).values())

    def snapshot(self, entity: str, record_id: Any) -> dict[str, Any] | None:
        """Copy of the canonical snapshot for an identity, or None."""
        schema = self.registry.get(entity)
        row = self._table(entity).get(schema.normalize_id(record_id))
        return dict(row) if row is not None else None

    def all(self, entity: str) -> list[dict[str, Any]]:
        """All records of an entity with relations loaded."""
        return self.query(entity).with_all().get()

    def where(self, entity: str, filters: dict[str, Any]) -> list[dict[str, Any]]:
        """Records matching every field equality in `filters`."""
        query = self.query(entity).with_all()
        for key, value in filters.items():
            query = query.where(key, value)
        return query.get()

    def first(self, entity: str) -> dict[str, Any] | None:
        return self.query(entity).with_all().first()

    def last(self, entity: str) -> dict[str, Any] | None:
        return self.query(entity).with_all().last()

    def find(self, entity: str, record_id: Any) -> dict[str, Any] | None:
        return self.query(entity).with_all().find(record_id)

    def is_pending(self, entity: str, record_id: Any) -> bool:
        """True if the record was inserted locally and never confirmed remotely."""
        schema = self.registry.get(entity)
        return schema.normalize_id(record_id) in self._pending.get(entity, set())

    # === Writes ===

    def _next_id(self, entity: str) -> int:
        counter = self._counters.get(entity, 0) + 1
        self._counters[entity] = counter
        return counter

    def _track_id(self, entity: str, record_id: Any) -> None:
        if isinstance(record_id, int) and not isinstance(record_id, bool):
            self._counters[entity] = max(self._counters.get(entity, 0), record_id)

    def _upsert(
        self,
        schema: EntitySchema,
        record: dict[str, Any],
        touched: dict[str, list[dict[str, Any]]],
        pending: bool,
    ) -> dict[str, Any]:
        """Replace the snapshot for one record, normalizing nested relations."""
        data = dict(record)
        nested: dict[str, Any] = {}
        for name in schema.relation_names:
            value = data.pop(name, None)
            if value is not None:
                nested[name] = value

        snapshot = schema.defaults()
        for name in schema.attribute_names:
            if name in data:
                snapshot[name] = data[name]

        # Parents referenced by belongs_to are merged first so the foreign
        # key on this record can point at them.
        for name, value in nested.items():
            field = schema.fields[name]
            if field.kind != "belongs_to" or not isinstance(value, dict):
                continue
            related_schema = self.registry.get(field.related)
            parent = self._upsert(related_schema, value, touched, pending=False)
            if field.foreign_key in snapshot:
                snapshot[field.foreign_key] = parent[related_schema.primary_key]

        pk = schema.primary_key
        record_id = schema.normalize_id(snapshot.get(pk))
        if record_id is None:
            record_id = self._next_id(schema.entity)
        snapshot[pk] = record_id
        self._track_id(schema.entity, record_id)

        self._table(schema.entity)[record_id] = snapshot
        pending_ids = self._pending.setdefault(schema.entity, set())
        if pending:
            pending_ids.add(record_id)
        else:
            pending_ids.discard(record_id)
        touched.setdefault(schema.entity, []).append(dict(snapshot))

        for name, value in nested.items():
            field = schema.fields[name]
            if field.kind == "belongs_to":
                continue
            children = value if isinstance(value, list) else [value]
            related_schema = self.registry.get(field.related)
            for child in children:
                if not isinstance(child, dict):
                    continue
                child = dict(child)
                child.setdefault(field.foreign_key, record_id)
                self._upsert(related_schema, child, touched, pending=False)

        return snapshot

    def merge(
        self, entity: str, records: list[dict[str, Any]]
    ) -> dict[str, list[dict[str, Any]]]:
        """Upsert records by identity, replacing prior snapshots wholesale.

        Args:
            entity: Entity type of the top-level records.
            records: Record payloads, possibly with nested relation payloads.

        Returns:
            Copies of every merged snapshot keyed by entity. The requested
            entity is always present, even when empty.
        """
        schema = self.registry.get(entity)
        touched: dict[str, list[dict[str, Any]]] = {entity: []}
        for record in records:
            self._upsert(schema, record, touched, pending=False)
        logger.debug(
            f"Merged {sum(len(v) for v in touched.values())} records into "
            f"{', '.join(touched)}"
        )
        return touched

    def insert(self, entity: str, data: dict[str, Any] | None = None) -> dict[str, Any]:
        """Insert a record locally, filling defaults and an increment identity.

        The record is marked pending until a merge confirms its identity.

        Returns:
            Copy of the stored snapshot.
        """
        schema = self.registry.get(entity)
        touched: dict[str, list[dict[str, Any]]] = {}
        snapshot = self._upsert(schema, data or {}, touched, pending=True)
        return dict(snapshot)

    def remove(self, entity: str, record_id: Any) -> bool:
        """Remove one record. Returns False if it was not present."""
        schema = self.registry.get(entity)
        record_id = schema.normalize_id(record_id)
        removed = self._table(entity).pop(record_id, None) is not None
        self._pending.get(entity, set()).discard(record_id)
        if removed:
            logger.debug(f"Removed {entity}#{record_id} from local store")
        return removed

    def select_ids(
        self, entity: str, predicate: Callable[[dict[str, Any]], bool]
    ) -> list[Any]:
        """Identities of records whose snapshot satisfies `predicate`."""
        return [
            record_id
            for record_id, row in self._table(entity).items()
            if predicate(dict(row))
        ]

    def remove_all(self, entity: str) -> int:
        """Remove every record of an entity. Returns the number removed."""
        table = self._table(entity)
        count = len(table)
        table.clear()
        self._pending.pop(entity, None)
        logger.debug(f"Removed all {count} {entity} records from local store")
        return count

    def clear(self) -> None:
        """Drop all records of all entities."""
        self._tables.clear()
        self._pending.clear()
        self._counters.clear()

    def stats(self) -> dict[str, int]:
        """Record counts per registered entity."""
        return {
            entity: len(self._tables.get(entity, {}))
            for entity in self.registry.entities
        }
