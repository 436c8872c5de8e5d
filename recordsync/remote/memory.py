"""In-process remote adapter for tests and offline experiments."""

import copy
import logging
from typing import Any, Callable

from ..errors import RemoteError
from ..schema import EntitySchema
from .base import RemoteAdapter

logger = logging.getLogger(__name__)

MutationHandler = Callable[["InMemoryAdapter", dict[str, Any]], Any]


class InMemoryAdapter(RemoteAdapter):
    """Remote adapter backed by plain dictionaries.

    Behaves like a well-mannered server: assigns identities on insert,
    returns authoritative copies and rejects updates to unknown records.
    Every call is recorded in `calls` so tests can assert on remote traffic.
    """

    def __init__(self) -> None:
        self.tables: dict[str, dict[Any, dict[str, Any]]] = {}
        self.calls: list[tuple[str, str, dict[str, Any]]] = []
        self._counters: dict[str, int] = {}
        self._failures: dict[str, RemoteError] = {}
        self._mutations: dict[str, MutationHandler] = {}

    def _record(self, operation: str, schema: EntitySchema, payload: dict[str, Any]) -> None:
        self.calls.append((operation, schema.entity, copy.deepcopy(payload)))
        if failure := self._failures.pop(operation, None):
            logger.debug(f"Injected failure for {operation} on {schema.entity}")
            raise failure

    def calls_for(self, operation: str) -> list[tuple[str, str, dict[str, Any]]]:
        """Recorded calls of one operation."""
        return [c for c in self.calls if c[0] == operation]

    def fail_next(self, operation: str, message: str = "remote failure") -> None:
        """Make the next call of `operation` raise RemoteError."""
        self._failures[operation] = RemoteError(message, operation=operation)

    def on_mutation(self, name: str, handler: MutationHandler) -> None:
        """Register the server-side behaviour of a custom mutation."""
        self._mutations[name] = handler

    def table(self, entity: str) -> dict[Any, dict[str, Any]]:
        return self.tables.setdefault(entity, {})

    def seed(
        self, entity: str, records: list[dict[str, Any]], primary_key: str = "id"
    ) -> None:
        """Place records on the server without any recorded call."""
        for record in records:
            self._store(entity, primary_key, dict(record))

    def _store(self, entity: str, pk: str, data: dict[str, Any]) -> dict[str, Any]:
        if data.get(pk) is None:
            data[pk] = self._counters.get(entity, 0) + 1
        if isinstance(data[pk], int):
            self._counters[entity] = max(self._counters.get(entity, 0), data[pk])
        self.table(entity)[data[pk]] = data
        return copy.deepcopy(data)

    def _attributes(self, schema: EntitySchema, data: dict[str, Any]) -> dict[str, Any]:
        return {k: v for k, v in data.items() if k in schema.attribute_names}

    async def fetch(
        self, schema: EntitySchema, filter: dict[str, Any]
    ) -> list[dict[str, Any]]:
        self._record("fetch", schema, {"filter": filter})
        return [
            copy.deepcopy(row)
            for row in self.table(schema.entity).values()
            if all(row.get(k) == v for k, v in filter.items())
        ]

    async def insert(
        self, schema: EntitySchema, data: dict[str, Any]
    ) -> list[dict[str, Any]]:
        self._record("insert", schema, {"data": data})
        record = schema.defaults()
        record.update(self._attributes(schema, data))
        return [self._store(schema.entity, schema.primary_key, record)]

    async def persist(
        self, schema: EntitySchema, data: dict[str, Any], args: dict[str, Any]
    ) -> list[dict[str, Any]]:
        self._record("persist", schema, {"data": data, "args": args})
        record = schema.defaults()
        record.update(self._attributes(schema, data))
        # Server assigns its own identity
        record[schema.primary_key] = None
        return [self._store(schema.entity, schema.primary_key, record)]

    async def update(
        self, schema: EntitySchema, record_id: Any, data: dict[str, Any]
    ) -> list[dict[str, Any]]:
        self._record("update", schema, {"where": record_id, "data": data})
        return self._patch(schema, record_id, data)

    async def push(
        self, schema: EntitySchema, data: dict[str, Any], args: dict[str, Any]
    ) -> list[dict[str, Any]]:
        self._record("push", schema, {"data": data, "args": args})
        return self._patch(schema, data.get(schema.primary_key), data)

    def _patch(
        self, schema: EntitySchema, record_id: Any, data: dict[str, Any]
    ) -> list[dict[str, Any]]:
        existing = self.table(schema.entity).get(record_id)
        if existing is None:
            raise RemoteError(
                f"{schema.singular} {record_id!r} not found", operation="update", status_code=404
            )
        existing.update(self._attributes(schema, data))
        existing[schema.primary_key] = record_id
        return [copy.deepcopy(existing)]

    async def destroy(self, schema: EntitySchema, record_id: Any) -> None:
        self._record("destroy", schema, {"id": record_id})
        if self.table(schema.entity).pop(record_id, None) is None:
            raise RemoteError(
                f"{schema.singular} {record_id!r} not found", operation="destroy", status_code=404
            )

    async def destroy_all(self, schema: EntitySchema) -> None:
        self._record("destroy_all", schema, {})
        self.table(schema.entity).clear()

    async def mutate(
        self, schema: EntitySchema, name: str, args: dict[str, Any]
    ) -> Any:
        self._record("mutate", schema, dict(args))
        handler = self._mutations.get(name)
        if handler is None:
            raise RemoteError(f"Unknown mutation '{name}'", operation="mutate")
        return handler(self, args)
