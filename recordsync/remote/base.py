"""Interface for the remote persistence service."""

from abc import ABC, abstractmethod
from typing import Any

from ..schema import EntitySchema, SchemaRegistry


class RemoteAdapter(ABC):
    """Abstract base for backends that execute remote record operations.

    Record-returning methods give back plain record payloads for the
    requested entity; nested relation payloads are allowed and are
    normalized by the local store on merge. Failures are raised as
    RemoteError.
    """

    registry: SchemaRegistry | None = None

    async def open(self, registry: SchemaRegistry) -> None:
        """Called once by the sync context before the first dispatch."""
        self.registry = registry

    async def close(self) -> None:
        """Release transport resources."""
        pass

    async def health_check(self) -> bool:
        """Whether the backend is reachable."""
        return True

    @abstractmethod
    async def fetch(
        self, schema: EntitySchema, filter: dict[str, Any]
    ) -> list[dict[str, Any]]:
        """Read records matching an equality filter."""
        pass

    @abstractmethod
    async def insert(
        self, schema: EntitySchema, data: dict[str, Any]
    ) -> list[dict[str, Any]]:
        """Create a record from plain data."""
        pass

    @abstractmethod
    async def update(
        self, schema: EntitySchema, record_id: Any, data: dict[str, Any]
    ) -> list[dict[str, Any]]:
        """Patch the record with the given identity."""
        pass

    @abstractmethod
    async def destroy(self, schema: EntitySchema, record_id: Any) -> None:
        """Delete one record by identity."""
        pass

    @abstractmethod
    async def destroy_all(self, schema: EntitySchema) -> None:
        """Delete every record of an entity type."""
        pass

    @abstractmethod
    async def mutate(
        self, schema: EntitySchema, name: str, args: dict[str, Any]
    ) -> Any:
        """Run a named custom operation and return its raw result.

        `args` carries the caller's arguments plus `mutation` set to `name`.
        """
        pass

    async def persist(
        self, schema: EntitySchema, data: dict[str, Any], args: dict[str, Any]
    ) -> list[dict[str, Any]]:
        """Create a record from an existing local record.

        Default implementation ignores `args` and delegates to insert().
        """
        return await self.insert(schema, data)

    async def push(
        self, schema: EntitySchema, data: dict[str, Any], args: dict[str, Any]
    ) -> list[dict[str, Any]]:
        """Send the full data of an existing record as an update.

        Default implementation ignores `args` and delegates to update().
        """
        return await self.update(schema, data.get(schema.primary_key), data)
