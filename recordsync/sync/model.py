"""Record-level and entity-level synchronization operations.

An EntityModel exposes the type-level operations for one entity: pure
local-store reads and remote-touching commands. Records are working copies
of store snapshots; they track their own lifecycle and compare themselves
against the store's canonical copy to report dirtiness.
"""

import logging
from enum import Enum
from typing import TYPE_CHECKING, Any, Callable, Protocol, TypeVar, runtime_checkable

from ..errors import NotFoundError, RemoteError, StaleRecordError
from ..schema import EntitySchema
from ..store.query import values_equal
from .commands import (
    Delete,
    DeleteAll,
    DeleteWhere,
    Destroy,
    DestroyAll,
    Fetch,
    Insert,
    Mutate,
    MutationResult,
    Persist,
    Push,
    Records,
    Update,
)

if TYPE_CHECKING:
    from .context import SyncContext

logger = logging.getLogger(__name__)

R = TypeVar("R", covariant=True)


@runtime_checkable
class Queryable(Protocol[R]):
    """Synchronous reads served from the local store."""

    def find_all(self) -> list[R]: ...

    def where(self, filter: dict[str, Any]) -> list[R]: ...

    def first(self) -> R | None: ...

    def last(self) -> R | None: ...

    def find(self, record_id: Any) -> R | None: ...


@runtime_checkable
class Persistable(Protocol[R]):
    """Asynchronous operations that round-trip to the remote."""

    async def fetch(self, filter: Any, bypass_cache: bool = False) -> list[R]: ...

    async def create(self, data: dict[str, Any]) -> R: ...

    async def destroy_all(self) -> None: ...

    async def mutate(self, name: str, args: dict[str, Any] | None = None) -> MutationResult: ...


class RecordState(Enum):
    """Lifecycle of a working record."""

    UNSAVED = "unsaved"
    SYNCED = "synced"
    DIRTY = "dirty"
    REMOVED = "removed"


class Record:
    """Working copy of one entity record.

    Declared fields are exposed as attributes. Assigning to an attribute
    field only changes this working copy; the store is updated by the
    remote-touching operations.
    """

    def __init__(self, model: "EntityModel", data: dict[str, Any]):
        object.__setattr__(self, "_model", model)
        object.__setattr__(self, "_values", {})
        object.__setattr__(self, "_removed", False)
        object.__setattr__(self, "_destroyed", False)

        schema = model.schema
        values = schema.defaults()
        for name in schema.attribute_names:
            if name in data:
                values[name] = data[name]
        for name in schema.relation_names:
            values[name] = model.wrap_relation(name, data.get(name))
        object.__setattr__(self, "_values", values)

    def __getattr__(self, name: str) -> Any:
        if name.startswith("_"):
            raise AttributeError(name)
        values = self.__dict__.get("_values", {})
        if name in values:
            return values[name]
        raise AttributeError(
            f"{type(self).__name__} of '{self._model.entity}' has no field '{name}'"
        )

    def __setattr__(self, name: str, value: Any) -> None:
        if name in self._model.schema.fields:
            self._values[name] = value
        else:
            object.__setattr__(self, name, value)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Record):
            return NotImplemented
        return self.entity == other.entity and self.to_dict() == other.to_dict()

    __hash__ = None  # mutable

    def __repr__(self) -> str:
        fields = " ".join(f"{k}={v!r}" for k, v in self.to_dict().items())
        return f"<{self._model.schema.singular} {fields}>"

    @property
    def entity(self) -> str:
        return self._model.entity

    @property
    def key(self) -> Any:
        """Identity value of this record."""
        return self._values.get(self._model.schema.primary_key)

    def to_dict(self) -> dict[str, Any]:
        """Plain attribute values, without relations."""
        return {
            name: self._values.get(name)
            for name in self._model.schema.attribute_names
        }

    def _canonical(self) -> dict[str, Any] | None:
        return self._model.store.snapshot(self.entity, self.key)

    @property
    def is_dirty(self) -> bool:
        """Whether any attribute differs from the store's canonical copy.

        A record without a canonical copy is not dirty.
        """
        canonical = self._canonical()
        if canonical is None:
            return False
        return any(
            not values_equal(canonical.get(name), self._values.get(name))
            for name in self._model.schema.attribute_names
        )

    @property
    def state(self) -> RecordState:
        if self._removed or self._canonical() is None:
            return RecordState.REMOVED
        if self._model.store.is_pending(self.entity, self.key):
            return RecordState.UNSAVED
        if self.is_dirty:
            return RecordState.DIRTY
        return RecordState.SYNCED

    def revert(self) -> None:
        """Overwrite attributes with the store's canonical values.

        Relations are left untouched.

        Raises:
            StaleRecordError: If the record was removed.
        """
        self._ensure_live("revert")
        canonical = self._canonical()
        for name in self._model.schema.attribute_names:
            self._values[name] = canonical.get(name)

    def _ensure_live(self, operation: str) -> None:
        # Another working copy or a type-level delete may have removed it
        if self._removed or self._canonical() is None:
            raise StaleRecordError(
                self.entity, self.key, f"cannot {operation} a removed record"
            )

    def _apply(self, result: Records) -> None:
        """Adopt the server's authoritative values after a merge."""
        rows = result.get(self.entity) or []
        if rows:
            for name in self._model.schema.attribute_names:
                if name in rows[0]:
                    self._values[name] = rows[0][name]

    # === Remote operations ===

    async def destroy(self) -> None:
        """Delete this record on the remote. The local entry is kept."""
        if self._destroyed:
            raise StaleRecordError(self.entity, self.key, "already destroyed")
        await self._model.dispatch(Destroy(self.entity, self.key))
        object.__setattr__(self, "_removed", True)
        object.__setattr__(self, "_destroyed", True)

    async def delete(self) -> None:
        """Remove this record from the local store only."""
        self._ensure_live("delete")
        await self._model.dispatch(Delete(self.entity, self.key))
        object.__setattr__(self, "_removed", True)

    async def delete_and_destroy(self) -> None:
        """Remove locally, then delete on the remote.

        The local removal is not rolled back if the remote delete fails; the
        store stays out of step with the server until the next fetch.
        """
        await self.delete()
        try:
            await self.destroy()
        except RemoteError as e:
            logger.warning(
                f"{self.entity}#{self.key} removed locally but remote destroy "
                f"failed: {e}"
            )
            raise

    async def save(self) -> "Record":
        """Alias for update()."""
        return await self.update()

    async def update(self) -> "Record":
        """Send current values as a patch keyed by this record's identity."""
        self._ensure_live("update")
        result = await self._model.dispatch(
            Update(self.entity, where=self.key, data=self.to_dict())
        )
        self._apply(result)
        return self

    async def persist(self, args: dict[str, Any] | None = None) -> "Record":
        """Create this locally-held record on the remote."""
        self._ensure_live("persist")
        result = await self._model.dispatch(
            Persist(
                self.entity, id=self.key, data=self.to_dict(), args=dict(args or {})
            )
        )
        self._apply(result)
        return self

    async def push(self, args: dict[str, Any] | None = None) -> "Record":
        """Send this record's full data as an update of the existing record."""
        self._ensure_live("push")
        result = await self._model.dispatch(
            Push(self.entity, data=self.to_dict(), args=dict(args or {}))
        )
        self._apply(result)
        return self


class EntityModel:
    """Type-level operations for one entity.

    Reads (find_all, where, first, last, find) come from the local store and
    never touch the remote. fetch, create, delete, destroy_all and mutate
    dispatch remote commands and merge the results into the store.
    """

    def __init__(self, context: "SyncContext", schema: EntitySchema):
        self.context = context
        self.schema = schema

    def __repr__(self) -> str:
        return f"<EntityModel {self.entity}>"

    @property
    def entity(self) -> str:
        return self.schema.entity

    @property
    def store(self):
        return self.context.store

    async def dispatch(self, command) -> Any:
        return await self.context.dispatcher.dispatch(command)

    def wrap(self, row: dict[str, Any]) -> Record:
        return Record(self, row)

    def wrap_relation(self, name: str, value: Any) -> Any:
        field = self.schema.fields[name]
        related = self.context.model(field.related)
        if isinstance(value, list):
            return [related.wrap(v) for v in value]
        if isinstance(value, dict):
            return related.wrap(value)
        if value is None and field.kind == "has_many":
            return []
        return None

    # === Queryable ===

    def query(self):
        """Query builder over this entity, with relations loaded."""
        return self.store.query(self.entity).with_all()

    def find_all(self) -> list[Record]:
        return [self.wrap(row) for row in self.store.all(self.entity)]

    def where(self, filter: dict[str, Any]) -> list[Record]:
        return [self.wrap(row) for row in self.store.where(self.entity, filter)]

    def first(self) -> Record | None:
        row = self.store.first(self.entity)
        return self.wrap(row) if row is not None else None

    def last(self) -> Record | None:
        row = self.store.last(self.entity)
        return self.wrap(row) if row is not None else None

    def find(self, record_id: Any) -> Record | None:
        row = self.store.find(self.entity, record_id)
        return self.wrap(row) if row is not None else None

    def find_or_fail(self, record_id: Any) -> Record:
        """Like find(), but raises NotFoundError when absent."""
        record = self.find(record_id)
        if record is None:
            raise NotFoundError(self.entity, record_id)
        return record

    # === Persistable ===

    def new(self, data: dict[str, Any] | None = None) -> Record:
        """Insert a default-filled record into the local store only.

        The record stays UNSAVED until persist() succeeds.
        """
        return self.find(self.store.insert(self.entity, data)[self.schema.primary_key])

    async def fetch(self, filter: Any, bypass_cache: bool = False) -> list[Record]:
        """Load records from the remote into the store.

        Args:
            filter: Identity value or mapping of field equalities.
            bypass_cache: Always go to the remote, even when the store
                already holds matching records.
        """
        if not isinstance(filter, dict):
            filter = {self.schema.primary_key: filter}
        result = await self.dispatch(Fetch(self.entity, filter, bypass_cache))
        return self._reload(result.get(self.entity, []))

    def _reload(self, rows: list[dict[str, Any]]) -> list[Record]:
        records = []
        for row in rows:
            record = self.find(row[self.schema.primary_key])
            if record is not None:
                records.append(record)
        return records

    async def create(self, data: dict[str, Any]) -> Record:
        """Create a record on the remote and return it from the store."""
        result = await self.dispatch(Insert(self.entity, dict(data)))
        records = self._reload(result.get(self.entity, [])[:1])
        if not records:
            raise RemoteError(
                f"Remote insert returned no {self.schema.singular}", operation="insert"
            )
        return records[0]

    async def insert(self, data: dict[str, Any]) -> Record:
        """Alias for create()."""
        return await self.create(data)

    async def delete(self, predicate: Callable[[dict[str, Any]], bool]) -> list[Any]:
        """Delete matching records on the remote, then from the store.

        Args:
            predicate: Called with each stored record's plain values.

        Returns:
            Identities of the deleted records.
        """
        return await self.dispatch(DeleteWhere(self.entity, predicate))

    async def destroy_all(self) -> None:
        """Delete every record of this entity on the remote."""
        await self.dispatch(DestroyAll(self.entity))

    async def delete_all(self) -> None:
        """Remove every record of this entity from the store only."""
        await self.dispatch(DeleteAll(self.entity))

    async def mutate(self, name: str, args: dict[str, Any] | None = None) -> MutationResult:
        """Run a named custom operation on the remote."""
        return await self.dispatch(Mutate(self.entity, name, dict(args or {})))
