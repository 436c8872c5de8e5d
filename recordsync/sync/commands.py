"""Dispatch protocol between the model layer, the local store and the remote.

Each command is a frozen dataclass; the Dispatcher routes it through a
handler table keyed by command type. Every remote-touching handler merges
what the remote returns into the local store before returning, so callers
only ever see store-backed records.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, ClassVar

from ..errors import StaleRecordError
from ..remote import RemoteAdapter
from ..store import LocalStore

logger = logging.getLogger(__name__)

Records = dict[str, list[dict[str, Any]]]


class CommandKind(Enum):
    """Closed set of dispatchable commands."""

    FETCH = "fetch"
    INSERT = "insert"
    DELETE = "delete"  # local only, by identity
    DELETE_WHERE = "delete_where"  # remote, by predicate
    DESTROY = "destroy"
    DESTROY_ALL = "destroy_all"
    DELETE_ALL = "delete_all"  # local only
    UPDATE = "update"
    PERSIST = "persist"
    PUSH = "push"
    MUTATE = "mutate"


@dataclass(frozen=True)
class Fetch:
    kind: ClassVar[CommandKind] = CommandKind.FETCH
    entity: str
    filter: dict[str, Any]
    bypass_cache: bool = False


@dataclass(frozen=True)
class Insert:
    kind: ClassVar[CommandKind] = CommandKind.INSERT
    entity: str
    data: dict[str, Any]


@dataclass(frozen=True)
class Delete:
    kind: ClassVar[CommandKind] = CommandKind.DELETE
    entity: str
    id: Any


@dataclass(frozen=True)
class DeleteWhere:
    kind: ClassVar[CommandKind] = CommandKind.DELETE_WHERE
    entity: str
    predicate: Callable[[dict[str, Any]], bool]


@dataclass(frozen=True)
class Destroy:
    kind: ClassVar[CommandKind] = CommandKind.DESTROY
    entity: str
    id: Any


@dataclass(frozen=True)
class DestroyAll:
    kind: ClassVar[CommandKind] = CommandKind.DESTROY_ALL
    entity: str


@dataclass(frozen=True)
class DeleteAll:
    kind: ClassVar[CommandKind] = CommandKind.DELETE_ALL
    entity: str


@dataclass(frozen=True)
class Update:
    kind: ClassVar[CommandKind] = CommandKind.UPDATE
    entity: str
    where: Any
    data: dict[str, Any]


@dataclass(frozen=True)
class Persist:
    kind: ClassVar[CommandKind] = CommandKind.PERSIST
    entity: str
    id: Any
    data: dict[str, Any] = field(default_factory=dict)
    """Working values to create, laid over the stored snapshot"""
    args: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class Push:
    kind: ClassVar[CommandKind] = CommandKind.PUSH
    entity: str
    data: dict[str, Any]
    args: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class Mutate:
    kind: ClassVar[CommandKind] = CommandKind.MUTATE
    entity: str
    name: str
    args: dict[str, Any] = field(default_factory=dict)

    @property
    def payload(self) -> dict[str, Any]:
        """Arguments as sent on the wire, tagged with the mutation name."""
        return {**self.args, "mutation": self.name}


Command = (
    Fetch
    | Insert
    | Delete
    | DeleteWhere
    | Destroy
    | DestroyAll
    | DeleteAll
    | Update
    | Persist
    | Push
    | Mutate
)


@dataclass
class MutationResult:
    """Outcome of a custom mutation."""

    data: Any
    """Raw result returned by the remote"""

    records: Records
    """Records found in the result and merged into the local store"""


class Dispatcher:
    """Routes commands to the local store and the remote adapter."""

    def __init__(
        self,
        store: LocalStore,
        adapter: RemoteAdapter,
        cache_policy: str = "cache-first",
    ):
        """Initialize the dispatcher.

        Args:
            store: Local store that every result is merged into.
            adapter: Remote adapter executing remote commands.
            cache_policy: "cache-first" lets fetches without bypass_cache be
                served from the local store; "network-only" always goes remote.
        """
        self.store = store
        self.adapter = adapter
        self.cache_policy = cache_policy
        self._handlers: dict[type, Callable[[Any], Awaitable[Any]]] = {
            Fetch: self._fetch,
            Insert: self._insert,
            Delete: self._delete,
            DeleteWhere: self._delete_where,
            Destroy: self._destroy,
            DestroyAll: self._destroy_all,
            DeleteAll: self._delete_all,
            Update: self._update,
            Persist: self._persist,
            Push: self._push,
            Mutate: self._mutate,
        }

    async def dispatch(self, command: Command) -> Any:
        """Execute a command.

        Returns:
            Merged records keyed by entity for record-returning commands,
            removed identities for DeleteWhere, a MutationResult for Mutate,
            None otherwise.

        Raises:
            RemoteError: Propagated unchanged from the adapter.
            StaleRecordError: Persisting a record the store does not hold.
        """
        handler = self._handlers.get(type(command))
        if handler is None:
            raise TypeError(f"Unknown command {type(command).__name__}")
        logger.debug(f"Dispatching {command.kind.value} on {command.entity}")
        return await handler(command)

    async def _fetch(self, command: Fetch) -> Records:
        if not command.bypass_cache and self.cache_policy == "cache-first":
            query = self.store.query(command.entity)
            for key, value in command.filter.items():
                query = query.where(key, value)
            local = query.get()
            if local:
                logger.debug(
                    f"Served {len(local)} {command.entity} from local store"
                )
                return {command.entity: local}

        schema = self.store.registry.get(command.entity)
        records = await self.adapter.fetch(schema, dict(command.filter))
        return self.store.merge(command.entity, records)

    async def _insert(self, command: Insert) -> Records:
        schema = self.store.registry.get(command.entity)
        records = await self.adapter.insert(schema, dict(command.data))
        return self.store.merge(command.entity, records)

    async def _delete(self, command: Delete) -> None:
        self.store.remove(command.entity, command.id)

    async def _delete_where(self, command: DeleteWhere) -> list[Any]:
        schema = self.store.registry.get(command.entity)
        removed = []
        for record_id in self.store.select_ids(command.entity, command.predicate):
            await self.adapter.destroy(schema, record_id)
            self.store.remove(command.entity, record_id)
            removed.append(record_id)
        return removed

    async def _destroy(self, command: Destroy) -> None:
        schema = self.store.registry.get(command.entity)
        await self.adapter.destroy(schema, command.id)

    async def _destroy_all(self, command: DestroyAll) -> None:
        schema = self.store.registry.get(command.entity)
        await self.adapter.destroy_all(schema)

    async def _delete_all(self, command: DeleteAll) -> None:
        self.store.remove_all(command.entity)

    async def _update(self, command: Update) -> Records:
        schema = self.store.registry.get(command.entity)
        records = await self.adapter.update(schema, command.where, dict(command.data))
        return self.store.merge(command.entity, records)

    async def _persist(self, command: Persist) -> Records:
        schema = self.store.registry.get(command.entity)
        snapshot = self.store.snapshot(command.entity, command.id)
        if snapshot is None:
            raise StaleRecordError(
                command.entity, command.id, "no local record to persist"
            )

        # Working values win over the stored placeholder
        data = {**snapshot, **command.data}
        records = await self.adapter.persist(schema, data, dict(command.args))

        # The server may assign a different identity than the local placeholder
        if records:
            server_id = schema.normalize_id(records[0].get(schema.primary_key))
            if server_id is not None and server_id != snapshot[schema.primary_key]:
                self.store.remove(command.entity, command.id)
        return self.store.merge(command.entity, records)

    async def _push(self, command: Push) -> Records:
        schema = self.store.registry.get(command.entity)
        records = await self.adapter.push(schema, dict(command.data), dict(command.args))
        return self.store.merge(command.entity, records)

    async def _mutate(self, command: Mutate) -> MutationResult:
        schema = self.store.registry.get(command.entity)
        data = await self.adapter.mutate(schema, command.name, command.payload)

        candidates: list[Any]
        if isinstance(data, list):
            candidates = data
        elif isinstance(data, dict) and isinstance(data.get("nodes"), list):
            candidates = data["nodes"]
        else:
            candidates = [data]
        records = [
            r for r in candidates
            if isinstance(r, dict) and r.get(schema.primary_key) is not None
        ]

        merged = self.store.merge(command.entity, records)
        return MutationResult(data=data, records=merged)
