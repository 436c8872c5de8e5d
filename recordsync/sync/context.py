"""Sync context: the explicit handle threaded through every operation."""

import logging

from ..config import Config
from ..errors import SchemaError
from ..remote import GraphQLAdapter, RemoteAdapter
from ..schema import EntitySchema, SchemaRegistry, load_schemas
from ..store import LocalStore
from .commands import Dispatcher
from .model import EntityModel

logger = logging.getLogger(__name__)


class SyncContext:
    """Owns one schema registry, local store, remote adapter and dispatcher.

    Contexts are independent of each other, so tests and applications can
    run several isolated stores side by side.

    Example:
        async with SyncContext(config) as ctx:
            users = ctx.register(EntitySchema("users", {...}))
            user = await users.create({"email": "a@x.com"})
    """

    def __init__(
        self,
        config: Config | None = None,
        adapter: RemoteAdapter | None = None,
    ):
        """Initialize the context.

        Args:
            config: Loaded configuration. Entities declared in it are
                registered immediately.
            adapter: Remote adapter; defaults to a GraphQLAdapter built from
                config.remote.
        """
        self.config = config or Config()
        self.registry = SchemaRegistry()
        self.store = LocalStore(self.registry)
        self.adapter = adapter or GraphQLAdapter(self.config.remote)
        self.dispatcher = Dispatcher(
            self.store, self.adapter, self.config.store.cache_policy
        )
        self._models: dict[str, EntityModel] = {}
        self._initialized = False

        for schema in load_schemas(self.config.entities):
            self.register(schema)

    def register(self, schema: EntitySchema) -> EntityModel:
        """Register an entity and return its model.

        Raises:
            SchemaError: If the entity name is already registered.
        """
        registered = self.registry.register(schema)
        model = EntityModel(self, registered)
        self._models[registered.entity] = model
        return model

    def model(self, entity: str) -> EntityModel:
        try:
            return self._models[entity]
        except KeyError:
            raise SchemaError(f"Unknown entity '{entity}'") from None

    __getitem__ = model

    @property
    def initialized(self) -> bool:
        return self._initialized

    async def init(self) -> None:
        """Validate schemas and open the remote adapter."""
        if self._initialized:
            return
        self.registry.validate()
        await self.adapter.open(self.registry)
        self._initialized = True
        logger.info(
            f"Sync context ready with {len(self.registry.entities)} entities, "
            f"cache policy {self.dispatcher.cache_policy}"
        )

    async def teardown(self) -> None:
        """Close the remote adapter and drop all local records."""
        await self.adapter.close()
        dropped = sum(self.store.stats().values())
        self.store.clear()
        self._initialized = False
        logger.info(f"Sync context torn down, dropped {dropped} local records")

    async def __aenter__(self) -> "SyncContext":
        await self.init()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.teardown()
