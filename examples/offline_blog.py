"""Walk through a sync session against the in-memory remote.

Runs without any server: the InMemoryAdapter plays the remote, so the
example shows which operations touch the remote and which stay local.

Usage:
    python examples/offline_blog.py
"""

import asyncio
import logging
from pathlib import Path

from recordsync.config import load_config
from recordsync.remote import InMemoryAdapter
from recordsync.sync import SyncContext

logger = logging.getLogger(__name__)

CONFIG_PATH = Path(__file__).with_name("recordsync.yaml")


async def main() -> None:
    adapter = InMemoryAdapter()
    adapter.on_mutation(
        "publish_all",
        lambda remote, args: [
            {**row, "published": True} for row in remote.table("posts").values()
        ],
    )

    async with SyncContext(load_config(CONFIG_PATH), adapter=adapter) as ctx:
        users, posts = ctx["users"], ctx["posts"]

        user = await users.create({"email": "ada@example.com", "password": "secret"})
        await posts.create({"title": "Notes on the engine", "user_id": user.id})

        # Local draft, not on the remote until persisted
        draft = posts.new({"title": "Draft", "user_id": user.id})
        logger.info(f"{draft!r} is {draft.state.value}")
        await draft.persist()

        user = users.find(user.id)
        logger.info(f"{user.email} has {len(user.posts)} posts")

        user.password = "changed"
        logger.info(f"dirty after edit: {user.is_dirty}")
        user.revert()
        logger.info(f"dirty after revert: {user.is_dirty}")

        result = await posts.mutate("publish_all")
        logger.info(f"published {len(result.records['posts'])} posts")

        for operation in ("fetch", "insert", "persist", "mutate"):
            logger.info(f"remote {operation} calls: {len(adapter.calls_for(operation))}")


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="%(name)s - %(message)s")
    asyncio.run(main())
