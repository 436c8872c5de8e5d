"""Shared fixtures for recordsync tests."""

import pytest

from recordsync.remote import InMemoryAdapter
from recordsync.schema import (
    EntitySchema,
    belongs_to,
    boolean,
    has_many,
    increment,
    number,
    string,
)
from recordsync.sync import SyncContext


def users_schema() -> EntitySchema:
    return EntitySchema(
        "users",
        {
            "id": increment(),
            "email": string(""),
            "password": string(""),
            "posts": has_many("posts", "user_id"),
        },
    )


def posts_schema() -> EntitySchema:
    return EntitySchema(
        "posts",
        {
            "id": increment(),
            "title": string(""),
            "published": boolean(False),
            "likes": number(0),
            "user_id": number(None),
            "author": belongs_to("users", "user_id"),
        },
    )


@pytest.fixture
def adapter():
    """In-memory remote that records every call."""
    return InMemoryAdapter()


@pytest.fixture
def context(adapter):
    """Sync context with users and posts registered."""
    ctx = SyncContext(adapter=adapter)
    ctx.register(users_schema())
    ctx.register(posts_schema())
    return ctx


@pytest.fixture
def users(context):
    return context.model("users")


@pytest.fixture
def posts(context):
    return context.model("posts")
