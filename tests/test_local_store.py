"""Tests for the local store and query builder."""

import pytest

from recordsync.errors import SchemaError
from recordsync.schema import SchemaRegistry
from recordsync.store import LocalStore

from conftest import posts_schema, users_schema


@pytest.fixture
def store():
    """Store with users and posts registered."""
    registry = SchemaRegistry()
    registry.register(users_schema())
    registry.register(posts_schema())
    return LocalStore(registry)


@pytest.fixture
def populated(store):
    store.merge(
        "users",
        [
            {"id": 1, "email": "a@x.com", "password": "p"},
            {"id": 2, "email": "b@x.com", "password": "p"},
            {"id": 3, "email": "a@x.com", "password": "q"},
        ],
    )
    return store


class TestMerge:
    """Tests for merging records into the store."""

    def test_merge_inserts_records(self, store):
        result = store.merge("users", [{"id": 1, "email": "a@x.com"}])

        assert result == {"users": [{"id": 1, "email": "a@x.com", "password": ""}]}
        assert store.snapshot("users", 1)["email"] == "a@x.com"

    def test_merge_replaces_whole_snapshot(self, store):
        store.merge("users", [{"id": 1, "email": "a@x.com", "password": "secret"}])
        store.merge("users", [{"id": 1, "email": "new@x.com"}])

        snapshot = store.snapshot("users", 1)
        assert snapshot["email"] == "new@x.com"
        # Not a field-level patch: missing fields fall back to defaults
        assert snapshot["password"] == ""

    def test_merge_keeps_insertion_position(self, populated):
        populated.merge("users", [{"id": 1, "email": "changed@x.com"}])

        assert [r["id"] for r in populated.rows("users")] == [1, 2, 3]

    def test_merge_normalizes_string_ids(self, store):
        store.merge("users", [{"id": "7", "email": "a@x.com"}])

        assert store.snapshot("users", 7) is not None
        assert store.snapshot("users", "7") is not None

    def test_merge_drops_undeclared_fields(self, store):
        store.merge("users", [{"id": 1, "email": "a@x.com", "__typename": "User"}])
        assert "__typename" not in store.snapshot("users", 1)

    def test_merge_normalizes_has_many(self, store):
        result = store.merge(
            "users",
            [
                {
                    "id": 1,
                    "email": "a@x.com",
                    "posts": [{"id": 10, "title": "Hello"}, {"id": 11, "title": "Again"}],
                }
            ],
        )

        assert "posts" not in store.snapshot("users", 1)
        assert store.snapshot("posts", 10)["user_id"] == 1
        assert [p["id"] for p in result["posts"]] == [10, 11]

    def test_merge_normalizes_belongs_to(self, store):
        store.merge(
            "posts",
            [{"id": 5, "title": "Hi", "author": {"id": 2, "email": "b@x.com"}}],
        )

        assert store.snapshot("users", 2)["email"] == "b@x.com"
        assert store.snapshot("posts", 5)["user_id"] == 2

    def test_merge_assigns_missing_ids(self, store):
        store.merge("users", [{"id": 4}])
        result = store.merge("users", [{"email": "no-id@x.com"}])

        assert result["users"][0]["id"] == 5

    def test_snapshots_are_copies(self, populated):
        snapshot = populated.snapshot("users", 1)
        snapshot["email"] = "mutated"

        assert populated.snapshot("users", 1)["email"] == "a@x.com"

    def test_unknown_entity(self, store):
        with pytest.raises(SchemaError):
            store.merge("comments", [{"id": 1}])


class TestLocalInsert:
    """Tests for local-only inserts."""

    def test_insert_fills_defaults_and_id(self, store):
        first = store.insert("users", {"email": "a@x.com"})
        second = store.insert("users")

        assert first == {"id": 1, "email": "a@x.com", "password": ""}
        assert second["id"] == 2

    def test_insert_is_pending_until_merged(self, store):
        record = store.insert("users", {"email": "a@x.com"})

        assert store.is_pending("users", record["id"])

        store.merge("users", [record])
        assert not store.is_pending("users", record["id"])

    def test_insert_continues_after_merged_ids(self, populated):
        assert populated.insert("users")["id"] == 4


class TestRemoval:
    """Tests for removing records."""

    def test_remove(self, populated):
        assert populated.remove("users", 2) is True
        assert populated.find("users", 2) is None
        assert populated.remove("users", 2) is False

    def test_remove_all(self, populated):
        assert populated.remove_all("users") == 3
        assert populated.all("users") == []

    def test_clear(self, populated):
        populated.clear()
        assert populated.stats() == {"users": 0, "posts": 0}


class TestQueries:
    """Tests for reads through the query builder."""

    def test_all_empty(self, store):
        assert store.all("users") == []
        assert store.first("users") is None
        assert store.last("users") is None

    def test_first_and_last(self, populated):
        assert populated.first("users")["id"] == 1
        assert populated.last("users")["id"] == 3

    def test_find(self, populated):
        assert populated.find("users", 2)["email"] == "b@x.com"
        assert populated.find("users", "2")["email"] == "b@x.com"
        assert populated.find("users", 99) is None

    def test_where_is_conjunctive(self, populated):
        everything = populated.all("users")
        expected = [
            r for r in everything if r["email"] == "a@x.com" and r["password"] == "p"
        ]

        result = populated.where("users", {"email": "a@x.com", "password": "p"})

        assert result == expected
        assert [r["id"] for r in result] == [1]

    def test_where_single_field(self, populated):
        result = populated.where("users", {"email": "a@x.com"})
        assert [r["id"] for r in result] == [1, 3]

    def test_where_unknown_field_matches_nothing(self, populated):
        assert populated.where("users", {"nickname": "a"}) == []

    def test_where_keeps_booleans_distinct(self, store):
        store.merge("posts", [{"id": 1, "published": True, "likes": 1}])

        assert store.where("posts", {"likes": True}) == []
        assert len(store.where("posts", {"published": True})) == 1

    def test_relations_loaded(self, store):
        store.merge("users", [{"id": 1, "email": "a@x.com"}])
        store.merge(
            "posts",
            [
                {"id": 10, "title": "One", "user_id": 1},
                {"id": 11, "title": "Two", "user_id": 1},
                {"id": 12, "title": "Other", "user_id": 2},
            ],
        )

        user = store.find("users", 1)
        post = store.find("posts", 10)

        assert [p["id"] for p in user["posts"]] == [10, 11]
        assert post["author"]["email"] == "a@x.com"
        assert store.find("posts", 12)["author"] is None

    def test_query_without_relations(self, populated):
        row = populated.query("users").first()
        assert "posts" not in row

    def test_stats(self, populated):
        assert populated.stats() == {"users": 3, "posts": 0}
