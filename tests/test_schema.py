"""Tests for entity schema declarations."""

import pytest

from recordsync.errors import SchemaError
from recordsync.schema import (
    EntitySchema,
    SchemaRegistry,
    attr,
    has_many,
    increment,
    load_schemas,
    singularize,
    string,
)


class TestFields:
    """Tests for field declarations."""

    def test_increment_is_identity(self):
        field = increment()
        assert field.is_increment
        assert not field.is_relation
        assert field.make_default() is None

    def test_callable_default_is_called_each_time(self):
        field = attr(list)
        first = field.make_default()
        second = field.make_default()

        assert first == []
        assert first is not second

    def test_relation_field(self):
        field = has_many("posts", "user_id")
        assert field.is_relation
        assert field.related == "posts"
        assert field.foreign_key == "user_id"


class TestEntitySchema:
    """Tests for EntitySchema."""

    def test_attribute_and_relation_names(self):
        schema = EntitySchema(
            "users",
            {"id": increment(), "email": string(), "posts": has_many("posts", "user_id")},
        )

        assert schema.attribute_names == ["id", "email"]
        assert schema.relation_names == ["posts"]
        assert schema.increment_field == "id"

    def test_defaults_exclude_relations(self):
        schema = EntitySchema(
            "users",
            {"id": increment(), "email": string("x"), "posts": has_many("posts", "user_id")},
        )

        assert schema.defaults() == {"id": None, "email": "x"}

    def test_fields_are_read_only(self):
        schema = EntitySchema("users", {"id": increment()})

        with pytest.raises(TypeError):
            schema.fields["email"] = string()

    def test_normalize_id_for_increment(self):
        schema = EntitySchema("users", {"id": increment()})

        assert schema.normalize_id("12") == 12
        assert schema.normalize_id(12) == 12
        assert schema.normalize_id("abc") == "abc"

    def test_normalize_id_keeps_string_keys(self):
        schema = EntitySchema("tags", {"id": string()})
        assert schema.normalize_id("12") == "12"


class TestSingularize:
    """Tests for the registration-time singular name."""

    @pytest.mark.parametrize(
        "plural,singular",
        [("users", "user"), ("categories", "category"), ("addresses", "address"), ("news", "new"), ("staff", "staff")],
    )
    def test_singularize(self, plural, singular):
        assert singularize(plural) == singular


class TestSchemaRegistry:
    """Tests for SchemaRegistry."""

    def test_register_fills_singular(self):
        registry = SchemaRegistry()
        schema = registry.register(EntitySchema("users", {"id": increment()}))

        assert schema.singular == "user"
        assert registry.get("users") is schema

    def test_register_keeps_declared_singular(self):
        registry = SchemaRegistry()
        schema = registry.register(
            EntitySchema("people", {"id": increment()}, singular="person")
        )
        assert schema.singular == "person"

    def test_duplicate_registration_fails(self):
        registry = SchemaRegistry()
        registry.register(EntitySchema("users", {"id": increment()}))

        with pytest.raises(SchemaError, match="already registered"):
            registry.register(EntitySchema("users", {"id": increment()}))

    def test_missing_primary_key_fails(self):
        registry = SchemaRegistry()
        with pytest.raises(SchemaError, match="primary key"):
            registry.register(EntitySchema("users", {"email": string()}))

    def test_validate_rejects_dangling_relation(self):
        registry = SchemaRegistry()
        registry.register(
            EntitySchema("users", {"id": increment(), "posts": has_many("posts", "user_id")})
        )

        with pytest.raises(SchemaError, match="unknown entity 'posts'"):
            registry.validate()

    def test_get_unknown_entity(self):
        with pytest.raises(SchemaError):
            SchemaRegistry().get("nope")

    def test_entities_in_registration_order(self):
        registry = SchemaRegistry()
        registry.register(EntitySchema("users", {"id": increment()}))
        registry.register(EntitySchema("posts", {"id": increment()}))

        assert registry.entities == ["users", "posts"]
        assert "posts" in registry


class TestLoadSchemas:
    """Tests for declaring schemas in config."""

    def test_load_schemas(self):
        schemas = load_schemas(
            {
                "users": {
                    "fields": {
                        "id": "increment",
                        "email": {"type": "string", "default": ""},
                        "admin": {"type": "boolean", "default": True},
                        "posts": {"type": "has_many", "related": "posts", "foreign_key": "user_id"},
                    }
                },
                "people": {"singular": "person", "fields": {"id": "increment"}},
            }
        )

        users, people = schemas
        assert users.entity == "users"
        assert users.fields["admin"].default is True
        assert users.fields["posts"].related == "posts"
        assert people.singular == "person"

    def test_unknown_field_type(self):
        with pytest.raises(SchemaError, match="unknown field type"):
            load_schemas({"users": {"fields": {"id": "uuid4"}}})

    def test_relation_without_target(self):
        with pytest.raises(SchemaError, match="relation needs"):
            load_schemas({"users": {"fields": {"posts": {"type": "has_many"}}}})

    def test_empty(self):
        assert load_schemas({}) == []
