"""Entity schema declarations and the registry that validates them."""

import logging
from dataclasses import dataclass, replace
from types import MappingProxyType
from typing import Any, Mapping

from ..errors import SchemaError
from .fields import FIELD_FACTORIES, RELATION_KINDS, Field

logger = logging.getLogger(__name__)


def singularize(name: str) -> str:
    """Best-effort singular form of a plural entity name."""
    if name.endswith("ies") and len(name) > 3:
        return name[:-3] + "y"
    if name.endswith("sses"):
        return name[:-2]
    if name.endswith("s") and not name.endswith("ss"):
        return name[:-1]
    return name


@dataclass(frozen=True, eq=False)
class EntitySchema:
    """Declaration of an entity type.

    Immutable once built. `singular` is filled in by the registry at
    registration time when not declared explicitly.
    """

    entity: str
    fields: Mapping[str, Field]
    singular: str | None = None
    primary_key: str = "id"

    def __post_init__(self) -> None:
        object.__setattr__(self, "fields", MappingProxyType(dict(self.fields)))

    @property
    def attribute_names(self) -> list[str]:
        """Names of the non-relation fields, in declaration order."""
        return [name for name, f in self.fields.items() if not f.is_relation]

    @property
    def relation_names(self) -> list[str]:
        return [name for name, f in self.fields.items() if f.is_relation]

    @property
    def increment_field(self) -> str | None:
        for name, f in self.fields.items():
            if f.is_increment:
                return name
        return None

    def normalize_id(self, value: Any) -> Any:
        """Coerce numeric-string identities of increment keys to int.

        Remote services commonly serialize IDs as strings.
        """
        field = self.fields.get(self.primary_key)
        if (
            field is not None
            and field.is_increment
            and isinstance(value, str)
            and value.isdigit()
        ):
            return int(value)
        return value

    def defaults(self) -> dict[str, Any]:
        """Fresh default values for every attribute field."""
        return {
            name: f.make_default()
            for name, f in self.fields.items()
            if not f.is_relation
        }


class SchemaRegistry:
    """Holds the entity schemas known to one sync context."""

    def __init__(self) -> None:
        self._schemas: dict[str, EntitySchema] = {}

    def register(self, schema: EntitySchema) -> EntitySchema:
        """Register a schema.

        Args:
            schema: The entity declaration.

        Returns:
            The registered schema, with its singular name resolved.

        Raises:
            SchemaError: If the type name is taken or the schema is malformed.
        """
        if schema.entity in self._schemas:
            raise SchemaError(f"Entity '{schema.entity}' is already registered")
        if schema.primary_key not in schema.fields:
            raise SchemaError(
                f"Entity '{schema.entity}' does not declare its primary key "
                f"'{schema.primary_key}'"
            )
        if schema.fields[schema.primary_key].is_relation:
            raise SchemaError(
                f"Primary key of '{schema.entity}' cannot be a relation"
            )

        if not schema.singular:
            schema = replace(schema, singular=singularize(schema.entity))

        self._schemas[schema.entity] = schema
        logger.debug(f"Registered entity {schema.entity} ({schema.singular})")
        return schema

    def validate(self) -> None:
        """Check that every relation targets a registered entity.

        Raises:
            SchemaError: On a dangling relation.
        """
        for schema in self._schemas.values():
            for name, f in schema.fields.items():
                if f.is_relation and f.related not in self._schemas:
                    raise SchemaError(
                        f"{schema.entity}.{name} relates to unknown entity "
                        f"'{f.related}'"
                    )

    def get(self, entity: str) -> EntitySchema:
        try:
            return self._schemas[entity]
        except KeyError:
            raise SchemaError(f"Unknown entity '{entity}'") from None

    def __contains__(self, entity: str) -> bool:
        return entity in self._schemas

    def __iter__(self):
        return iter(self._schemas.values())

    @property
    def entities(self) -> list[str]:
        return list(self._schemas.keys())


def _parse_field(entity: str, name: str, data: Any) -> Field:
    """Parse one field entry from config.

    Accepts a bare kind ("increment", "string") or a mapping with a `type`
    key plus `default`, `related` and `foreign_key`.
    """
    if isinstance(data, str):
        data = {"type": data}
    if not isinstance(data, dict) or "type" not in data:
        raise SchemaError(f"{entity}.{name}: field needs a type")

    kind = data["type"]
    if kind not in FIELD_FACTORIES:
        raise SchemaError(f"{entity}.{name}: unknown field type '{kind}'")

    if kind in RELATION_KINDS:
        if "related" not in data or "foreign_key" not in data:
            raise SchemaError(
                f"{entity}.{name}: relation needs 'related' and 'foreign_key'"
            )
        return FIELD_FACTORIES[kind](data["related"], data["foreign_key"])

    if kind == "increment":
        return FIELD_FACTORIES[kind]()

    if "default" in data:
        return FIELD_FACTORIES[kind](data["default"])
    return FIELD_FACTORIES[kind]()


def load_schemas(data: dict[str, Any]) -> list[EntitySchema]:
    """Build schemas from the `entities` section of a config file.

    Args:
        data: Mapping of entity name to {singular, primary_key, fields}.

    Returns:
        List of (unregistered) EntitySchema objects.
    """
    schemas = []
    for entity, entity_data in (data or {}).items():
        entity_data = entity_data or {}
        fields = {
            name: _parse_field(entity, name, field_data)
            for name, field_data in (entity_data.get("fields") or {}).items()
        }
        schemas.append(
            EntitySchema(
                entity=entity,
                fields=fields,
                singular=entity_data.get("singular"),
                primary_key=entity_data.get("primary_key", "id"),
            )
        )
    return schemas
