"""Entity schema declarations.

Schemas describe each entity type: its fields, their defaults, the identity
key and the relations to other entities.
"""

from .entity import EntitySchema, SchemaRegistry, load_schemas, singularize
from .fields import (
    Field,
    attr,
    belongs_to,
    boolean,
    has_many,
    has_one,
    increment,
    number,
    string,
)

__all__ = [
    "EntitySchema",
    "SchemaRegistry",
    "load_schemas",
    "singularize",
    "Field",
    "attr",
    "belongs_to",
    "boolean",
    "has_many",
    "has_one",
    "increment",
    "number",
    "string",
]
