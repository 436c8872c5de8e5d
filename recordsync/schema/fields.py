"""Field declarations for entity schemas."""

from dataclasses import dataclass
from typing import Any, Callable


@dataclass(frozen=True)
class Field:
    """A declared entity field.

    Attribute fields carry a default (a value or a zero-argument callable).
    Relation fields point at another entity and are never stored on a
    snapshot; they are resolved when a query loads relations.
    """

    kind: str  # "increment", "string", "number", "boolean", "attr", or a relation kind
    default: Any = None
    related: str | None = None
    foreign_key: str | None = None

    @property
    def is_relation(self) -> bool:
        return self.kind in RELATION_KINDS

    @property
    def is_increment(self) -> bool:
        return self.kind == "increment"

    def make_default(self) -> Any:
        """Produce a fresh default value for this field."""
        if callable(self.default):
            return self.default()
        return self.default


RELATION_KINDS = frozenset({"has_many", "has_one", "belongs_to"})


def increment() -> Field:
    """Auto-incrementing identity field."""
    return Field("increment")


def string(default: str | Callable[[], str] | None = "") -> Field:
    return Field("string", default)


def number(default: float | int | Callable[[], Any] | None = 0) -> Field:
    return Field("number", default)


def boolean(default: bool | Callable[[], bool] | None = False) -> Field:
    return Field("boolean", default)


def attr(default: Any = None) -> Field:
    """Untyped attribute field."""
    return Field("attr", default)


def has_many(related: str, foreign_key: str) -> Field:
    """Collection of `related` records whose `foreign_key` holds this record's id."""
    return Field("has_many", related=related, foreign_key=foreign_key)


def has_one(related: str, foreign_key: str) -> Field:
    return Field("has_one", related=related, foreign_key=foreign_key)


def belongs_to(related: str, foreign_key: str) -> Field:
    """Single `related` record whose id is held in this record's `foreign_key`."""
    return Field("belongs_to", related=related, foreign_key=foreign_key)


FIELD_FACTORIES: dict[str, Callable[..., Field]] = {
    "increment": increment,
    "string": string,
    "number": number,
    "boolean": boolean,
    "attr": attr,
    "has_many": has_many,
    "has_one": has_one,
    "belongs_to": belongs_to,
}
