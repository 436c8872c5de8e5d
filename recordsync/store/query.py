"""Read queries against the local store."""

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from .local_store import LocalStore


def values_equal(left: Any, right: Any) -> bool:
    """Exact equality that keeps booleans distinct from numbers."""
    if isinstance(left, bool) != isinstance(right, bool):
        return False
    return left == right


class Query:
    """Conjunctive equality query over one entity.

    Example:
        store.query("users").where("email", "a@x.com").with_all().get()
    """

    def __init__(self, store: "LocalStore", entity: str):
        self._store = store
        self._schema = store.registry.get(entity)
        self._filters: list[tuple[str, Any]] = []
        self._load_relations = False

    def where(self, field: str, value: Any) -> "Query":
        """Add an equality condition. All conditions must hold."""
        self._filters.append((field, value))
        return self

    def with_all(self) -> "Query":
        """Populate every declared relation on the results."""
        self._load_relations = True
        return self

    def _matches(self, row: dict[str, Any]) -> bool:
        attributes = self._schema.attribute_names
        for field, value in self._filters:
            # Unknown fields match nothing
            if field not in attributes:
                return False
            if field == self._schema.primary_key:
                value = self._schema.normalize_id(value)
            if not values_equal(row.get(field), value):
                return False
        return True

    def _load(self, row: dict[str, Any]) -> dict[str, Any]:
        record = dict(row)
        if not self._load_relations:
            return record

        for name in self._schema.relation_names:
            field = self._schema.fields[name]
            related_rows = self._store.rows(field.related)

            if field.kind == "belongs_to":
                related_pk = self._store.registry.get(field.related).primary_key
                target = record.get(field.foreign_key)
                record[name] = next(
                    (
                        dict(r)
                        for r in related_rows
                        if target is not None and values_equal(r.get(related_pk), target)
                    ),
                    None,
                )
                continue

            own_id = record.get(self._schema.primary_key)
            children = [
                dict(r)
                for r in related_rows
                if values_equal(r.get(field.foreign_key), own_id)
            ]
            if field.kind == "has_one":
                record[name] = children[0] if children else None
            else:
                record[name] = children

        return record

    def get(self) -> list[dict[str, Any]]:
        """Execute the query. Results are copies in insertion order."""
        return [
            self._load(row)
            for row in self._store.rows(self._schema.entity)
            if self._matches(row)
        ]

    all = get

    def first(self) -> dict[str, Any] | None:
        for row in self._store.rows(self._schema.entity):
            if self._matches(row):
                return self._load(row)
        return None

    def last(self) -> dict[str, Any] | None:
        for row in reversed(self._store.rows(self._schema.entity)):
            if self._matches(row):
                return self._load(row)
        return None

    def find(self, record_id: Any) -> dict[str, Any] | None:
        """First match with the given identity, or None."""
        return self.where(self._schema.primary_key, record_id).first()

