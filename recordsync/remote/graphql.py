"""GraphQL-over-HTTP remote adapter.

Builds queries and mutations from entity schemas using the conventional
naming scheme (`user(id)`, `users(filter) { nodes }`, `createUser`,
`updateUser`, `deleteUser`) and executes them with retry on transient
transport failures.
"""

import asyncio
import json
import logging
from typing import Any

import httpx

from ..config import RemoteConfig
from ..errors import RemoteError
from ..schema import EntitySchema
from .base import RemoteAdapter

logger = logging.getLogger(__name__)


def camelize(name: str, upper_first: bool = True) -> str:
    """Convert snake_case names to CamelCase / camelCase."""
    parts = [p for p in name.split("_") if p]
    if not parts:
        return name
    head = parts[0][0].upper() + parts[0][1:] if upper_first else parts[0]
    return head + "".join(p[0].upper() + p[1:] for p in parts[1:])


def to_literal(value: Any) -> str:
    """Render a Python value as an inline GraphQL literal."""
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return repr(value)
    if isinstance(value, str):
        return json.dumps(value)
    if isinstance(value, (list, tuple)):
        return "[" + ", ".join(to_literal(v) for v in value) + "]"
    if isinstance(value, dict):
        return "{" + ", ".join(f"{k}: {to_literal(v)}" for k, v in value.items()) + "}"
    raise TypeError(f"Cannot render {type(value).__name__} as a GraphQL literal")


def _inline_args(args: dict[str, Any]) -> str:
    return ", ".join(f"{k}: {to_literal(v)}" for k, v in args.items())


class GraphQLAdapter(RemoteAdapter):
    """Remote adapter speaking GraphQL over HTTP with httpx."""

    def __init__(self, config: RemoteConfig):
        """Initialize the adapter.

        Args:
            config: Endpoint URL, timeout, retry and header settings.
        """
        self.config = config
        self.url = config.url
        self.max_retries = max(1, config.max_retries)
        self._client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=self.config.timeout,
                headers=self.config.headers,
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def health_check(self) -> bool:
        """Check that the endpoint answers a trivial query."""
        try:
            await self.execute("query { __typename }", operation="health")
            return True
        except RemoteError as e:
            logger.debug(f"Health check failed: {e}")
            return False

    async def execute(
        self,
        query: str,
        variables: dict[str, Any] | None = None,
        operation: str = "query",
    ) -> dict[str, Any]:
        """Post a GraphQL document, retrying transient failures.

        Args:
            query: GraphQL document.
            variables: Variable values.
            operation: Name used in errors and logs.

        Returns:
            The `data` member of the response.

        Raises:
            RemoteError: On transport failure, non-2xx response or GraphQL errors.
        """
        client = await self._get_client()
        payload = {"query": query, "variables": variables or {}}
        backoff = 1.0
        last_error = "no attempt made"

        for attempt in range(self.max_retries):
            try:
                response = await client.post(self.url, json=payload)

                if response.status_code >= 500:
                    # Server error, retry
                    last_error = f"HTTP {response.status_code}"
                    logger.warning(
                        f"Server error {response.status_code} on {operation}, "
                        f"attempt {attempt + 1}/{self.max_retries}"
                    )
                elif response.status_code >= 400:
                    # Client error, don't retry
                    raise RemoteError(
                        f"HTTP {response.status_code}: {response.text}",
                        operation=operation,
                        status_code=response.status_code,
                    )
                else:
                    try:
                        body = response.json()
                    except ValueError as e:
                        raise RemoteError(
                            f"Invalid JSON response: {e}",
                            operation=operation,
                            status_code=response.status_code,
                        ) from e
                    return self._unwrap(body, operation)

            except httpx.ConnectError as e:
                last_error = f"Connection failed: {e}"
                logger.warning(
                    f"Connection failed on {operation}, "
                    f"attempt {attempt + 1}/{self.max_retries}"
                )
            except httpx.TimeoutException:
                last_error = "Request timeout"
                logger.warning(
                    f"Request timeout on {operation}, "
                    f"attempt {attempt + 1}/{self.max_retries}"
                )
            except httpx.HTTPError as e:
                raise RemoteError(str(e), operation=operation) from e

            # Exponential backoff
            if attempt < self.max_retries - 1:
                await asyncio.sleep(backoff)
                backoff *= 2

        raise RemoteError(
            f"{last_error} (max retries {self.max_retries} exceeded)",
            operation=operation,
        )

    @staticmethod
    def _unwrap(body: Any, operation: str) -> dict[str, Any]:
        if not isinstance(body, dict):
            raise RemoteError("Malformed GraphQL response", operation=operation)
        if errors := body.get("errors"):
            messages = [
                e.get("message", str(e)) if isinstance(e, dict) else str(e)
                for e in errors
            ]
            raise RemoteError("; ".join(messages), operation=operation, errors=errors)
        return body.get("data") or {}

    # === Document builders ===

    def _type_name(self, schema: EntitySchema) -> str:
        return camelize(schema.singular or schema.entity)

    def _single_field(self, schema: EntitySchema) -> str:
        return camelize(schema.singular or schema.entity, upper_first=False)

    def _plural_field(self, schema: EntitySchema) -> str:
        return camelize(schema.entity, upper_first=False)

    def selection(self, schema: EntitySchema, depth: int = 1) -> str:
        """Selection set with every attribute and one level of relations."""
        parts = list(schema.attribute_names)
        if depth > 0 and self.registry is not None:
            for name in schema.relation_names:
                related = self.registry.get(schema.fields[name].related)
                parts.append(f"{name} {{ {self.selection(related, depth - 1)} }}")
        return " ".join(parts)

    def _input(self, schema: EntitySchema, data: dict[str, Any]) -> dict[str, Any]:
        return {
            k: v
            for k, v in data.items()
            if k in schema.attribute_names and k != schema.primary_key
        }

    def _records(self, value: Any) -> list[dict[str, Any]]:
        if value is None:
            return []
        if isinstance(value, list):
            return value
        if isinstance(value, dict) and isinstance(value.get("nodes"), list):
            return value["nodes"]
        return [value]

    # === Operations ===

    async def fetch(
        self, schema: EntitySchema, filter: dict[str, Any]
    ) -> list[dict[str, Any]]:
        type_name = self._type_name(schema)
        selection = self.selection(schema)

        if set(filter) == {schema.primary_key}:
            field = self._single_field(schema)
            query = (
                f"query {type_name}($id: ID!) "
                f"{{ {field}(id: $id) {{ {selection} }} }}"
            )
            data = await self.execute(
                query, {"id": filter[schema.primary_key]}, operation="fetch"
            )
        else:
            field = self._plural_field(schema)
            query = (
                f"query {camelize(schema.entity)}($filter: {type_name}Filter) "
                f"{{ {field}(filter: $filter) {{ nodes {{ {selection} }} }} }}"
            )
            data = await self.execute(query, {"filter": filter}, operation="fetch")

        return self._records(data.get(field))

    async def _create(
        self,
        schema: EntitySchema,
        data: dict[str, Any],
        args: dict[str, Any],
        operation: str,
    ) -> list[dict[str, Any]]:
        type_name = self._type_name(schema)
        var = self._single_field(schema)
        extra = f", {_inline_args(args)}" if args else ""
        query = (
            f"mutation Create{type_name}(${var}: {type_name}Input!) "
            f"{{ create{type_name}({var}: ${var}{extra}) {{ {self.selection(schema)} }} }}"
        )
        result = await self.execute(
            query, {var: self._input(schema, data)}, operation=operation
        )
        return self._records(result.get(f"create{type_name}"))

    async def _update(
        self,
        schema: EntitySchema,
        record_id: Any,
        data: dict[str, Any],
        args: dict[str, Any],
        operation: str,
    ) -> list[dict[str, Any]]:
        type_name = self._type_name(schema)
        var = self._single_field(schema)
        extra = f", {_inline_args(args)}" if args else ""
        query = (
            f"mutation Update{type_name}($id: ID!, ${var}: {type_name}Input!) "
            f"{{ update{type_name}(id: $id, {var}: ${var}{extra}) "
            f"{{ {self.selection(schema)} }} }}"
        )
        result = await self.execute(
            query,
            {"id": record_id, var: self._input(schema, data)},
            operation=operation,
        )
        return self._records(result.get(f"update{type_name}"))

    async def insert(
        self, schema: EntitySchema, data: dict[str, Any]
    ) -> list[dict[str, Any]]:
        return await self._create(schema, data, {}, "insert")

    async def persist(
        self, schema: EntitySchema, data: dict[str, Any], args: dict[str, Any]
    ) -> list[dict[str, Any]]:
        return await self._create(schema, data, args, "persist")

    async def update(
        self, schema: EntitySchema, record_id: Any, data: dict[str, Any]
    ) -> list[dict[str, Any]]:
        return await self._update(schema, record_id, data, {}, "update")

    async def push(
        self, schema: EntitySchema, data: dict[str, Any], args: dict[str, Any]
    ) -> list[dict[str, Any]]:
        return await self._update(
            schema, data.get(schema.primary_key), data, args, "push"
        )

    async def destroy(self, schema: EntitySchema, record_id: Any) -> None:
        type_name = self._type_name(schema)
        query = (
            f"mutation Delete{type_name}($id: ID!) "
            f"{{ delete{type_name}(id: $id) {{ {schema.primary_key} }} }}"
        )
        await self.execute(query, {"id": record_id}, operation="destroy")

    async def destroy_all(self, schema: EntitySchema) -> None:
        plural = camelize(schema.entity)
        query = f"mutation Delete{plural} {{ delete{plural} }}"
        await self.execute(query, operation="destroy_all")

    async def mutate(
        self, schema: EntitySchema, name: str, args: dict[str, Any]
    ) -> Any:
        # The name travels in the document, not as an argument
        args = {k: v for k, v in args.items() if k != "mutation"}
        arguments = f"({_inline_args(args)})" if args else ""
        query = f"mutation {{ {name}{arguments} {{ {self.selection(schema)} }} }}"
        result = await self.execute(query, operation="mutate")
        return result.get(name)
