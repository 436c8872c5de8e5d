"""Exception types raised by recordsync."""

from typing import Any


class RecordSyncError(Exception):
    """Base class for all recordsync errors."""


class RemoteError(RecordSyncError):
    """The remote adapter rejected a dispatch.

    Covers network failures, server-side validation and auth failures.
    """

    def __init__(
        self,
        message: str,
        operation: str | None = None,
        status_code: int | None = None,
        errors: list[Any] | None = None,
    ):
        super().__init__(message)
        self.operation = operation
        self.status_code = status_code
        self.errors = errors or []


class SchemaError(RecordSyncError):
    """Invalid or conflicting entity registration."""


class StaleRecordError(RecordSyncError):
    """Operation on a removed or unknown record."""

    def __init__(self, entity: str, record_id: Any, reason: str = "record was removed"):
        super().__init__(f"{entity}#{record_id}: {reason}")
        self.entity = entity
        self.record_id = record_id


class NotFoundError(RecordSyncError):
    """A query that promised exactly one record found none."""

    def __init__(self, entity: str, record_id: Any):
        super().__init__(f"No {entity} record with id {record_id!r}")
        self.entity = entity
        self.record_id = record_id
