"""Synchronization layer.

Decides, for every operation, whether to read the local store, write it, or
round-trip to the remote, and tracks how working records differ from the
store's canonical copies.
"""

from .commands import CommandKind, Dispatcher, MutationResult
from .context import SyncContext
from .model import EntityModel, Persistable, Queryable, Record, RecordState

__all__ = [
    "CommandKind",
    "Dispatcher",
    "MutationResult",
    "SyncContext",
    "EntityModel",
    "Persistable",
    "Queryable",
    "Record",
    "RecordState",
]
