"""Local record store.

Provides the normalized in-memory cache that every read goes through, and
the query builder used to evaluate reads against it.
"""

from .local_store import LocalStore
from .query import Query

__all__ = ["LocalStore", "Query"]
