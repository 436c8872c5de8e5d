"""Remote adapters.

The sync layer talks to the remote persistence service only through the
RemoteAdapter interface.
"""

from .base import RemoteAdapter
from .graphql import GraphQLAdapter
from .memory import InMemoryAdapter

__all__ = ["RemoteAdapter", "GraphQLAdapter", "InMemoryAdapter"]
