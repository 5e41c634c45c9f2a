"""Session persistence: store contract and its in-memory and Redis implementations"""

from .base import SessionStore
from .exceptions import ConcurrentModificationError, NotFoundError, StorageError
from .memory_store import InMemorySessionStore
from .redis_store import RedisSessionStore

__all__ = [
    "ConcurrentModificationError",
    "InMemorySessionStore",
    "NotFoundError",
    "RedisSessionStore",
    "SessionStore",
    "StorageError",
]
