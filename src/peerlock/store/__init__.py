"""Shared state store backends.

- InMemorySharedStore: several simulated peers in one process
- RedisSharedStore: peers in separate processes sharing a Redis server
"""

from peerlock.store.base import SharedStore, StoreChange, StoreChangeHandler
from peerlock.store.memory import InMemoryStoreHub, InMemorySharedStore
from peerlock.store.redis_store import RedisSharedStore

__all__ = [
    "SharedStore",
    "StoreChange",
    "StoreChangeHandler",
    "InMemoryStoreHub",
    "InMemorySharedStore",
    "RedisSharedStore",
]
