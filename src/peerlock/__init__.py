"""peerlock: single-owner lock for peers sharing a store and a broadcast bus.

Example:
    from peerlock import LockCallbacks, create_coordinator

    coordinator = create_coordinator(callbacks=LockCallbacks(
        on_lost_ownership=stop_using_resource,
    ))
    async with coordinator:
        if await coordinator.claim():
            ...
"""

from peerlock.bus import BroadcastBus, InMemoryBusHub, LockMessage, MessageType, RedisBroadcastBus
from peerlock.config import Settings, settings
from peerlock.keys import LockKeys
from peerlock.lock import LockCallbacks, LockCoordinator, LockState
from peerlock.runtime import create_bus, create_coordinator, create_store
from peerlock.store import InMemoryStoreHub, RedisSharedStore, SharedStore, StoreChange

__all__ = [
    "Settings",
    "settings",
    "LockKeys",
    # Lock
    "LockCoordinator",
    "LockCallbacks",
    "LockState",
    # Store
    "SharedStore",
    "StoreChange",
    "InMemoryStoreHub",
    "RedisSharedStore",
    # Bus
    "BroadcastBus",
    "LockMessage",
    "MessageType",
    "InMemoryBusHub",
    "RedisBroadcastBus",
    # Runtime
    "create_store",
    "create_bus",
    "create_coordinator",
]
