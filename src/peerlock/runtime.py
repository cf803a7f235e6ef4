"""Runtime wiring for peerlock backends."""

from __future__ import annotations

import logging

from peerlock.bus.base import BroadcastBus, InMemoryBusHub
from peerlock.bus.redis_bus import RedisBroadcastBus
from peerlock.config import Settings, settings
from peerlock.keys import LockKeys
from peerlock.lock.callbacks import LockCallbacks
from peerlock.lock.coordinator import LockCoordinator
from peerlock.store.base import SharedStore
from peerlock.store.memory import InMemoryStoreHub
from peerlock.store.redis_store import RedisSharedStore

logger = logging.getLogger(__name__)

MEMORY_BACKENDS = {"memory", "inmemory", "in_memory"}
REDIS_BACKENDS = {"redis"}

# Process-local hubs backing the memory backend
_store_hub: InMemoryStoreHub | None = None
_bus_hub: InMemoryBusHub | None = None


def _keys(config: Settings) -> LockKeys:
    return LockKeys(resource=config.resource, prefix=config.key_prefix)


def create_store(config: Settings | None = None) -> SharedStore:
    """Create a shared store based on configuration."""
    global _store_hub
    config = config or settings
    backend = config.backend.lower()

    if backend in MEMORY_BACKENDS:
        if _store_hub is None:
            _store_hub = InMemoryStoreHub()
        return _store_hub.connect()

    if backend in REDIS_BACKENDS:
        return RedisSharedStore(_keys(config))

    raise ValueError("Unsupported backend. Supported values: memory, redis.")


def create_bus(config: Settings | None = None) -> BroadcastBus:
    """Create a broadcast bus based on configuration."""
    global _bus_hub
    config = config or settings
    backend = config.backend.lower()

    if backend in MEMORY_BACKENDS:
        if _bus_hub is None:
            _bus_hub = InMemoryBusHub()
        return _bus_hub.connect()

    if backend in REDIS_BACKENDS:
        return RedisBroadcastBus(_keys(config))

    raise ValueError("Unsupported backend. Supported values: memory, redis.")


def create_coordinator(
    config: Settings | None = None,
    callbacks: LockCallbacks | None = None,
) -> LockCoordinator:
    """Create a coordinator with store and bus for the configured backend."""
    config = config or settings
    coordinator = LockCoordinator(
        create_store(config),
        create_bus(config),
        config,
        callbacks,
        keys=_keys(config),
    )
    logger.debug(f"Created coordinator {coordinator.peer_id} ({config.backend} backend)")
    return coordinator


def reset_memory_backend() -> None:
    """Forget the process-local hubs of the memory backend."""
    global _store_hub, _bus_hub
    _store_hub = None
    _bus_hub = None
