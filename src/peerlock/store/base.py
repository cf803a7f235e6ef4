"""Shared state store interface.

The store is the ground truth of the lock protocol: every peer can read and
write it, and every peer is told when another peer writes to it.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class StoreChange:
    """A write observed on the shared store.

    ``new_value`` is None when the key was deleted.
    """

    key: str
    old_value: str | None
    new_value: str | None


StoreChangeHandler = Callable[[StoreChange], Awaitable[None]]


class SharedStore(ABC):
    """Abstract shared key/value store.

    Change notifications go to every watching peer except the writer.
    """

    @abstractmethod
    async def get(self, key: str) -> str | None:
        """Return the value of ``key`` or None if absent."""
        pass

    @abstractmethod
    async def set(self, key: str, value: str) -> None:
        """Write ``value`` under ``key``."""
        pass

    @abstractmethod
    async def delete(self, key: str) -> None:
        """Remove ``key`` if present."""
        pass

    @abstractmethod
    async def watch(self, handler: StoreChangeHandler) -> None:
        """Register a handler for writes made by other peers."""
        pass

    @abstractmethod
    async def unwatch(self, handler: StoreChangeHandler) -> None:
        """Remove a previously registered handler."""
        pass

    @abstractmethod
    async def start(self) -> None:
        """Start delivering change notifications."""
        pass

    @abstractmethod
    async def stop(self) -> None:
        """Stop delivering change notifications."""
        pass
