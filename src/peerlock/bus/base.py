"""Broadcast bus implementation for peerlock.

Provides best-effort pub/sub between peers:
- InMemoryBroadcastBus: for simulated peers inside one process
- RedisBroadcastBus: for peers in separate processes (Redis Pub/Sub)

A publish reaches every *other* started peer at most once. Nothing is
persisted and nothing is retried.
"""

from __future__ import annotations

import asyncio
import logging
import random
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable

from peerlock.bus.messages import LockMessage

logger = logging.getLogger(__name__)


MessageHandler = Callable[[LockMessage], Awaitable[None]]


class BroadcastBus(ABC):
    """Abstract broadcast bus interface."""

    @abstractmethod
    async def publish(self, message: LockMessage) -> None:
        """Publish a message to all other peers."""
        pass

    @abstractmethod
    async def subscribe(self, handler: MessageHandler) -> None:
        """Subscribe a handler to receive messages."""
        pass

    @abstractmethod
    async def unsubscribe(self, handler: MessageHandler) -> None:
        """Remove a previously subscribed handler."""
        pass

    @abstractmethod
    async def start(self) -> None:
        """Start the bus."""
        pass

    @abstractmethod
    async def stop(self) -> None:
        """Stop the bus."""
        pass


class InMemoryBusHub:
    """Fan-out point shared by a group of simulated peers.

    Args:
        drop_rate: Probability that a single delivery is silently lost
        rng: Random source used for drops
    """

    def __init__(self, drop_rate: float = 0.0, rng: random.Random | None = None):
        self.drop_rate = drop_rate
        self._rng = rng or random.Random()
        self._buses: list[InMemoryBroadcastBus] = []

    def connect(self) -> "InMemoryBroadcastBus":
        """Create a new peer endpoint on this hub."""
        bus = InMemoryBroadcastBus(self)
        self._buses.append(bus)
        return bus

    def _deliver(self, origin: "InMemoryBroadcastBus", message: LockMessage) -> None:
        for bus in self._buses:
            if bus is origin or not bus.running:
                continue
            if self.drop_rate and self._rng.random() < self.drop_rate:
                logger.debug(f"Dropped {message.type.value} on its way to a peer")
                continue
            bus._enqueue(message)


class InMemoryBroadcastBus(BroadcastBus):
    """In-memory bus endpoint using asyncio.Queue.

    Messages for this peer are processed in arrival order by a single task,
    so handlers never run concurrently with each other.
    """

    def __init__(self, hub: InMemoryBusHub):
        self.hub = hub
        self._queue: asyncio.Queue[LockMessage] = asyncio.Queue()
        self._handlers: list[MessageHandler] = []
        self._running = False
        self._task: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        return self._running

    async def publish(self, message: LockMessage) -> None:
        self.hub._deliver(self, message)

    async def subscribe(self, handler: MessageHandler) -> None:
        self._handlers.append(handler)

    async def unsubscribe(self, handler: MessageHandler) -> None:
        if handler in self._handlers:
            self._handlers.remove(handler)

    async def start(self) -> None:
        """Start processing messages."""
        if self._running:
            return

        self._running = True
        self._task = asyncio.create_task(self._process_loop())

    async def stop(self) -> None:
        """Stop processing messages."""
        self._running = False

        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None

    def _enqueue(self, message: LockMessage) -> None:
        self._queue.put_nowait(message)

    async def _process_loop(self) -> None:
        while self._running:
            try:
                message = await self._queue.get()

                for handler in list(self._handlers):
                    try:
                        await handler(message)
                    except Exception:
                        # Log error but continue processing
                        logger.exception("Error in message handler")

                self._queue.task_done()

            except asyncio.CancelledError:
                break

    @property
    def pending_count(self) -> int:
        """Number of messages waiting to be processed."""
        return self._queue.qsize()

    async def drain(self) -> None:
        """Wait for all pending messages to be processed."""
        await self._queue.join()
