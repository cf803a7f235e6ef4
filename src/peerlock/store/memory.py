"""In-memory shared store for simulating several peers in one process.

All peers connected to the same ``InMemoryStoreHub`` see one dictionary.
Each peer's view has its own queue of pending change notifications which is
drained by a background task, so a writer never observes its own writes and
handlers for one peer run one at a time.
"""

from __future__ import annotations

import asyncio
import logging

from peerlock.store.base import SharedStore, StoreChange, StoreChangeHandler

logger = logging.getLogger(__name__)


class InMemoryStoreHub:
    """Backing dictionary shared by a group of simulated peers."""

    def __init__(self) -> None:
        self.data: dict[str, str] = {}
        self._views: list[InMemorySharedStore] = []

    def connect(self) -> "InMemorySharedStore":
        """Create a new peer view onto this hub."""
        view = InMemorySharedStore(self)
        self._views.append(view)
        return view

    def _notify(self, origin: "InMemorySharedStore", change: StoreChange) -> None:
        for view in self._views:
            if view is not origin and view.running:
                view._enqueue(change)


class InMemorySharedStore(SharedStore):
    """One peer's view of an ``InMemoryStoreHub``."""

    def __init__(self, hub: InMemoryStoreHub):
        self.hub = hub
        self._queue: asyncio.Queue[StoreChange] = asyncio.Queue()
        self._handlers: list[StoreChangeHandler] = []
        self._running = False
        self._task: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        return self._running

    async def get(self, key: str) -> str | None:
        return self.hub.data.get(key)

    async def set(self, key: str, value: str) -> None:
        old = self.hub.data.get(key)
        self.hub.data[key] = value
        self.hub._notify(self, StoreChange(key=key, old_value=old, new_value=value))

    async def delete(self, key: str) -> None:
        if key not in self.hub.data:
            return
        old = self.hub.data.pop(key)
        self.hub._notify(self, StoreChange(key=key, old_value=old, new_value=None))

    async def watch(self, handler: StoreChangeHandler) -> None:
        self._handlers.append(handler)

    async def unwatch(self, handler: StoreChangeHandler) -> None:
        if handler in self._handlers:
            self._handlers.remove(handler)

    async def start(self) -> None:
        """Start processing change notifications."""
        if self._running:
            return

        self._running = True
        self._task = asyncio.create_task(self._process_loop())

    async def stop(self) -> None:
        """Stop processing change notifications."""
        self._running = False

        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None

    def _enqueue(self, change: StoreChange) -> None:
        self._queue.put_nowait(change)

    async def _process_loop(self) -> None:
        while self._running:
            try:
                change = await self._queue.get()

                for handler in list(self._handlers):
                    try:
                        await handler(change)
                    except Exception:
                        logger.exception("Error in store change handler")

                self._queue.task_done()

            except asyncio.CancelledError:
                break

    async def drain(self) -> None:
        """Wait for all pending notifications to be processed."""
        await self._queue.join()
