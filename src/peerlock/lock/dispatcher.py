"""Routes inbound broadcasts and store changes into lock state.

Both inbound channels funnel through one ``asyncio.Lock``, so handlers run
to completion one at a time even when they await store I/O.

Owner-changed notifications are de-duplicated against
``coordinator.last_notified_owner``: the host hears about each distinct
owner transition once, however many broadcasts and store changes report it.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from peerlock.bus.messages import LockMessage, MessageType
from peerlock.store.base import StoreChange

if TYPE_CHECKING:
    from peerlock.lock.arbiter import TakeoverArbiter
    from peerlock.lock.coordinator import LockCoordinator

logger = logging.getLogger(__name__)


class MessageDispatcher:
    """Applies inbound events to one coordinator and its arbiter."""

    def __init__(self, coordinator: LockCoordinator, arbiter: TakeoverArbiter):
        self.coordinator = coordinator
        self.arbiter = arbiter
        self._lock = asyncio.Lock()

    async def on_message(self, message: LockMessage) -> None:
        """Handle one broadcast from the bus."""
        async with self._lock:
            await self._dispatch_message(message)

    async def on_store_change(self, change: StoreChange) -> None:
        """Handle one write to the shared store made by another peer."""
        async with self._lock:
            await self._dispatch_store_change(change)

    async def _dispatch_message(self, message: LockMessage) -> None:
        coordinator = self.coordinator
        self_id = coordinator.peer_id

        if message.type == MessageType.HEARTBEAT:
            return

        # Candidacies are recorded whether or not we are electing right now.
        if message.type == MessageType.TAKEOVER_CANDIDATE:
            if message.candidate_id and message.candidate_id != self_id:
                self.arbiter.add_candidate(message.candidate_id)
            return

        if message.sender == self_id:
            return

        logger.debug(f"Received {message.type.value} from {message.sender}")

        if message.type == MessageType.OWNER_CHANGED:
            self.notify_owner(message.owner)

        elif message.type == MessageType.REQUEST_RELEASE:
            if coordinator.is_owner:
                logger.info(f"Peer {message.sender} requested release; stepping down")
                coordinator.callbacks.on_takeover_requested(message.sender)
                await coordinator.release(announce=True)

        elif message.type == MessageType.RELEASED:
            self.notify_owner(None)

    async def _dispatch_store_change(self, change: StoreChange) -> None:
        coordinator = self.coordinator
        if change.key != coordinator.keys.owner:
            return

        current = change.new_value
        if coordinator.is_owner and current != coordinator.peer_id:
            logger.warning(
                f"Ownership record overwritten by {current}; yielding without announcement"
            )
            await coordinator.release(announce=False)

        self.notify_owner(current)

    def notify_owner(self, owner: str | None) -> None:
        """Invoke the owner-changed hook if ``owner`` differs from the last one reported."""
        coordinator = self.coordinator
        if coordinator.last_notified_owner == owner:
            return

        coordinator.last_notified_owner = owner
        coordinator.callbacks.on_owner_changed(owner)
