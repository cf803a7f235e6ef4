"""Negotiated takeover of a possibly-live owner.

A takeover has two phases:

1. Courtesy: broadcast ``request-release`` and wait ``takeover_wait_ms``.
   A live, cooperative owner releases and announces it.
2. Election: broadcast ``takeover-candidate`` and collect the candidacies
   of other challengers for ``election_window_ms``. The greatest peer id
   wins; every peer compares ids the same way, so all challengers agree
   on the winner without touching the store.

Only the winner goes on to validate that the store is free (twice, around
a jitter) and to run the coordinator's write-and-confirm step.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import TYPE_CHECKING

from peerlock.bus.messages import LockMessage
from peerlock.lock.state import LockState

if TYPE_CHECKING:
    from peerlock.lock.coordinator import LockCoordinator

logger = logging.getLogger(__name__)


def elect(own_id: str, candidates: Iterable[str]) -> str:
    """Return the winning id: the greatest of ``own_id`` and ``candidates``."""
    return max({own_id, *candidates})


class TakeoverArbiter:
    """Runs takeover elections for one coordinator."""

    def __init__(self, coordinator: LockCoordinator):
        self.coordinator = coordinator
        self.candidates: set[str] = set()

    def add_candidate(self, peer_id: str) -> None:
        """Record another peer's candidacy for the running election."""
        self.candidates.add(peer_id)

    async def run_election(self) -> str:
        """Announce our candidacy and return the winner of this round."""
        coordinator = self.coordinator

        self.candidates.clear()
        await coordinator.bus.publish(LockMessage.takeover_candidate(coordinator.peer_id))
        await coordinator.sleep_ms(coordinator.settings.election_window_ms)

        winner = elect(coordinator.peer_id, self.candidates)
        logger.debug(f"Election among {len(self.candidates) + 1} candidates won by {winner}")
        return winner

    async def request_takeover(self) -> bool:
        """Acquire the resource even if it may currently be owned.

        Returns:
            True if this peer is owner afterwards. False if another
            challenger won the election or the resource is still live.
        """
        coordinator = self.coordinator
        # An owner succeeds here even if its own committed heartbeat looks stale.
        if coordinator.is_owner:
            return True

        coordinator._state = LockState.ELECTING
        try:
            logger.info(
                f"Peer {coordinator.peer_id} requesting takeover of "
                f"'{coordinator.keys.resource}'"
            )
            await coordinator.bus.publish(LockMessage.request_release(coordinator.peer_id))
            await coordinator.sleep_ms(coordinator.settings.takeover_wait_ms)

            winner = await self.run_election()
            if winner != coordinator.peer_id:
                logger.info(f"Takeover abandoned: peer {winner} won the election")
                return False

            if not await coordinator.is_free():
                logger.info("Takeover abandoned: resource was reclaimed")
                return False

            await coordinator.sleep_jitter()
            if not await coordinator.is_free():
                logger.info("Takeover abandoned: resource was reclaimed after jitter")
                return False

            if await coordinator.write_and_confirm():
                return True
            return coordinator.is_owner
        finally:
            if not coordinator.is_owner:
                coordinator._state = LockState.IDLE
