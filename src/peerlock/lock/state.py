"""Local and shared ownership state."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Final


class LockState(str, Enum):
    """Local protocol state of a coordinator."""

    IDLE = "idle"
    CLAIMING = "claiming"
    ELECTING = "electing"
    OWNER = "owner"


class _NeverNotified:
    """Sentinel type for an owner that has not been reported yet."""

    def __repr__(self) -> str:
        return "NEVER_NOTIFIED"


NEVER_NOTIFIED: Final = _NeverNotified()

NotifiedOwner = str | None | _NeverNotified


@dataclass(frozen=True, slots=True)
class OwnershipRecord:
    """Snapshot of the shared ownership keys.

    ``heartbeat`` is 0 when no heartbeat was ever committed, which makes
    any recorded owner without one stale.
    """

    owner: str | None
    heartbeat: int

    def age_ms(self, now: int) -> int:
        return now - self.heartbeat

    def is_live(self, now: int, stale_after_ms: int) -> bool:
        """True if an owner is recorded and its heartbeat is recent enough."""
        return self.owner is not None and self.age_ms(now) <= stale_after_ms
