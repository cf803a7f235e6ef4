"""Lock protocol: claim, heartbeat, release and negotiated takeover."""

from peerlock.lock.arbiter import TakeoverArbiter, elect
from peerlock.lock.callbacks import LockCallbacks
from peerlock.lock.coordinator import LockCoordinator, generate_peer_id
from peerlock.lock.dispatcher import MessageDispatcher
from peerlock.lock.state import NEVER_NOTIFIED, LockState, OwnershipRecord

__all__ = [
    "LockCoordinator",
    "LockCallbacks",
    "LockState",
    "OwnershipRecord",
    "NEVER_NOTIFIED",
    "TakeoverArbiter",
    "MessageDispatcher",
    "elect",
    "generate_peer_id",
]
