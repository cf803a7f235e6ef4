"""Broadcast bus for lock protocol messages."""

from peerlock.bus.base import BroadcastBus, InMemoryBroadcastBus, InMemoryBusHub, MessageHandler
from peerlock.bus.messages import LockMessage, MessageType
from peerlock.bus.redis_bus import RedisBroadcastBus

__all__ = [
    # Messages
    "LockMessage",
    "MessageType",
    # Bus
    "BroadcastBus",
    "MessageHandler",
    "InMemoryBusHub",
    "InMemoryBroadcastBus",
    "RedisBroadcastBus",
]
