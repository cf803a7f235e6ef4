"""Redis key schema for peerlock.

Key format: {prefix}:{resource}:{variant}

Where:
- prefix: "peerlock" (namespace shared with other Redis users)
- resource: name of the exclusive resource being guarded
- variant: "owner", "heartbeat" (store keys) or "bus", "changes" (channels)
"""

from __future__ import annotations

from dataclasses import dataclass

DEFAULT_PREFIX = "peerlock"


@dataclass(frozen=True, slots=True)
class LockKeys:
    """Key and channel names for one guarded resource."""

    resource: str = "default"
    prefix: str = DEFAULT_PREFIX

    @property
    def owner(self) -> str:
        """Store key holding the current owner's peer id."""
        return f"{self.prefix}:{self.resource}:owner"

    @property
    def heartbeat(self) -> str:
        """Store key holding the owner's last durable heartbeat (epoch ms)."""
        return f"{self.prefix}:{self.resource}:heartbeat"

    @property
    def bus_channel(self) -> str:
        """Pub/Sub channel for protocol broadcasts."""
        return f"{self.prefix}:{self.resource}:bus"

    @property
    def changes_channel(self) -> str:
        """Pub/Sub channel carrying store change notifications."""
        return f"{self.prefix}:{self.resource}:changes"
