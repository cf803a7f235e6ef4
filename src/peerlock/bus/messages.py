"""Broadcast message schema for the lock protocol.

Wire format is a flat JSON object:

    {"type": "owner-changed", "from": "<peer>", "owner": "<peer>", "at": 1700000000000}

``from`` names the sender, ``id`` the announced candidate of a
``takeover-candidate`` message and ``owner`` the new owner of an
``owner-changed`` message. ``at`` is the sender's clock in epoch ms.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

import orjson


def now_ms() -> int:
    """Current wall clock time in epoch milliseconds."""
    return int(time.time() * 1000)


class MessageType(str, Enum):
    """Protocol message tags."""

    HEARTBEAT = "hb"
    OWNER_CHANGED = "owner-changed"
    REQUEST_RELEASE = "request-release"
    RELEASED = "released"
    TAKEOVER_CANDIDATE = "takeover-candidate"


@dataclass(frozen=True, slots=True)
class LockMessage:
    """A single protocol broadcast."""

    type: MessageType
    sender: str | None = None
    candidate_id: str | None = None
    owner: str | None = None
    at: int = field(default_factory=now_ms)

    @classmethod
    def heartbeat(cls, sender: str) -> "LockMessage":
        return cls(type=MessageType.HEARTBEAT, sender=sender)

    @classmethod
    def owner_changed(cls, sender: str, owner: str | None) -> "LockMessage":
        return cls(type=MessageType.OWNER_CHANGED, sender=sender, owner=owner)

    @classmethod
    def request_release(cls, sender: str) -> "LockMessage":
        return cls(type=MessageType.REQUEST_RELEASE, sender=sender)

    @classmethod
    def released(cls, sender: str) -> "LockMessage":
        return cls(type=MessageType.RELEASED, sender=sender)

    @classmethod
    def takeover_candidate(cls, candidate_id: str) -> "LockMessage":
        return cls(
            type=MessageType.TAKEOVER_CANDIDATE,
            sender=candidate_id,
            candidate_id=candidate_id,
        )

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"type": self.type.value, "at": self.at}
        if self.sender is not None:
            data["from"] = self.sender
        if self.candidate_id is not None:
            data["id"] = self.candidate_id
        if self.type == MessageType.OWNER_CHANGED:
            data["owner"] = self.owner
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "LockMessage":
        """Build a message from its wire dict.

        Raises:
            ValueError: if ``type`` is missing or unknown.
        """
        return cls(
            type=MessageType(data.get("type")),
            sender=data.get("from"),
            candidate_id=data.get("id"),
            owner=data.get("owner"),
            at=int(data.get("at") or 0),
        )

    def to_bytes(self) -> bytes:
        """Serialize to JSON bytes."""
        return orjson.dumps(self.to_dict())

    @classmethod
    def from_bytes(cls, data: bytes | str) -> "LockMessage":
        """Deserialize from JSON bytes."""
        parsed = orjson.loads(data)
        if not isinstance(parsed, dict):
            raise ValueError("Lock message must be a JSON object")
        return cls.from_dict(parsed)
