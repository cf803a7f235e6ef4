"""Shared Redis client for peerlock.

Both the shared store and the broadcast bus talk to the same Redis
deployment, so a single pooled client is kept per process.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import redis.asyncio as redis

from peerlock.config import settings

if TYPE_CHECKING:
    from redis.asyncio import Redis

# Module-level connection pool
_redis_client: Redis | None = None


async def get_redis(url: str | None = None) -> Redis:
    """Get or create the Redis client.

    Uses connection pooling for efficient connection management.
    """
    global _redis_client
    if _redis_client is None:
        _redis_client = redis.from_url(  # type: ignore[no-untyped-call]
            url or settings.redis_url,
            encoding="utf-8",
            decode_responses=False,
        )
    return _redis_client


async def close_redis() -> None:
    """Close Redis connections."""
    global _redis_client
    if _redis_client is not None:
        await _redis_client.close()
        _redis_client = None


def decode(value: bytes | str | None) -> str | None:
    """Normalize a Redis reply to ``str``."""
    if value is None:
        return None
    return value.decode() if isinstance(value, bytes) else value
