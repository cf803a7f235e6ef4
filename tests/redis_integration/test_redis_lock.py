"""Integration tests against a real Redis server.

Set ``PEERLOCK_TEST_REDIS_URL`` to run them, for example:

    docker run --rm -p 6379:6379 redis:7-alpine
    PEERLOCK_TEST_REDIS_URL=redis://localhost:6379/15 pytest tests/redis_integration
"""

from __future__ import annotations

import asyncio
import os
from collections.abc import AsyncIterator
from uuid import uuid4

import pytest
import pytest_asyncio
from redis.asyncio import Redis

from peerlock.bus.redis_bus import RedisBroadcastBus
from peerlock.config import Settings
from peerlock.keys import LockKeys
from peerlock.lock.coordinator import LockCoordinator
from peerlock.store.redis_store import RedisSharedStore
from peers import Recorder, settle

REDIS_URL = os.environ.get("PEERLOCK_TEST_REDIS_URL")

pytestmark = pytest.mark.skipif(REDIS_URL is None, reason="PEERLOCK_TEST_REDIS_URL not set")


@pytest_asyncio.fixture
async def redis_client() -> AsyncIterator[Redis]:
    client = Redis.from_url(REDIS_URL)
    try:
        await client.ping()
    except Exception as exc:
        await client.aclose()
        pytest.skip(f"Redis not available: {exc}")
    yield client
    await client.aclose()


@pytest.fixture
def redis_settings(fast_settings: Settings) -> Settings:
    return fast_settings.model_copy(update={"resource": f"it-{uuid4().hex[:8]}"})


async def _peer(redis: Redis, config: Settings) -> tuple[LockCoordinator, Recorder]:
    keys = LockKeys(config.resource, config.key_prefix)
    recorder = Recorder()
    lock = LockCoordinator(
        RedisSharedStore(keys, redis=redis),
        RedisBroadcastBus(keys, redis=redis),
        config,
        recorder.callbacks(),
    )
    await lock.start()
    return lock, recorder


class TestRedisLock:
    async def test_claim_and_release(self, redis_client: Redis, redis_settings: Settings) -> None:
        a, _ = await _peer(redis_client, redis_settings)
        b, b_events = await _peer(redis_client, redis_settings)
        try:
            assert await a.claim() is True
            await settle(0.2)

            assert await b.claim() is False
            assert b_events.values("owner_changed") == [a.peer_id]

            await a.release(announce=True)
            await settle(0.2)

            assert await redis_client.get(a.keys.owner) is None
            assert b_events.values("owner_changed") == [a.peer_id, None]
        finally:
            await a.destroy()
            await b.destroy()

    async def test_takeover(self, redis_client: Redis, redis_settings: Settings) -> None:
        a, a_events = await _peer(redis_client, redis_settings)
        b, _ = await _peer(redis_client, redis_settings)
        try:
            await a.claim()
            await settle(0.2)

            assert await b.request_takeover() is True
            assert a_events.values("takeover_requested") == [b.peer_id]
            assert not a.is_owner
            assert (await redis_client.get(b.keys.owner)).decode() == b.peer_id
        finally:
            await a.shutdown()
            await b.shutdown()

    async def test_concurrent_claims(self, redis_client: Redis, redis_settings: Settings) -> None:
        peers = [await _peer(redis_client, redis_settings) for _ in range(3)]
        try:
            await asyncio.gather(*(lock.claim() for lock, _ in peers))
            await settle(0.3)

            owners = [lock for lock, _ in peers if lock.is_owner]
            assert len(owners) == 1
        finally:
            for lock, _ in peers:
                await lock.shutdown()
