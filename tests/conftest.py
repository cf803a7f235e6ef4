"""Global pytest configuration and fixtures."""

from __future__ import annotations

from collections.abc import AsyncIterator

import pytest
import pytest_asyncio

from peerlock.config import Settings
from peers import Cluster


@pytest.fixture
def fast_settings() -> Settings:
    """Millisecond-scale timings that keep the protocol's invariants."""
    return Settings(
        resource="test-resource",
        backend="memory",
        heartbeat_period_ms=20,
        commit_every=3,
        stale_after_ms=300,
        takeover_wait_ms=80,
        election_window_ms=40,
        jitter_min_ms=1,
        jitter_max_ms=5,
    )


@pytest_asyncio.fixture
async def cluster(fast_settings: Settings) -> AsyncIterator[Cluster]:
    """Empty cluster; peers are added by the test."""
    group = Cluster(fast_settings)
    yield group
    await group.close()
