"""Options and helpers shared by the CLI commands."""

from __future__ import annotations

import asyncio
from typing import Any

import typer

from peerlock.config import Settings, settings
from peerlock.lock.coordinator import LockCoordinator
from peerlock.redis import close_redis

ResourceOption = typer.Option(None, "--resource", "-r", help="Name of the guarded resource")
BackendOption = typer.Option(None, "--backend", "-b", help="Backend: redis, memory")
RedisUrlOption = typer.Option(None, "--redis-url", help="Redis connection URL")
LogLevelOption = typer.Option("warning", "--log-level", "-l", help="Log level")
JsonLogsOption = typer.Option(False, "--json-logs/--console-logs", help="Log format")


def build_settings(
    resource: str | None,
    backend: str | None,
    redis_url: str | None,
) -> Settings:
    """Apply command-line overrides on top of the environment settings."""
    overrides: dict[str, Any] = {
        "resource": resource,
        "backend": backend,
        "redis_url": redis_url,
    }
    return settings.model_copy(update={k: v for k, v in overrides.items() if v is not None})


async def close_backend(config: Settings) -> None:
    """Close shared connections opened for the configured backend."""
    if config.backend.lower() == "redis":
        await close_redis()


async def hold_until(coordinator: LockCoordinator, duration: float) -> None:
    """Sleep while still owner, for ``duration`` seconds (0 = forever)."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + duration if duration > 0 else None
    while coordinator.is_owner:
        if deadline is not None and loop.time() >= deadline:
            return
        await asyncio.sleep(0.1)
