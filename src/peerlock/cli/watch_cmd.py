"""CLI command for following ownership changes.

Usage:
    peerlock watch --resource printer
    peerlock watch --resource printer --for 60
"""

from __future__ import annotations

import asyncio

import typer

from peerlock.cli.common import (
    BackendOption,
    JsonLogsOption,
    LogLevelOption,
    RedisUrlOption,
    ResourceOption,
    build_settings,
    close_backend,
)
from peerlock.config import Settings
from peerlock.lock.callbacks import LockCallbacks
from peerlock.observability.logging import LogContext, configure_logging
from peerlock.runtime import create_coordinator

app = typer.Typer(help="Print ownership changes as other peers report them")


async def _watch(config: Settings, duration: float) -> None:
    coordinator = create_coordinator(
        config,
        callbacks=LockCallbacks(
            on_owner_changed=lambda owner: typer.echo(f"owner: {owner or '(none)'}"),
        ),
    )

    with LogContext(peer_id=coordinator.peer_id, resource=config.resource):
        await coordinator.start()
        try:
            owner = await coordinator.current_owner()
            typer.echo(f"owner: {owner or '(none)'}")
            if duration > 0:
                await asyncio.sleep(duration)
            else:
                await asyncio.Event().wait()
        finally:
            await coordinator.destroy()
            await close_backend(config)


@app.callback(invoke_without_command=True)
def watch(
    resource: str | None = ResourceOption,
    duration: float = typer.Option(
        0.0,
        "--for",
        help="Seconds to watch (0 = until interrupted)",
    ),
    backend: str | None = BackendOption,
    redis_url: str | None = RedisUrlOption,
    log_level: str = LogLevelOption,
    json_logs: bool = JsonLogsOption,
) -> None:
    """Follow owner changes without ever competing for the resource."""
    config = build_settings(resource, backend, redis_url)
    configure_logging(json_format=json_logs, level=log_level)
    asyncio.run(_watch(config, duration))
