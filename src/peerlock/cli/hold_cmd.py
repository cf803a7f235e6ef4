"""CLI command for acquiring and holding a resource.

Usage:
    peerlock hold --resource printer
    peerlock hold --resource printer --takeover
    peerlock hold --resource printer --for 30
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
    hold_until,
)
from peerlock.config import Settings
from peerlock.lock.callbacks import LockCallbacks
from peerlock.observability.logging import LogContext, configure_logging
from peerlock.runtime import create_coordinator

app = typer.Typer(help="Acquire a resource and hold it until interrupted")


def _callbacks() -> LockCallbacks:
    return LockCallbacks(
        on_became_owner=lambda: typer.echo("Acquired ownership"),
        on_lost_ownership=lambda: typer.echo("Lost ownership"),
        on_owner_changed=lambda owner: typer.echo(f"Owner is now {owner or '(none)'}"),
        on_takeover_requested=lambda peer: typer.echo(f"Peer {peer} requested a takeover"),
    )


async def _hold(config: Settings, takeover: bool, duration: float) -> bool:
    coordinator = create_coordinator(config, callbacks=_callbacks())
    typer.echo(f"Peer {coordinator.peer_id} on resource '{config.resource}'")

    with LogContext(peer_id=coordinator.peer_id, resource=config.resource):
        await coordinator.start()
        try:
            acquired = await coordinator.claim()
            if not acquired and takeover:
                typer.echo("Resource is held; requesting takeover...")
                acquired = await coordinator.request_takeover()

            if not acquired:
                typer.echo("Resource is held by another peer")
                return False

            await hold_until(coordinator, duration)
            return True
        finally:
            await coordinator.shutdown()
            await close_backend(config)


@app.callback(invoke_without_command=True)
def hold(
    resource: str | None = ResourceOption,
    takeover: bool = typer.Option(
        False,
        "--takeover",
        "-t",
        help="Negotiate a takeover if another peer holds the resource",
    ),
    duration: float = typer.Option(
        0.0,
        "--for",
        help="Seconds to hold the resource (0 = until interrupted)",
    ),
    backend: str | None = BackendOption,
    redis_url: str | None = RedisUrlOption,
    log_level: str = LogLevelOption,
    json_logs: bool = JsonLogsOption,
) -> None:
    """Acquire the resource and hold it.

    Exits with status 1 if the resource could not be acquired. On exit the
    resource is released and the release is announced to other peers.
    """
    config = build_settings(resource, backend, redis_url)
    configure_logging(json_format=json_logs, level=log_level)

    if not asyncio.run(_hold(config, takeover, duration)):
        raise typer.Exit(code=1)
