"""CLI command for inspecting the shared ownership record.

Usage:
    peerlock status --resource printer
    peerlock status --resource printer --format json
"""

from __future__ import annotations

import asyncio
from typing import Any

import orjson
import typer

from peerlock.cli.common import (
    BackendOption,
    RedisUrlOption,
    ResourceOption,
    build_settings,
    close_backend,
)
from peerlock.config import Settings
from peerlock.runtime import create_coordinator

app = typer.Typer(help="Show the current owner of a resource")


async def _status(config: Settings) -> dict[str, Any]:
    coordinator = create_coordinator(config)
    try:
        record = await coordinator.read_record()
    finally:
        await close_backend(config)

    now = coordinator.now()
    return {
        "resource": config.resource,
        "owner": record.owner,
        "heartbeat_age_ms": record.age_ms(now) if record.heartbeat else None,
        "live": record.is_live(now, config.stale_after_ms),
        "stale_after_ms": config.stale_after_ms,
    }


@app.callback(invoke_without_command=True)
def status(
    resource: str | None = ResourceOption,
    backend: str | None = BackendOption,
    redis_url: str | None = RedisUrlOption,
    output_format: str = typer.Option(
        "text",
        "--format",
        "-f",
        help="Output format: text, json",
    ),
) -> None:
    """Print the recorded owner and whether its heartbeat is still live."""
    config = build_settings(resource, backend, redis_url)
    info = asyncio.run(_status(config))

    if output_format == "json":
        typer.echo(orjson.dumps(info).decode())
        return

    typer.echo(f"Resource: {info['resource']}")
    if info["owner"] is None:
        typer.echo("Owner:    (none)")
        return

    typer.echo(f"Owner:    {info['owner']}")
    age = info["heartbeat_age_ms"]
    typer.echo(f"Heartbeat: {'never committed' if age is None else f'{age} ms ago'}")
    typer.echo(f"State:    {'live' if info['live'] else 'stale'}")
