"""CLI commands for peerlock.

Provides command-line interface using Typer:
- peerlock hold: Acquire a resource and hold it
- peerlock status: Show the current owner of a resource
- peerlock watch: Follow ownership changes

Usage:
    peerlock --help
    peerlock hold --resource printer --takeover
    peerlock status --resource printer --format json
    peerlock watch --resource printer
"""

import typer

from peerlock.cli.hold_cmd import app as hold_app
from peerlock.cli.status_cmd import app as status_app
from peerlock.cli.watch_cmd import app as watch_app

# Main CLI application
app = typer.Typer(
    name="peerlock",
    help="peerlock: single-owner lock shared by peers over Redis",
    no_args_is_help=True,
)

# Add subcommands
app.add_typer(hold_app, name="hold")
app.add_typer(status_app, name="status")
app.add_typer(watch_app, name="watch")


@app.callback()
def callback() -> None:
    """peerlock: single-owner lock shared by peers over Redis."""
    pass


def main() -> None:
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
