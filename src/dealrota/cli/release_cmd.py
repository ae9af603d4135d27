"""CLI command for clearing a stuck turn.

Usage:
    dealrota release
    dealrota release --yes
"""

from __future__ import annotations

import asyncio

import typer

from dealrota.config import Settings
from dealrota.store import create_store

app = typer.Typer(help="Force-clear the running flag")


@app.callback(invoke_without_command=True)
def release(
    yes: bool = typer.Option(
        False,
        "--yes",
        "-y",
        help="Do not ask for confirmation",
    ),
) -> None:
    """Clear ``is_running`` without moving the rotation pointer.

    Use when the holder is known to be dead and the next worker in line is
    unavailable to recover the turn itself.
    """
    from rich.console import Console

    from dealrota.config import settings
    from dealrota.errors import StoreError

    console = Console()

    if not yes and not typer.confirm("Clear the running flag for all workers?"):
        raise typer.Exit(code=1)

    try:
        asyncio.run(_release(settings))
    except StoreError as e:
        console.print(f"[red]Store error:[/red] {e}")
        raise typer.Exit(code=1) from e

    console.print("[green]✓[/green] Running flag cleared")


async def _release(config: Settings) -> None:
    store = create_store(config)
    try:
        await store.set_field(config.state_key, "is_running", False)
    finally:
        await store.close()
