"""CLI command for inspecting the shared scheduler state.

Usage:
    dealrota status
    dealrota status --json
"""

from __future__ import annotations

import asyncio
import json
import time

import typer

from dealrota.config import Settings
from dealrota.coordination.state import SchedulerState
from dealrota.store import create_store

app = typer.Typer(help="Show the shared scheduler state")


@app.callback(invoke_without_command=True)
def status(
    as_json: bool = typer.Option(
        False,
        "--json",
        help="Print the raw state document as JSON",
    ),
) -> None:
    """Show who is registered, whether a turn is held and who goes next."""
    from rich.console import Console
    from rich.table import Table

    from dealrota.config import settings
    from dealrota.errors import StoreError

    console = Console()

    try:
        state = asyncio.run(_read_state(settings))
    except StoreError as e:
        console.print(f"[red]Store error:[/red] {e}")
        raise typer.Exit(code=1) from e

    if state is None:
        if as_json:
            typer.echo("null")
        else:
            console.print("[yellow]No scheduler state yet[/yellow]")
        return

    if as_json:
        typer.echo(json.dumps(state.to_dict(), indent=2))
        return

    if state.is_running:
        held_for = time.time() - state.last_run_started_at
        stale = " [red](stale)[/red]" if held_for > settings.job_timeout else ""
        console.print(f"[bold]Running:[/bold] yes, for {held_for:.0f}s{stale}")
    else:
        console.print("[bold]Running:[/bold] no")
    console.print(f"[bold]Next:[/bold] {state.next_server or '-'}")

    table = Table(title="Rotation")
    table.add_column("#", justify="right")
    table.add_column("Server")
    table.add_column("")
    for index, server in enumerate(state.servers):
        marker = "← next" if server == state.next_server else ""
        table.add_row(str(index), server, marker)
    console.print(table)


async def _read_state(config: Settings) -> SchedulerState | None:
    store = create_store(config)
    try:
        document = await store.get(config.state_key)
    finally:
        await store.close()
    return SchedulerState.from_dict(document) if document is not None else None
