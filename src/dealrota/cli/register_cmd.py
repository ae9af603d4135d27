"""CLI command for registering a worker without running it.

Usage:
    SERVER_ID=server_3 dealrota register
    dealrota register --server-id server_3
"""

from __future__ import annotations

import asyncio

import typer

from dealrota.config import Settings
from dealrota.store import create_store

app = typer.Typer(help="Register this server id in the rotation")


@app.callback(invoke_without_command=True)
def register(
    server_id: str | None = typer.Option(
        None,
        "--server-id",
        "-s",
        help="Worker id (defaults to SERVER_ID)",
    ),
) -> None:
    """Add a server id to the end of the rotation."""
    from rich.console import Console

    from dealrota.config import settings
    from dealrota.errors import ConfigurationError, RegistrationError

    console = Console()
    config = settings.model_copy(update={"server_id": server_id}) if server_id else settings

    try:
        added, servers = asyncio.run(_register(config))
    except (ConfigurationError, RegistrationError) as e:
        console.print(f"[red]✗[/red] {e}")
        raise typer.Exit(code=1) from e

    if added:
        console.print(f"[green]✓[/green] Registered {config.server_id}")
    else:
        console.print(f"[yellow]•[/yellow] {config.server_id} was already registered")
    console.print(f"  Rotation: {' → '.join(servers)}")


async def _register(config: Settings) -> tuple[bool, list[str]]:
    from dealrota.coordination.registry import ServerRegistry

    server_id = config.require_server_id()
    store = create_store(config)
    try:
        registry = ServerRegistry(store, config.state_key)
        added = await registry.register(server_id)
        return added, await registry.list_servers()
    finally:
        await store.close()
