"""CLI command for computing deduplication ids.

Usage:
    dealrota item-id "New Deal!!" "Amazon"
"""

from __future__ import annotations

import typer

from dealrota.dedup.keys import generate_item_id

app = typer.Typer(help="Print the dedup id of a title and source")


@app.callback(invoke_without_command=True)
def item_id(
    title: str = typer.Argument(..., help="Item title"),
    source: str = typer.Argument(..., help="Source or store name"),
) -> None:
    """Print the id used to recognise an item across scrapes."""
    result = generate_item_id(title, source)
    if result is None:
        typer.echo("Title and source must both contain letters or digits", err=True)
        raise typer.Exit(code=1)
    typer.echo(result)
