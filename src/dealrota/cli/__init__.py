"""CLI commands for dealrota.

Provides command-line interface using Typer:
- dealrota run: Join the rotation and run the shared job on each turn
- dealrota register: Register this server id and exit
- dealrota status: Show the shared scheduler state
- dealrota release: Force-clear a stuck running flag
- dealrota item-id: Print the dedup id of a title/source pair

Usage:
    dealrota --help
    SERVER_ID=server_1 dealrota run --job myproject.jobs:build_pipeline
    dealrota status --json
"""

import typer

from dealrota.cli.item_id_cmd import app as item_id_app
from dealrota.cli.register_cmd import app as register_app
from dealrota.cli.release_cmd import app as release_app
from dealrota.cli.run_cmd import app as run_app
from dealrota.cli.status_cmd import app as status_app

# Main CLI application
app = typer.Typer(
    name="dealrota",
    help="dealrota: round-robin turn taking for a shared periodic job",
    no_args_is_help=True,
)

app.add_typer(run_app, name="run")
app.add_typer(register_app, name="register")
app.add_typer(status_app, name="status")
app.add_typer(release_app, name="release")
app.add_typer(item_id_app, name="item-id")


@app.callback()
def callback() -> None:
    """dealrota: round-robin turn taking for a shared periodic job."""
    pass


def main() -> None:
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
