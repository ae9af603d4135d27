"""CLI command for running a worker.

Usage:
    SERVER_ID=server_1 dealrota run --job myproject.jobs:build_pipeline
    dealrota run --job myproject.jobs:scrape --server-id server_2 --interval 15
    dealrota run --job myproject.jobs:scrape --log-format console --log-level debug
"""

from __future__ import annotations

import asyncio
from typing import Any

import typer

app = typer.Typer(help="Join the rotation and run the shared job on each turn")


@app.callback(invoke_without_command=True)
def run(
    job: str = typer.Option(
        ...,
        "--job",
        "-j",
        help="Job to run as 'module:attribute'",
    ),
    server_id: str | None = typer.Option(
        None,
        "--server-id",
        "-s",
        help="Worker id (defaults to SERVER_ID)",
    ),
    interval: float | None = typer.Option(
        None,
        "--interval",
        "-i",
        help="Seconds between turn checks",
    ),
    timeout: float | None = typer.Option(
        None,
        "--timeout",
        "-t",
        help="Seconds after which a held turn is considered abandoned",
    ),
    log_level: str | None = typer.Option(
        None,
        "--log-level",
        "-l",
        help="Log level: debug, info, warning, error",
    ),
    log_format: str | None = typer.Option(
        None,
        "--log-format",
        "-f",
        help="Log format: json, console",
    ),
    metrics_port: int | None = typer.Option(
        None,
        "--metrics-port",
        help="Serve Prometheus metrics on this port",
    ),
) -> None:
    """Run a dealrota worker.

    Registers the worker, then checks for its turn every interval and runs
    the job whenever the turn is granted.
    """
    from rich.console import Console

    from dealrota.config import settings
    from dealrota.errors import ConfigurationError
    from dealrota.observability.logging import configure_logging
    from dealrota.observability.metrics import start_metrics_server
    from dealrota.runner import load_job, run_worker

    console = Console(stderr=True)

    overrides: dict[str, Any] = {
        "server_id": server_id,
        "poll_interval": interval,
        "job_timeout": timeout,
        "log_level": log_level,
        "log_json": None if log_format is None else log_format.lower() == "json",
        "metrics_port": metrics_port,
    }
    config = settings.model_copy(
        update={name: value for name, value in overrides.items() if value is not None}
    )

    try:
        worker_id = config.require_server_id()
        job_callable = load_job(job)
    except ConfigurationError as e:
        console.print(f"[red]Configuration error:[/red] {e}")
        raise typer.Exit(code=1) from e

    configure_logging(
        json_format=config.log_json,
        level=config.log_level,
        server_id=worker_id,
    )

    if config.metrics_port:
        start_metrics_server(config.metrics_port)

    console.print(f"[blue]Starting worker[/blue] {worker_id}")
    console.print(f"  Interval: {config.poll_interval}s")
    console.print(f"  Timeout: {config.job_timeout}s")

    asyncio.run(run_worker(job_callable, config=config))
