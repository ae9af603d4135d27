"""Observability for dealrota: structured logging and Prometheus metrics."""

from dealrota.observability.logging import (
    ConsoleFormatter,
    JsonFormatter,
    LogContext,
    configure_logging,
)
from dealrota.observability.metrics import MetricsRegistry, get_metrics, start_metrics_server

__all__ = [
    "ConsoleFormatter",
    "JsonFormatter",
    "LogContext",
    "MetricsRegistry",
    "configure_logging",
    "get_metrics",
    "start_metrics_server",
]
