"""Prometheus metrics for dealrota workers.

Provides counters for the turn protocol and the job it guards:
- Turn attempts by outcome (my_turn, not_my_turn, error)
- Job runs by status and their duration
- Release write failures
- Items marked as seen

Usage:
    from dealrota.observability.metrics import get_metrics

    metrics = get_metrics()
    metrics.record_turn_attempt("my_turn")
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from dealrota.config import settings

logger = logging.getLogger(__name__)


@dataclass
class MetricsRegistry:
    """Registry for Prometheus metrics."""

    turn_attempts_total: Any = None
    job_runs_total: Any = None
    job_duration_seconds: Any = None
    release_failures_total: Any = None
    items_marked_seen_total: Any = None

    enabled: bool = True

    # Internal state
    _initialized: bool = field(default=False, repr=False)
    _registry: Any = field(default=None, repr=False)

    def initialize(self, registry: Any = None) -> None:
        """Initialize Prometheus metrics.

        Args:
            registry: CollectorRegistry to register into (default: global REGISTRY)
        """
        if self._initialized:
            return

        if not self.enabled:
            logger.info("Metrics are disabled")
            self._initialized = True
            return

        from prometheus_client import REGISTRY, Counter, Histogram

        self._registry = registry or REGISTRY

        self.turn_attempts_total = Counter(
            "dealrota_turn_attempts_total",
            "Turn attempts by outcome",
            ["outcome"],
            registry=self._registry,
        )
        self.job_runs_total = Counter(
            "dealrota_job_runs_total",
            "Job executions by status",
            ["status"],
            registry=self._registry,
        )
        self.job_duration_seconds = Histogram(
            "dealrota_job_duration_seconds",
            "Job duration in seconds",
            buckets=(1, 5, 15, 30, 60, 120, 300, 600),
            registry=self._registry,
        )
        self.release_failures_total = Counter(
            "dealrota_release_failures_total",
            "Lock release writes that failed",
            registry=self._registry,
        )
        self.items_marked_seen_total = Counter(
            "dealrota_items_marked_seen_total",
            "Item ids added to the seen set",
            registry=self._registry,
        )

        self._initialized = True
        logger.debug("Prometheus metrics initialized")

    def record_turn_attempt(self, outcome: str) -> None:
        if self.turn_attempts_total is not None:
            self.turn_attempts_total.labels(outcome=outcome).inc()

    def record_job_run(self, status: str, duration: float) -> None:
        if self.job_runs_total is not None:
            self.job_runs_total.labels(status=status).inc()
            self.job_duration_seconds.observe(duration)

    def record_release_failure(self) -> None:
        if self.release_failures_total is not None:
            self.release_failures_total.inc()

    def record_items_seen(self, count: int) -> None:
        if self.items_marked_seen_total is not None and count > 0:
            self.items_marked_seen_total.inc(count)


_metrics: MetricsRegistry | None = None


def get_metrics() -> MetricsRegistry:
    """Return the process-wide metrics registry, initializing it on first use."""
    global _metrics
    if _metrics is None:
        _metrics = MetricsRegistry(enabled=settings.enable_metrics)
        _metrics.initialize()
    return _metrics


def start_metrics_server(port: int) -> None:
    """Expose /metrics over HTTP on the given port."""
    from prometheus_client import start_http_server

    get_metrics()
    start_http_server(port)
    logger.info(f"Metrics server listening on :{port}")
