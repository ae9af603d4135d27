"""Runs the shared job for the duration of one turn.

The executor owns the release guarantee: whatever the job does, the running
flag is cleared when it finishes. Job failures never escape; they are
reported as a ``RunResult`` so one bad run cannot stop the polling loop.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from enum import Enum
from typing import Any
from uuid import uuid4

from dealrota.coordination.state import TurnDecision
from dealrota.coordination.turns import TurnCoordinator
from dealrota.observability.logging import LogContext
from dealrota.observability.metrics import get_metrics

logger = logging.getLogger(__name__)

# The shared job: an async callable whose result is opaque to the coordinator
Job = Callable[[], Awaitable[Any]]


class RunStatus(str, Enum):
    """How a poll cycle ended."""

    SUCCESS = "success"
    NOOP = "noop"  # Not this worker's turn
    FAILED = "failed"


@dataclass(frozen=True)
class RunResult:
    """Result of one poll cycle."""

    status: RunStatus
    value: Any = None
    reason: str | None = None
    release_error: str | None = None

    @classmethod
    def success(cls, value: Any = None, release_error: str | None = None) -> RunResult:
        return cls(RunStatus.SUCCESS, value=value, release_error=release_error)

    @classmethod
    def noop(cls) -> RunResult:
        return cls(RunStatus.NOOP)

    @classmethod
    def failed(cls, reason: str, release_error: str | None = None) -> RunResult:
        return cls(RunStatus.FAILED, reason=reason, release_error=release_error)

    @property
    def ran(self) -> bool:
        """Whether the job was invoked in this cycle."""
        return self.status is not RunStatus.NOOP

    @property
    def released(self) -> bool:
        """Whether the lock release (if any) was written."""
        return self.release_error is None


class WorkExecutor:
    """Invoke the job while holding the turn and always release afterwards."""

    def __init__(self, coordinator: TurnCoordinator) -> None:
        self.coordinator = coordinator

    async def run(self, job: Job) -> RunResult:
        """Run ``job`` and release the lock on every exit path.

        Each run gets a short run id stamped on its log records. Does not
        retry the job.
        """
        metrics = get_metrics()
        started = time.perf_counter()
        status = RunStatus.FAILED
        value: Any = None
        reason: str | None = None
        release_error: str | None = None

        with LogContext(run_id=uuid4().hex[:8]):
            try:
                value = await job()
                status = RunStatus.SUCCESS
            except Exception as e:
                reason = f"{type(e).__name__}: {e}"
                logger.error("Critical error during job execution", exc_info=True)
            finally:
                try:
                    await self.coordinator.release()
                except Exception as e:
                    # Lock stays held until the next worker in line times it out
                    release_error = str(e)
                    metrics.record_release_failure()
                    logger.error(
                        f"Failed to release lock for {self.coordinator.server_id}: {e}"
                    )

        metrics.record_job_run(status.value, time.perf_counter() - started)

        if status is RunStatus.SUCCESS:
            return RunResult.success(value, release_error=release_error)
        return RunResult.failed(reason or "unknown error", release_error=release_error)

    async def execute_turn(self, decision: TurnDecision, job: Job) -> RunResult:
        """Run ``job`` only if ``decision`` granted the turn."""
        if decision is not TurnDecision.MY_TURN:
            return RunResult.noop()
        return await self.run(job)
