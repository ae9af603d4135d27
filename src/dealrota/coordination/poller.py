"""Fixed-interval polling loop.

Each process runs one Poller. Every ``interval`` seconds it asks the
coordinator for the turn and, when granted, hands the job to the executor.
There is no jitter or backoff: contention is settled by the store's
transactions, not by client-side timing. A poll cycle always completes
before the next one starts, so a process never has two attempts in flight.

Example:
    poller = Poller(coordinator, WorkExecutor(coordinator), job, interval=15)
    await poller.run()  # until poller.stop()
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable

from dealrota.config import DEFAULT_POLL_INTERVAL
from dealrota.coordination.executor import Job, RunResult, WorkExecutor
from dealrota.coordination.turns import TurnCoordinator

logger = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[None]]


class Poller:
    """Drives turn attempts on a timer.

    Args:
        coordinator: Turn coordinator for this worker
        executor: Executor that runs the job when the turn is granted
        job: The shared job
        interval: Seconds between poll cycles
        sleep: Awaitable sleep (injectable for tests)
    """

    def __init__(
        self,
        coordinator: TurnCoordinator,
        executor: WorkExecutor,
        job: Job,
        interval: float = DEFAULT_POLL_INTERVAL,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self.coordinator = coordinator
        self.executor = executor
        self.job = job
        self.interval = interval
        self._sleep = sleep
        self._running = False
        self.ticks = 0

    @property
    def is_running(self) -> bool:
        return self._running

    async def tick(self) -> RunResult:
        """Run exactly one poll cycle."""
        self.ticks += 1
        decision = await self.coordinator.attempt_turn()
        return await self.executor.execute_turn(decision, self.job)

    async def run(self, max_ticks: int | None = None) -> None:
        """Poll until stopped.

        Args:
            max_ticks: Stop after this many cycles (None = forever)
        """
        self._running = True
        logger.info(
            f"Polling for turns as {self.coordinator.server_id} every {self.interval}s"
        )

        try:
            while self._running:
                try:
                    await self.tick()
                except asyncio.CancelledError:
                    raise
                except Exception as e:
                    logger.error(f"Error in worker loop: {e}", exc_info=True)

                if max_ticks is not None and self.ticks >= max_ticks:
                    break
                if not self._running:
                    break

                await self._sleep(self.interval)
        finally:
            self._running = False
            logger.info(f"Poller stopped for {self.coordinator.server_id}")

    def stop(self) -> None:
        """Ask the loop to exit after the current cycle."""
        self._running = False
