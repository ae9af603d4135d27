"""Worker process entry point.

Registers this server in the rotation, then polls for turns until a
shutdown signal arrives. A worker that cannot register never gets a turn,
so registration failure ends the process.

Example:
    await run_worker(my_job)
"""

from __future__ import annotations

import asyncio
import importlib
import logging
import signal
from collections.abc import Callable

from dealrota.config import Settings, settings
from dealrota.coordination.executor import Job, WorkExecutor
from dealrota.coordination.poller import Poller
from dealrota.coordination.registry import ServerRegistry
from dealrota.coordination.turns import TurnCoordinator
from dealrota.errors import ConfigurationError, RegistrationError
from dealrota.observability.logging import LogContext
from dealrota.store import AtomicDocumentStore, create_store

logger = logging.getLogger(__name__)


def load_job(path: str) -> Job:
    """Import a job from ``"package.module:attribute"``.

    The attribute may be the async callable itself or a zero-argument factory
    returning one (for jobs that need collaborators wired up first).
    """
    module_name, _, attribute = path.partition(":")
    if not module_name or not attribute:
        raise ConfigurationError(f"Job must be given as 'module:attribute', got '{path}'")

    try:
        module = importlib.import_module(module_name)
        target = getattr(module, attribute)
    except (ImportError, AttributeError) as e:
        raise ConfigurationError(f"Cannot load job '{path}': {e}") from e

    if getattr(target, "__job_factory__", False):
        target = target()
    if not callable(target):
        raise ConfigurationError(f"Job '{path}' is not callable")
    return target  # type: ignore[no-any-return]


def job_factory(func: Callable[[], Job]) -> Callable[[], Job]:
    """Mark a function as building the job rather than being it.

    Example:
        @job_factory
        def build_pipeline() -> DealPipeline:
            return DealPipeline(...)
    """
    func.__job_factory__ = True  # type: ignore[attr-defined]
    return func


class Worker:
    """One participant in the rotation."""

    def __init__(
        self,
        job: Job,
        config: Settings | None = None,
        store: AtomicDocumentStore | None = None,
    ) -> None:
        self.config = config or settings
        self.server_id = self.config.require_server_id()
        self.store = store or create_store(self.config)
        self.registry = ServerRegistry(self.store, self.config.state_key)
        self.coordinator = TurnCoordinator(
            self.store,
            self.server_id,
            self.config.state_key,
            timeout=self.config.job_timeout,
        )
        self.executor = WorkExecutor(self.coordinator)
        self.poller = Poller(
            self.coordinator,
            self.executor,
            job,
            interval=self.config.poll_interval,
        )

    def _signal_handler(self) -> None:
        """Handle shutdown signals."""
        logger.info("Received shutdown signal")
        self.poller.stop()

    async def start(self) -> None:
        """Register this server; exit the process if that fails."""
        try:
            await self.registry.register(self.server_id)
        except RegistrationError as e:
            logger.critical(f"{e}. Cannot run without being registered")
            raise SystemExit(1) from e

    async def run(self, max_ticks: int | None = None) -> None:
        """Register, then poll until stopped."""
        with LogContext(server_id=self.server_id):
            try:
                await self.start()

                loop = asyncio.get_running_loop()
                for sig in (signal.SIGTERM, signal.SIGINT):
                    try:
                        loop.add_signal_handler(sig, self._signal_handler)
                    except (NotImplementedError, RuntimeError):
                        # Not supported on this platform or outside the main thread
                        pass

                await self.poller.run(max_ticks=max_ticks)
            finally:
                await self.store.close()


async def run_worker(
    job: Job,
    config: Settings | None = None,
    store: AtomicDocumentStore | None = None,
) -> None:
    """Run a worker until a shutdown signal arrives."""
    await Worker(job, config=config, store=store).run()
