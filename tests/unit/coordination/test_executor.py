"""Tests for the work executor."""

import json
import logging
from unittest.mock import AsyncMock, MagicMock

import pytest

from dealrota.coordination.executor import RunResult, RunStatus, WorkExecutor
from dealrota.coordination.registry import ServerRegistry
from dealrota.coordination.state import TurnDecision
from dealrota.coordination.turns import TurnCoordinator
from dealrota.errors import StoreError
from dealrota.observability.logging import JsonFormatter, run_id_var

STATE_KEY = "test:scheduler_state"


class JsonCapture(logging.Handler):
    """Formats records as they are emitted, while context vars are still set."""

    def __init__(self) -> None:
        super().__init__()
        self.setFormatter(JsonFormatter())
        self.lines: list[dict] = []

    def emit(self, record: logging.LogRecord) -> None:
        self.lines.append(json.loads(self.format(record)))


class TestRunResult:
    """Tests for RunResult."""

    def test_success(self) -> None:
        result = RunResult.success({"stored": 3})

        assert result.status == RunStatus.SUCCESS
        assert result.value == {"stored": 3}
        assert result.ran is True
        assert result.released is True

    def test_noop(self) -> None:
        result = RunResult.noop()

        assert result.status == RunStatus.NOOP
        assert result.ran is False

    def test_failed(self) -> None:
        result = RunResult.failed("boom", release_error="store down")

        assert result.status == RunStatus.FAILED
        assert result.reason == "boom"
        assert result.released is False


class TestWorkExecutor:
    """Tests for WorkExecutor with a mocked coordinator."""

    @pytest.fixture
    def coordinator(self) -> MagicMock:
        coordinator = MagicMock()
        coordinator.server_id = "A"
        coordinator.release = AsyncMock()
        return coordinator

    @pytest.fixture
    def executor(self, coordinator: MagicMock) -> WorkExecutor:
        return WorkExecutor(coordinator)

    @pytest.mark.asyncio
    async def test_run_success_releases(
        self, executor: WorkExecutor, coordinator: MagicMock
    ) -> None:
        """A successful job returns its value and releases the lock."""
        job = AsyncMock(return_value={"stored": 2})

        result = await executor.run(job)

        assert result.status == RunStatus.SUCCESS
        assert result.value == {"stored": 2}
        job.assert_awaited_once()
        coordinator.release.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_run_failure_is_swallowed(
        self, executor: WorkExecutor, coordinator: MagicMock
    ) -> None:
        """A failing job is reported, not raised, and the lock is released."""
        job = AsyncMock(side_effect=ValueError("scrape failed"))

        result = await executor.run(job)

        assert result.status == RunStatus.FAILED
        assert result.reason is not None
        assert "scrape failed" in result.reason
        assert "ValueError" in result.reason
        coordinator.release.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_release_failure_is_recorded(
        self, executor: WorkExecutor, coordinator: MagicMock
    ) -> None:
        """A failed release write is logged and surfaced on the result."""
        coordinator.release.side_effect = StoreError("write timed out")

        result = await executor.run(AsyncMock(return_value=None))

        assert result.status == RunStatus.SUCCESS
        assert result.release_error == "write timed out"
        assert result.released is False

    @pytest.mark.asyncio
    async def test_run_logs_carry_run_id(self, executor: WorkExecutor) -> None:
        """Records logged during a run share one run id, cleared afterwards."""
        handler = JsonCapture()
        job_logger = logging.getLogger("tests.scrape_job")
        job_logger.addHandler(handler)
        job_logger.setLevel(logging.INFO)

        async def job() -> None:
            job_logger.info("Scraping deals")
            job_logger.info("Done")

        try:
            await executor.run(job)
        finally:
            job_logger.removeHandler(handler)

        run_ids = {line.get("run_id") for line in handler.lines}
        assert len(handler.lines) == 2
        assert len(run_ids) == 1
        run_id = run_ids.pop()
        assert run_id is not None and len(run_id) == 8
        assert run_id_var.get() == ""

    @pytest.mark.asyncio
    async def test_each_run_gets_new_run_id(self, executor: WorkExecutor) -> None:
        seen: list[str] = []

        async def job() -> None:
            seen.append(run_id_var.get())

        await executor.run(job)
        await executor.run(job)

        assert len(set(seen)) == 2
        assert all(seen)

    @pytest.mark.asyncio
    async def test_no_retry(self, executor: WorkExecutor) -> None:
        """A failed job is invoked exactly once."""
        job = AsyncMock(side_effect=RuntimeError("nope"))

        await executor.run(job)

        assert job.await_count == 1

    @pytest.mark.asyncio
    async def test_execute_turn_not_my_turn(
        self, executor: WorkExecutor, coordinator: MagicMock
    ) -> None:
        """Without the turn the job is not run and nothing is released."""
        job = AsyncMock()

        result = await executor.execute_turn(TurnDecision.NOT_MY_TURN, job)

        assert result.status == RunStatus.NOOP
        job.assert_not_awaited()
        coordinator.release.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_execute_turn_my_turn(self, executor: WorkExecutor) -> None:
        """With the turn the job runs."""
        job = AsyncMock(return_value="done")

        result = await executor.execute_turn(TurnDecision.MY_TURN, job)

        assert result.status == RunStatus.SUCCESS
        assert result.value == "done"


class TestWorkExecutorWithStore:
    """Executor against a real coordinator and in-memory store."""

    @pytest.mark.asyncio
    async def test_failed_job_frees_turn_for_next_server(self, store, clock) -> None:
        """After a failed run the next server can take its turn immediately."""
        registry = ServerRegistry(store, STATE_KEY)
        await registry.register("A")
        await registry.register("B")
        a = TurnCoordinator(store, "A", STATE_KEY, clock=clock)
        b = TurnCoordinator(store, "B", STATE_KEY, clock=clock)

        decision = await a.attempt_turn()
        result = await WorkExecutor(a).execute_turn(
            decision, AsyncMock(side_effect=RuntimeError("crash"))
        )

        assert result.status == RunStatus.FAILED
        assert await b.attempt_turn() == TurnDecision.MY_TURN
