"""Tests for turn acquisition, rotation and crash recovery."""

import asyncio
from unittest.mock import AsyncMock

import pytest
import pytest_asyncio

from dealrota.coordination.registry import ServerRegistry
from dealrota.coordination.state import SchedulerState, TurnDecision
from dealrota.coordination.turns import TurnCoordinator, decide_turn
from dealrota.errors import StoreError
from dealrota.store.base import ABORT
from dealrota.store.memory import InMemoryDocumentStore

STATE_KEY = "test:scheduler_state"
TIMEOUT = 300.0


class TestDecideTurn:
    """Tests for the pure transition function."""

    def test_absent_state_is_initialized(self) -> None:
        """First attempt creates the state with the caller as sole server."""
        result = decide_turn(None, "A", now=10.0, timeout=TIMEOUT)

        assert isinstance(result, SchedulerState)
        assert result.servers == ["A"]
        assert result.is_running is False
        assert result.next_server_index == 0

    def test_grant_advances_pointer(self) -> None:
        """The server at the pointer gets the turn and the pointer moves on."""
        state = SchedulerState(servers=["A", "B", "C"])

        result = decide_turn(state, "A", now=50.0, timeout=TIMEOUT)

        assert isinstance(result, SchedulerState)
        assert result.is_running is True
        assert result.last_run_started_at == 50.0
        assert result.next_server_index == 1

    def test_pointer_wraps(self) -> None:
        """The pointer wraps from the last server to the first."""
        state = SchedulerState(servers=["A", "B", "C"], next_server_index=2)

        result = decide_turn(state, "C", now=50.0, timeout=TIMEOUT)

        assert isinstance(result, SchedulerState)
        assert result.next_server_index == 0

    def test_not_at_pointer_aborts(self) -> None:
        """A server that is not next aborts."""
        state = SchedulerState(servers=["A", "B", "C"])

        assert decide_turn(state, "B", now=50.0, timeout=TIMEOUT) is ABORT

    def test_running_aborts(self) -> None:
        """Nobody gets the turn while it is held."""
        state = SchedulerState(
            servers=["A", "B"],
            is_running=True,
            next_server_index=1,
            last_run_started_at=100.0,
        )

        assert decide_turn(state, "B", now=200.0, timeout=TIMEOUT) is ABORT

    def test_running_at_exact_timeout_aborts(self) -> None:
        """Staleness requires strictly exceeding the timeout."""
        state = SchedulerState(
            servers=["A", "B"],
            is_running=True,
            next_server_index=1,
            last_run_started_at=100.0,
        )

        assert decide_turn(state, "B", now=100.0 + TIMEOUT, timeout=TIMEOUT) is ABORT

    def test_empty_registry_aborts(self) -> None:
        """An existing state with no servers grants nothing."""
        assert decide_turn(SchedulerState(), "A", now=1.0, timeout=TIMEOUT) is ABORT

    def test_stale_turn_recovered_by_next_server(self) -> None:
        """The next server resets a stale turn and takes it in the same step."""
        state = SchedulerState(
            servers=["A", "B", "C"],
            is_running=True,
            next_server_index=1,
            last_run_started_at=100.0,
        )

        result = decide_turn(state, "B", now=100.0 + TIMEOUT + 1, timeout=TIMEOUT)

        assert isinstance(result, SchedulerState)
        assert result.is_running is True
        assert result.last_run_started_at == 100.0 + TIMEOUT + 1
        assert result.next_server_index == 2

    def test_stale_turn_not_recovered_by_other_server(self) -> None:
        """A server not at the pointer aborts, discarding the reset."""
        state = SchedulerState(
            servers=["A", "B", "C"],
            is_running=True,
            next_server_index=1,
            last_run_started_at=100.0,
        )

        assert decide_turn(state, "C", now=100.0 + TIMEOUT + 1, timeout=TIMEOUT) is ABORT

    def test_pointer_repaired_after_shrink(self) -> None:
        """An out-of-range pointer is reset to the head before deciding."""
        state = SchedulerState(servers=["A", "B"], next_server_index=5)

        result = decide_turn(state, "A", now=1.0, timeout=TIMEOUT)

        assert isinstance(result, SchedulerState)
        assert result.is_running is True
        assert result.next_server_index == 1

    def test_input_state_not_mutated(self) -> None:
        """The transition works on a copy."""
        state = SchedulerState(servers=["A", "B"])

        decide_turn(state, "A", now=1.0, timeout=TIMEOUT)

        assert state.is_running is False
        assert state.next_server_index == 0


class TestTurnCoordinator:
    """Tests for TurnCoordinator against the in-memory store."""

    @pytest_asyncio.fixture
    async def registered(self, store: InMemoryDocumentStore) -> InMemoryDocumentStore:
        """Store with A, B, C registered in that order."""
        registry = ServerRegistry(store, STATE_KEY)
        for server_id in ("A", "B", "C"):
            await registry.register(server_id)
        return store

    def _coordinator(self, store, server_id: str, clock) -> TurnCoordinator:
        return TurnCoordinator(store, server_id, STATE_KEY, timeout=TIMEOUT, clock=clock)

    @pytest.mark.asyncio
    async def test_first_in_rotation_gets_turn(self, registered, clock) -> None:
        """A takes the turn; B and C are refused while it runs."""
        a = self._coordinator(registered, "A", clock)
        b = self._coordinator(registered, "B", clock)
        c = self._coordinator(registered, "C", clock)

        assert await a.attempt_turn() == TurnDecision.MY_TURN
        assert await b.attempt_turn() == TurnDecision.NOT_MY_TURN
        assert await c.attempt_turn() == TurnDecision.NOT_MY_TURN

        state = await a.get_state()
        assert state is not None
        assert state.is_running is True
        assert state.next_server_index == 1
        assert state.last_run_started_at == clock.now

    @pytest.mark.asyncio
    async def test_concurrent_attempts_grant_one_turn(self, registered, clock) -> None:
        """Simultaneous attempts are serialized; only the server at the pointer wins."""
        coordinators = [self._coordinator(registered, s, clock) for s in ("C", "B", "A")]

        decisions = await asyncio.gather(*(c.attempt_turn() for c in coordinators))

        assert decisions.count(TurnDecision.MY_TURN) == 1
        assert decisions[2] == TurnDecision.MY_TURN

    @pytest.mark.asyncio
    async def test_rotation_order(self, registered, clock) -> None:
        """Turns go A, B, C, A when each holder releases."""
        coordinators = {s: self._coordinator(registered, s, clock) for s in ("A", "B", "C")}
        order = []

        for _ in range(4):
            for server_id, coordinator in coordinators.items():
                if await coordinator.attempt_turn() == TurnDecision.MY_TURN:
                    order.append(server_id)
                    await coordinator.release()
                    break
            clock.advance(15)

        assert order == ["A", "B", "C", "A"]

    @pytest.mark.asyncio
    async def test_release_keeps_pointer(self, registered, clock) -> None:
        """Release clears the flag without moving the pointer."""
        a = self._coordinator(registered, "A", clock)
        await a.attempt_turn()

        await a.release()

        state = await a.get_state()
        assert state is not None
        assert state.is_running is False
        assert state.next_server_index == 1

    @pytest.mark.asyncio
    async def test_lazy_initialization(self, store, clock) -> None:
        """The first attempt on an empty store creates state but takes no turn."""
        a = self._coordinator(store, "A", clock)

        assert await a.attempt_turn() == TurnDecision.NOT_MY_TURN
        state = await a.get_state()
        assert state == SchedulerState(servers=["A"])

        assert await a.attempt_turn() == TurnDecision.MY_TURN

    @pytest.mark.asyncio
    async def test_crash_recovery_by_next_server(self, registered, clock) -> None:
        """B recovers a turn A never released once the timeout has passed."""
        a = self._coordinator(registered, "A", clock)
        b = self._coordinator(registered, "B", clock)
        assert await a.attempt_turn() == TurnDecision.MY_TURN
        granted_at = clock.now

        clock.advance(TIMEOUT - 1)
        assert await b.attempt_turn() == TurnDecision.NOT_MY_TURN

        clock.advance(2)
        assert await b.attempt_turn() == TurnDecision.MY_TURN

        state = await b.get_state()
        assert state is not None
        assert state.is_running is True
        assert state.next_server_index == 2
        assert state.last_run_started_at == granted_at + TIMEOUT + 1

    @pytest.mark.asyncio
    async def test_crash_recovery_not_committed_by_other_server(
        self, registered, clock
    ) -> None:
        """C sees the stale turn but cannot reset it; the state is untouched."""
        a = self._coordinator(registered, "A", clock)
        c = self._coordinator(registered, "C", clock)
        await a.attempt_turn()
        before = await a.get_state()

        clock.advance(TIMEOUT + 60)
        assert await c.attempt_turn() == TurnDecision.NOT_MY_TURN

        assert await c.get_state() == before

    @pytest.mark.asyncio
    async def test_store_error_reported_as_not_my_turn(self, clock) -> None:
        """An unreachable store means standing by for this cycle."""
        failing = AsyncMock()
        failing.transact = AsyncMock(side_effect=StoreError("connection refused"))
        a = self._coordinator(failing, "A", clock)

        assert await a.attempt_turn() == TurnDecision.NOT_MY_TURN

    @pytest.mark.asyncio
    async def test_explicit_now_overrides_clock(self, registered, clock) -> None:
        """attempt_turn accepts an explicit timestamp."""
        a = self._coordinator(registered, "A", clock)

        await a.attempt_turn(now=42.0)

        state = await a.get_state()
        assert state is not None
        assert state.last_run_started_at == 42.0

    @pytest.mark.asyncio
    async def test_release_error_propagates(self, clock) -> None:
        """Release failures are raised for the executor to handle."""
        failing = AsyncMock()
        failing.set_field = AsyncMock(side_effect=StoreError("timeout"))
        a = self._coordinator(failing, "A", clock)

        with pytest.raises(StoreError):
            await a.release()
