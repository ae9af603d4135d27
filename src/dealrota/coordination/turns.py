"""Round-robin turn taking over a shared state document.

Every worker polls ``TurnCoordinator.attempt_turn``. The attempt is a single
optimistic transaction whose transition is the pure function ``decide_turn``:

1. No state yet: create it with this worker as the only registrant.
2. A turn held longer than the timeout is tentatively cleared.
3. Still running, or nobody registered: abort.
4. Repair the rotation pointer if the server list shrank.
5. Pointer names another worker: abort.
6. Pointer names this worker: take the turn and advance the pointer.

Aborting discards every tentative change, including the stale-turn reset in
step 2. A crashed holder is therefore only recovered by the worker that is
next in rotation; any other worker that notices the stale turn leaves the
document untouched.

``release`` is a plain field write of ``is_running = False``. The pointer was
already advanced when the turn was granted, so a holder that dies before
releasing does not get the next turn again after recovery.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable

from dealrota.config import DEFAULT_JOB_TIMEOUT
from dealrota.coordination.state import SchedulerState, TurnDecision
from dealrota.errors import StoreError
from dealrota.observability.metrics import get_metrics
from dealrota.store.base import ABORT, Abort, AtomicDocumentStore, Document, UpdateResult

logger = logging.getLogger(__name__)

Clock = Callable[[], float]


def decide_turn(
    current: SchedulerState | None,
    server_id: str,
    now: float,
    timeout: float = DEFAULT_JOB_TIMEOUT,
) -> SchedulerState | Abort:
    """Compute the next scheduler state for a turn attempt.

    Args:
        current: State as read from the store, or None if absent
        server_id: Worker attempting the turn
        now: Current time in epoch seconds
        timeout: Seconds after which a held turn counts as abandoned

    Returns:
        The state to commit, or ABORT to leave the document unchanged
    """
    if current is None:
        return SchedulerState.initial(server_id)

    state = SchedulerState.from_dict(current.to_dict())

    if state.is_stale(now, timeout):
        state.is_running = False

    if state.is_running or not state.servers:
        return ABORT

    state.repair_pointer()

    if state.servers[state.next_server_index] != server_id:
        return ABORT

    state.is_running = True
    state.last_run_started_at = now
    state.next_server_index = (state.next_server_index + 1) % len(state.servers)
    return state


class TurnCoordinator:
    """Mutual exclusion and fair rotation for one worker.

    Args:
        store: Shared document store
        server_id: This worker's identity
        state_key: Key of the scheduler state document
        timeout: Seconds after which a held turn counts as abandoned
        clock: Source of epoch seconds (injectable for tests)
    """

    def __init__(
        self,
        store: AtomicDocumentStore,
        server_id: str,
        state_key: str,
        timeout: float = DEFAULT_JOB_TIMEOUT,
        clock: Clock = time.time,
    ) -> None:
        self.store = store
        self.server_id = server_id
        self.state_key = state_key
        self.timeout = timeout
        self.clock = clock

    def _transition(
        self, now: float, observed: list[SchedulerState | None]
    ) -> Callable[[Document | None], UpdateResult]:
        def update(current: Document | None) -> UpdateResult:
            state = SchedulerState.from_dict(current) if current is not None else None
            # Keep only the state seen by the final evaluation
            observed[:] = [state]
            decided = decide_turn(state, self.server_id, now, self.timeout)
            if decided is ABORT:
                return ABORT
            assert isinstance(decided, SchedulerState)
            return decided.to_dict()

        return update

    async def attempt_turn(self, now: float | None = None) -> TurnDecision:
        """Try to take the turn.

        Store failures are logged and reported as NOT_MY_TURN; the next poll
        simply tries again.
        """
        now = self.clock() if now is None else now
        metrics = get_metrics()
        observed: list[SchedulerState | None] = []

        try:
            result = await self.store.transact(self.state_key, self._transition(now, observed))
        except StoreError as e:
            logger.error(f"Error in turn transaction for {self.server_id}: {e}")
            metrics.record_turn_attempt("error")
            return TurnDecision.NOT_MY_TURN

        before = observed[0] if observed else None
        stale = before is not None and before.is_stale(now, self.timeout)

        if result.committed and before is not None:
            if stale:
                logger.warning(
                    f"Job timed out. Server {self.server_id} reset the lock held since "
                    f"{before.last_run_started_at}"
                )
            logger.info(f"Server {self.server_id} is taking its turn to scrape")
            metrics.record_turn_attempt(TurnDecision.MY_TURN.value)
            return TurnDecision.MY_TURN

        if result.committed:
            logger.info(f"Server {self.server_id} initialized the scheduler state")
        elif stale and before is not None:
            logger.warning(
                f"Turn held since {before.last_run_started_at} looks abandoned; "
                f"waiting for {before.next_server} to recover it"
            )
        else:
            logger.info(f"Server {self.server_id} is standing by")

        metrics.record_turn_attempt(TurnDecision.NOT_MY_TURN.value)
        return TurnDecision.NOT_MY_TURN

    async def release(self) -> None:
        """Clear the running flag.

        Raises:
            StoreError: If the write fails
        """
        await self.store.set_field(self.state_key, "is_running", False)
        logger.info(f"Server {self.server_id} has finished its task and released the lock")

    async def get_state(self) -> SchedulerState | None:
        """Read the current scheduler state."""
        document = await self.store.get(self.state_key)
        return SchedulerState.from_dict(document) if document is not None else None
