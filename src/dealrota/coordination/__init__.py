"""Turn-taking coordination for periodic jobs shared by many workers.

Provides:
- ServerRegistry: ordered rotation of worker ids
- TurnCoordinator: mutual exclusion, rotation and crash-timeout recovery
- WorkExecutor: runs the job for one turn and always releases
- Poller: fixed-interval loop driving turn attempts

Example:
    from dealrota.coordination import Poller, ServerRegistry, TurnCoordinator, WorkExecutor

    await ServerRegistry(store, "state").register("server_1")
    coordinator = TurnCoordinator(store, "server_1", "state")
    poller = Poller(coordinator, WorkExecutor(coordinator), job)
    await poller.run()
"""

from dealrota.coordination.executor import Job, RunResult, RunStatus, WorkExecutor
from dealrota.coordination.poller import Poller
from dealrota.coordination.registry import ServerRegistry, add_server
from dealrota.coordination.state import SchedulerState, TurnDecision
from dealrota.coordination.turns import TurnCoordinator, decide_turn

__all__ = [
    "Job",
    "Poller",
    "RunResult",
    "RunStatus",
    "SchedulerState",
    "ServerRegistry",
    "TurnCoordinator",
    "TurnDecision",
    "WorkExecutor",
    "add_server",
    "decide_turn",
]
