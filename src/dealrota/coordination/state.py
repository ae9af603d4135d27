"""Shared scheduler state document."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class TurnDecision(str, Enum):
    """Outcome of a turn attempt."""

    MY_TURN = "my_turn"
    NOT_MY_TURN = "not_my_turn"


@dataclass
class SchedulerState:
    """The single document every worker coordinates through.

    ``next_server_index`` points at the server whose turn comes next, so while
    a run is in progress the holder is the server just before it.
    """

    servers: list[str] = field(default_factory=list)
    is_running: bool = False
    next_server_index: int = 0
    last_run_started_at: float = 0.0

    @classmethod
    def initial(cls, server_id: str) -> SchedulerState:
        """State created lazily by the first worker to touch the document."""
        return cls(servers=[server_id])

    @property
    def next_server(self) -> str | None:
        """Server entitled to the next turn, if any are registered."""
        if not self.servers:
            return None
        index = self.next_server_index
        if not 0 <= index < len(self.servers):
            index = 0
        return self.servers[index]

    def repair_pointer(self) -> None:
        """Bring the rotation pointer back into range after the list shrank."""
        if self.servers and not 0 <= self.next_server_index < len(self.servers):
            self.next_server_index = 0

    def is_stale(self, now: float, timeout: float) -> bool:
        """A held turn older than ``timeout`` seconds is treated as abandoned."""
        return self.is_running and (now - self.last_run_started_at) > timeout

    def to_dict(self) -> dict[str, Any]:
        """Serialize state to dictionary."""
        return {
            "servers": list(self.servers),
            "is_running": self.is_running,
            "next_server_index": self.next_server_index,
            "last_run_started_at": self.last_run_started_at,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SchedulerState:
        """Deserialize state; missing fields take their idle defaults."""
        return cls(
            servers=list(data.get("servers") or []),
            is_running=bool(data.get("is_running", False)),
            next_server_index=int(data.get("next_server_index") or 0),
            last_run_started_at=float(data.get("last_run_started_at") or 0.0),
        )
