"""Registration of workers in the shared rotation."""

from __future__ import annotations

import logging

from dealrota.coordination.state import SchedulerState
from dealrota.errors import RegistrationError, StoreError
from dealrota.store.base import (
    ABORT,
    AtomicDocumentStore,
    Document,
    UpdateFunction,
    UpdateResult,
)

logger = logging.getLogger(__name__)


def add_server(server_id: str) -> UpdateFunction:
    """Build the transition that appends ``server_id`` to the rotation.

    Aborts when the id is already registered so existing entries are never
    rewritten or reordered.
    """

    def update(current: Document | None) -> UpdateResult:
        if current is None:
            return SchedulerState.initial(server_id).to_dict()

        state = SchedulerState.from_dict(current)
        if server_id in state.servers:
            return ABORT

        state.servers.append(server_id)
        merged = dict(current)
        merged["servers"] = state.servers
        return merged

    return update


class ServerRegistry:
    """Ordered, de-duplicated list of participating workers.

    Insertion order is rotation order. The list lives inside the scheduler
    state document so registration and turn taking share one atomic object.
    """

    def __init__(self, store: AtomicDocumentStore, state_key: str) -> None:
        self.store = store
        self.state_key = state_key

    async def register(self, server_id: str) -> bool:
        """Add ``server_id`` to the rotation if it is not already there.

        Returns:
            True if the id was newly added, False if it was already registered

        Raises:
            RegistrationError: If the store could not commit the update
        """
        try:
            result = await self.store.transact(self.state_key, add_server(server_id))
        except StoreError as e:
            logger.error(f"Could not register server {server_id}: {e}")
            raise RegistrationError(server_id, str(e)) from e

        if result.committed:
            position = len(result.value["servers"]) if result.value else 1
            logger.info(f"Server {server_id} registered in the queue at position {position}")
        else:
            logger.info(f"Server {server_id} was already registered")
        return result.committed

    async def list_servers(self) -> list[str]:
        """Registered servers in rotation order."""
        fields = await self.store.get_fields(self.state_key, ["servers"])
        return list(fields.get("servers") or [])
