"""In-process document store.

Implements the same optimistic transaction contract as the Redis store:
each document carries a version, a transaction reads a snapshot, yields to
the event loop, and only commits if the version is unchanged. Concurrent
coroutines in one event loop therefore really do conflict and retry, which
makes this store suitable for exercising the turn protocol in tests.
"""

from __future__ import annotations

import asyncio
import copy
import logging
from collections.abc import Iterable
from typing import Any, cast

from dealrota.errors import TransactionConflictError
from dealrota.store.base import (
    ABORT,
    DEFAULT_MAX_RETRIES,
    AtomicDocumentStore,
    Document,
    TransactionResult,
    UpdateFunction,
)

logger = logging.getLogger(__name__)


class InMemoryDocumentStore(AtomicDocumentStore):
    """Dictionary-backed AtomicDocumentStore."""

    def __init__(self, max_retries: int = DEFAULT_MAX_RETRIES) -> None:
        self.max_retries = max_retries
        self._documents: dict[str, Document] = {}
        self._versions: dict[str, int] = {}
        self.conflicts = 0

    def _bump(self, key: str) -> None:
        self._versions[key] = self._versions.get(key, 0) + 1

    async def get(self, key: str) -> Document | None:
        document = self._documents.get(key)
        return copy.deepcopy(document) if document is not None else None

    async def get_fields(self, key: str, fields: Iterable[str]) -> dict[str, Any]:
        document = self._documents.get(key, {})
        return {name: copy.deepcopy(document[name]) for name in fields if name in document}

    async def transact(self, key: str, update: UpdateFunction) -> TransactionResult:
        for attempt in range(1, self.max_retries + 1):
            version = self._versions.get(key, 0)
            current = await self.get(key)

            new_value = update(copy.deepcopy(current))
            if new_value is ABORT:
                return TransactionResult(committed=False, value=current)

            # Let concurrent writers interleave between read and commit
            await asyncio.sleep(0)

            if self._versions.get(key, 0) != version:
                self.conflicts += 1
                logger.debug(f"Conflict on '{key}' (attempt {attempt}), retrying")
                continue

            committed = cast(Document, new_value)
            self._documents[key] = copy.deepcopy(committed)
            self._bump(key)
            return TransactionResult(committed=True, value=copy.deepcopy(committed))

        raise TransactionConflictError(key, self.max_retries)

    async def set_field(self, key: str, field: str, value: Any) -> None:
        self._documents.setdefault(key, {})[field] = copy.deepcopy(value)
        self._bump(key)

    async def update_fields(self, key: str, values: dict[str, Any]) -> None:
        if not values:
            return
        document = self._documents.setdefault(key, {})
        for name, value in values.items():
            document[name] = copy.deepcopy(value)
        self._bump(key)

    def clear(self) -> None:
        """Drop every document."""
        self._documents.clear()
        self._versions.clear()
