"""Shared document stores for dealrota.

Provides the AtomicDocumentStore contract used by the coordination core and
two implementations:
- RedisDocumentStore for real multi-process deployments
- InMemoryDocumentStore for tests and single-process runs

Example:
    from dealrota.store import create_store

    store = create_store()
    result = await store.transact("key", lambda doc: {**(doc or {}), "n": 1})
"""

from __future__ import annotations

from dealrota.config import Settings, settings
from dealrota.store.base import (
    ABORT,
    Abort,
    AtomicDocumentStore,
    Document,
    TransactionResult,
    UpdateFunction,
)
from dealrota.store.memory import InMemoryDocumentStore
from dealrota.store.redis import RedisDocumentStore


def create_store(config: Settings | None = None) -> AtomicDocumentStore:
    """Build the store selected by ``store_backend``."""
    config = config or settings
    backend = config.store_backend.lower()
    if backend == "redis":
        return RedisDocumentStore(url=config.redis_url, max_retries=config.store_max_retries)
    if backend == "memory":
        return InMemoryDocumentStore(max_retries=config.store_max_retries)
    raise ValueError("Unsupported store_backend. Supported values: redis, memory.")


__all__ = [
    "ABORT",
    "Abort",
    "AtomicDocumentStore",
    "Document",
    "InMemoryDocumentStore",
    "RedisDocumentStore",
    "TransactionResult",
    "UpdateFunction",
    "create_store",
]
