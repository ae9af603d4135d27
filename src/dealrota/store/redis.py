"""Redis-backed document store.

Each document is a Redis hash whose field values are JSON encoded with
orjson. Transactions use the classic WATCH / MULTI / EXEC pattern: the key is
watched, read, passed through the caller's update function and rewritten
inside MULTI. If another client touches the key in between, EXEC fails with
WatchError and the update function is evaluated again against the fresh value.

Unconditional writes are plain HSET calls. They also bump the watched key, so
a release that lands during another worker's transaction forces that
transaction to re-read.
"""

from __future__ import annotations

import copy
import logging
from collections.abc import Iterable
from typing import TYPE_CHECKING, Any, cast

import orjson
import redis.asyncio as redis
from redis.exceptions import RedisError, WatchError

from dealrota.errors import StoreError, TransactionConflictError
from dealrota.store.base import (
    ABORT,
    DEFAULT_MAX_RETRIES,
    AtomicDocumentStore,
    Document,
    TransactionResult,
    UpdateFunction,
)

if TYPE_CHECKING:
    from redis.asyncio import Redis

logger = logging.getLogger(__name__)

# Module-level client shared by every store in the process
_redis_client: Redis | None = None


async def get_redis(url: str) -> Redis:
    """Get or create the Redis client.

    Uses connection pooling for efficient connection management.
    """
    global _redis_client
    if _redis_client is None:
        _redis_client = redis.from_url(  # type: ignore[no-untyped-call]
            url,
            encoding="utf-8",
            decode_responses=False,
        )
    return _redis_client


async def close_redis() -> None:
    """Close Redis connections."""
    global _redis_client
    if _redis_client is not None:
        await _redis_client.aclose()
        _redis_client = None


def encode_document(document: Document) -> dict[str, bytes]:
    """Encode a document into hash field values."""
    return {name: orjson.dumps(value) for name, value in document.items()}


def decode_document(raw: dict[Any, Any]) -> Document | None:
    """Decode a hash read with HGETALL; an empty hash means no document."""
    if not raw:
        return None
    return {
        (name.decode() if isinstance(name, bytes) else name): orjson.loads(value)
        for name, value in raw.items()
    }


class RedisDocumentStore(AtomicDocumentStore):
    """AtomicDocumentStore on top of redis-py's asyncio client.

    Args:
        url: Redis connection URL
        client: Pre-built client (tests, shared pools); overrides ``url``
        max_retries: WATCH conflicts tolerated before giving up
    """

    def __init__(
        self,
        url: str = "redis://localhost:6379/0",
        client: Redis | None = None,
        max_retries: int = DEFAULT_MAX_RETRIES,
    ) -> None:
        self.url = url
        self.max_retries = max_retries
        self._redis: Redis | None = client

    async def _get_redis(self) -> Redis:
        """Get Redis client."""
        if self._redis is None:
            self._redis = await get_redis(self.url)
        return self._redis

    async def get(self, key: str) -> Document | None:
        client = await self._get_redis()
        try:
            raw = await cast(Any, client.hgetall(key))
        except RedisError as e:
            raise StoreError(f"Failed to read '{key}': {e}", key=key) from e
        return decode_document(raw)

    async def get_fields(self, key: str, fields: Iterable[str]) -> dict[str, Any]:
        names = list(fields)
        if not names:
            return {}
        client = await self._get_redis()
        try:
            values = await cast(Any, client.hmget(key, names))
        except RedisError as e:
            raise StoreError(f"Failed to read fields of '{key}': {e}", key=key) from e
        return {
            name: orjson.loads(value)
            for name, value in zip(names, values)
            if value is not None
        }

    async def transact(self, key: str, update: UpdateFunction) -> TransactionResult:
        client = await self._get_redis()

        for attempt in range(1, self.max_retries + 1):
            try:
                async with client.pipeline(transaction=True) as pipe:
                    await pipe.watch(key)
                    current = decode_document(await cast(Any, pipe.hgetall(key)))

                    new_value = update(copy.deepcopy(current))
                    if new_value is ABORT:
                        return TransactionResult(committed=False, value=current)

                    committed = cast(Document, new_value)
                    pipe.multi()
                    pipe.delete(key)
                    if committed:
                        pipe.hset(key, mapping=encode_document(committed))
                    await pipe.execute()
                    return TransactionResult(committed=True, value=committed)

            except WatchError:
                logger.debug(f"Conflict on '{key}' (attempt {attempt}), retrying")
                continue
            except RedisError as e:
                raise StoreError(f"Transaction on '{key}' failed: {e}", key=key) from e

        raise TransactionConflictError(key, self.max_retries)

    async def set_field(self, key: str, field: str, value: Any) -> None:
        client = await self._get_redis()
        try:
            await cast(Any, client.hset(key, field, orjson.dumps(value)))
        except RedisError as e:
            raise StoreError(f"Failed to write '{key}.{field}': {e}", key=key) from e

    async def update_fields(self, key: str, values: dict[str, Any]) -> None:
        if not values:
            return
        client = await self._get_redis()
        try:
            await cast(Any, client.hset(key, mapping=encode_document(values)))
        except RedisError as e:
            raise StoreError(f"Failed to update '{key}': {e}", key=key) from e

    async def close(self) -> None:
        # Injected clients belong to the caller
        if self._redis is not None and self._redis is _redis_client:
            await close_redis()
        self._redis = None
