"""Tests for the seen-set."""

from unittest.mock import AsyncMock

import pytest

from dealrota.dedup.cache import DedupCache
from dealrota.errors import StoreError

SEEN_KEY = "test:seen"


class TestDedupCache:
    """Tests for DedupCache over the in-memory store."""

    @pytest.fixture
    def cache(self, store) -> DedupCache:
        return DedupCache(store, SEEN_KEY)

    @pytest.mark.asyncio
    async def test_unseen_before_mark(self, cache: DedupCache) -> None:
        """Nothing is seen before it is marked."""
        assert await cache.has_seen("x") is False

    @pytest.mark.asyncio
    async def test_seen_after_mark(self, cache: DedupCache) -> None:
        """Marked ids stay seen on every later check."""
        await cache.mark_seen(["x", "y"])

        for _ in range(3):
            assert await cache.has_seen("x") is True
            assert await cache.has_seen("y") is True
        assert await cache.has_seen("z") is False

    @pytest.mark.asyncio
    async def test_marks_accumulate(self, cache: DedupCache) -> None:
        """Later batches never evict earlier ones."""
        await cache.mark_seen(["a"])
        await cache.mark_seen(["b"])

        assert await cache.has_seen("a") is True
        assert await cache.has_seen("b") is True

    @pytest.mark.asyncio
    async def test_filter_unseen_preserves_order(self, cache: DedupCache) -> None:
        """filter_unseen drops seen ids and keeps the input order."""
        await cache.mark_seen(["b", "d"])

        assert await cache.filter_unseen(["a", "b", "c", "d", "e"]) == ["a", "c", "e"]

    @pytest.mark.asyncio
    async def test_filter_unseen_empty(self, cache: DedupCache) -> None:
        assert await cache.filter_unseen([]) == []

    @pytest.mark.asyncio
    async def test_mark_empty_batch_is_noop(self, store, cache: DedupCache) -> None:
        """An empty batch writes nothing."""
        await cache.mark_seen([])

        assert await store.get(SEEN_KEY) is None

    @pytest.mark.asyncio
    async def test_mark_seen_failure_propagates(self) -> None:
        """Write failures reach the caller, which decides how to log them."""
        failing = AsyncMock()
        failing.update_fields = AsyncMock(side_effect=StoreError("down"))
        cache = DedupCache(failing, SEEN_KEY)

        with pytest.raises(StoreError):
            await cache.mark_seen(["x"])
