"""Durable set of already processed item ids.

Entries are fields of one document in the shared store, each mapped to
``True``. The set only grows.

Callers must persist an item's processed record before (or together with)
marking it seen. A crash in between then only causes the item to be
processed again on a later run, never to be lost.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable

from dealrota.observability.metrics import get_metrics
from dealrota.store.base import AtomicDocumentStore

logger = logging.getLogger(__name__)


class DedupCache:
    """Seen-set backed by a document in an AtomicDocumentStore."""

    def __init__(self, store: AtomicDocumentStore, key: str) -> None:
        self.store = store
        self.key = key

    async def has_seen(self, item_id: str) -> bool:
        """Check whether ``item_id`` was already marked seen."""
        fields = await self.store.get_fields(self.key, [item_id])
        return bool(fields.get(item_id))

    async def filter_unseen(self, item_ids: Iterable[str]) -> list[str]:
        """Return the ids not yet seen, preserving order, in one read."""
        ids = list(item_ids)
        if not ids:
            return []
        seen = await self.store.get_fields(self.key, ids)
        return [item_id for item_id in ids if not seen.get(item_id)]

    async def mark_seen(self, item_ids: Iterable[str]) -> None:
        """Add a batch of ids to the seen set.

        Raises:
            StoreError: If the write fails
        """
        updates = {item_id: True for item_id in item_ids}
        if not updates:
            return
        await self.store.update_fields(self.key, updates)
        get_metrics().record_items_seen(len(updates))
        logger.debug(f"Marked {len(updates)} item(s) as seen")
