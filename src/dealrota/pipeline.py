"""Deal processing job run once per granted turn.

The pipeline wires the seen-set into the scrape/process/persist/notify cycle.
Fetching, per-deal processing, persistence and notification are injected
collaborators; this module only fixes their order:

1. Fetch from every source concurrently. A failing source contributes nothing.
2. Identify deals by ``generate_item_id(title, store)`` and drop duplicates.
3. Keep only ids not yet in the seen set.
4. Process each new deal; ``None`` or an error skips it.
5. Persist the processed deals.
6. Mark them seen. Persist always happens first, so a crash before this step
   only means the deals are processed again next run.
7. Notify.

Example:
    pipeline = DealPipeline(
        sources=[desidime, dealsmagnet],
        processor=processor,
        sink=sink,
        dedup=DedupCache(store, settings.seen_key),
        notifier=notifier,
    )
    report = await pipeline()
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any, Protocol

from dealrota.dedup.cache import DedupCache
from dealrota.dedup.keys import generate_item_id

logger = logging.getLogger(__name__)


@dataclass
class Deal:
    """A discovered deal."""

    title: str
    store: str
    url: str | None = None
    image: str | None = None
    deal_id: str | None = None
    data: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Serialize deal to dictionary."""
        return {
            "deal_id": self.deal_id,
            "title": self.title,
            "store": self.store,
            "url": self.url,
            "image": self.image,
            **self.data,
        }


class DealSource(Protocol):
    name: str

    async def fetch(self) -> list[Deal]: ...


class DealProcessor(Protocol):
    async def process(self, deal: Deal) -> Deal | None: ...


class DealSink(Protocol):
    async def persist(self, deals: Sequence[Deal]) -> None: ...


class DealNotifier(Protocol):
    async def notify(self, deal: Deal) -> None: ...


@dataclass
class PipelineReport:
    """Counts from one pipeline run."""

    scraped: int = 0
    new: int = 0
    stored: int = 0
    notified: int = 0
    seen_marked: bool = False

    @property
    def skipped(self) -> int:
        return self.scraped - self.stored

    def to_dict(self) -> dict[str, Any]:
        return {
            "scraped": self.scraped,
            "new": self.new,
            "stored": self.stored,
            "skipped": self.skipped,
            "notified": self.notified,
            "seen_marked": self.seen_marked,
        }


class DealPipeline:
    """The shared job: scrape, deduplicate, process, persist, notify."""

    def __init__(
        self,
        sources: Sequence[DealSource],
        processor: DealProcessor,
        sink: DealSink,
        dedup: DedupCache,
        notifier: DealNotifier | None = None,
    ) -> None:
        self.sources = list(sources)
        self.processor = processor
        self.sink = sink
        self.dedup = dedup
        self.notifier = notifier

    async def __call__(self) -> PipelineReport:
        return await self.run()

    async def _fetch_all(self) -> list[Deal]:
        results = await asyncio.gather(
            *(source.fetch() for source in self.sources),
            return_exceptions=True,
        )
        deals: list[Deal] = []
        for source, result in zip(self.sources, results):
            if isinstance(result, BaseException):
                logger.error(f"Source {getattr(source, 'name', source)} failed: {result}")
                continue
            deals.extend(result or [])
        return deals

    @staticmethod
    def _index(deals: list[Deal]) -> dict[str, Deal]:
        """Map ids to deals, oldest listing first.

        Later entries in the reversed batch overwrite earlier ones, so the
        copy scraped first wins while the id keeps its first position.
        """
        indexed: dict[str, Deal] = {}
        for deal in reversed(deals):
            deal.deal_id = deal.deal_id or generate_item_id(deal.title, deal.store)
            if deal.deal_id:
                indexed[deal.deal_id] = deal
        return indexed

    async def run(self) -> PipelineReport:
        report = PipelineReport()

        deals = await self._fetch_all()
        report.scraped = len(deals)
        if not deals:
            logger.info("No deals scraped from any source")
            return report

        indexed = self._index(deals)
        new_ids = await self.dedup.filter_unseen(indexed)
        report.new = len(new_ids)
        logger.info(f"{report.new} new deals to resolve and store")
        if not new_ids:
            return report

        processed: list[Deal] = []
        for deal_id in new_ids:
            deal = indexed[deal_id]
            try:
                result = await self.processor.process(deal)
            except Exception as e:
                logger.error(f"Unexpected deal processing error for {deal_id}: {e}")
                continue
            if result is None:
                logger.info(f"Skipping deal {deal_id}")
                continue
            result.deal_id = deal_id
            processed.append(result)

        if not processed:
            logger.info("No new valid deals to save or notify")
            return report

        logger.info(f"Committing {len(processed)} deals to the database and cache")
        await self.sink.persist(processed)
        report.stored = len(processed)

        try:
            await self.dedup.mark_seen(deal.deal_id for deal in processed if deal.deal_id)
            report.seen_marked = True
        except Exception as e:
            # Stored deals may be picked up again next run
            logger.error(f"Failed to mark {len(processed)} deals as seen: {e}")

        if self.notifier is not None:
            for deal in processed:
                try:
                    await self.notifier.notify(deal)
                    report.notified += 1
                except Exception as e:
                    logger.error(f"Notification failed for {deal.deal_id}: {e}")

        return report
