"""Background tasks for scheduled price tracking."""

import asyncio
import logging
from typing import Optional

from src.db.session import AsyncSessionLocal
from src.db.store import SqlTrackerStore
from src.ingest.fetchers.headless import HeadlessPageFetcher
from src.ingest.link_processor import LinkProcessor
from src.ingest.retailers.strategies import list_vendors
from src.worker.tracker import BatchSummary, PriceTracker

logger = logging.getLogger(__name__)


class TaskRunner:
    """
    Owns the tracker wiring used by the scheduler, the API and scripts.

    Everything is built in ``initialize`` so importing this module never
    touches the database or the browser.
    """

    def __init__(self):
        self.store: Optional[SqlTrackerStore] = None
        self.tracker: Optional[PriceTracker] = None
        self.last_summary: Optional[BatchSummary] = None
        self._batch_lock = asyncio.Lock()

    async def initialize(self):
        """Initialize task runner."""
        self.store = SqlTrackerStore(AsyncSessionLocal)
        processor = LinkProcessor(self.store, HeadlessPageFetcher())
        self.tracker = PriceTracker(self.store, processor)
        logger.info(f"Task runner initialized (vendors: {', '.join(list_vendors())})")

    async def close(self):
        """Wait for in-flight instant runs before shutdown."""
        if self.tracker is not None:
            pending = self.tracker.pending_count
            if pending:
                logger.info(f"Waiting for {pending} instant runs to finish")
            await self.tracker.wait_pending()

    @property
    def is_running(self) -> bool:
        return self._batch_lock.locked()

    async def run_price_tracker(self) -> Optional[BatchSummary]:
        """
        Run one tracker batch.

        Called by APScheduler and by the manual trigger route. A call made
        while another batch is in progress is skipped.
        """
        if self.tracker is None:
            logger.warning("Tracker run requested before initialization, skipping")
            return None
        if self._batch_lock.locked():
            logger.info("Tracker batch already running, skipping")
            return None

        async with self._batch_lock:
            summary = await self.tracker.run_batch()
            self.last_summary = summary
            return summary


# Global task runner instance
task_runner = TaskRunner()
