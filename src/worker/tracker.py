"""Tracker scheduler: batch runs over every active link plus instant single-link runs."""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from src import metrics
from src.config import settings
from src.db.models import TrackedLink
from src.db.store import StoreError, StoreUnavailableError, TrackerStore
from src.ingest.base import RawExtraction
from src.ingest.link_processor import LinkOutcome, LinkProcessor, LinkResult

logger = logging.getLogger(__name__)


class BatchLoadError(Exception):
    """The list of active links could not be loaded."""

    pass


@dataclass
class BatchSummary:
    """Counters for one batch run."""

    started_at: datetime = field(default_factory=datetime.utcnow)
    finished_at: Optional[datetime] = None
    processed: int = 0
    succeeded: int = 0
    failed: int = 0
    skipped: int = 0
    error: Optional[str] = None

    def record(self, result: LinkResult) -> None:
        self.processed += 1
        if result.outcome is LinkOutcome.SUCCEEDED:
            self.succeeded += 1
        elif result.outcome is LinkOutcome.SKIPPED_UNSUPPORTED:
            self.skipped += 1
        else:
            self.failed += 1

    @property
    def duration_seconds(self) -> float:
        if self.finished_at is None:
            return 0.0
        return (self.finished_at - self.started_at).total_seconds()


class PriceTracker:
    """
    Drives the link processor.

    A batch walks active links one at a time with a fixed pause between
    consecutive links. A failure on one link never stops the batch. Instant
    runs for freshly registered links go through ``dispatch_one`` and run
    alongside any batch in progress.
    """

    def __init__(
        self,
        store: TrackerStore,
        processor: LinkProcessor,
        inter_link_delay_seconds: Optional[float] = None,
        store_timeout_seconds: Optional[float] = None,
    ):
        self.store = store
        self.processor = processor
        self.inter_link_delay_seconds = (
            settings.inter_link_delay_seconds
            if inter_link_delay_seconds is None
            else inter_link_delay_seconds
        )
        self.store_timeout_seconds = store_timeout_seconds or settings.store_timeout_seconds
        self._pending: set[asyncio.Task] = set()

    async def run_batch(self) -> BatchSummary:
        """
        Process every active tracked link once.

        A failure to load the link list is logged once and reported on the
        returned summary; no link is processed in that case.
        """
        summary = BatchSummary()
        started = time.monotonic()

        try:
            links = await self._load_links()
        except BatchLoadError as e:
            summary.error = str(e)
            summary.finished_at = datetime.utcnow()
            logger.error(f"Tracker batch aborted: {e}")
            metrics.record_batch_run(False, time.monotonic() - started, 0)
            return summary

        logger.info(f"Tracker batch started: {len(links)} active links")

        for index, link in enumerate(links):
            if index > 0 and self.inter_link_delay_seconds > 0:
                await asyncio.sleep(self.inter_link_delay_seconds)

            try:
                result = await self.processor.process_link(link)
            except Exception as e:
                # Store outages and strategy bugs end this link only
                logger.error(f"Link {link.id} ({link.external_url}) failed: {e}", exc_info=True)
                metrics.record_link_outcome(link.source_id, "error")
                summary.processed += 1
                summary.failed += 1
                continue

            summary.record(result)

        summary.finished_at = datetime.utcnow()
        metrics.record_batch_run(True, time.monotonic() - started, len(links))
        logger.info(
            f"Tracker batch finished in {summary.duration_seconds:.1f}s: "
            f"{summary.succeeded} succeeded, {summary.failed} failed, "
            f"{summary.skipped} skipped"
        )
        return summary

    async def run_one(self, link: TrackedLink) -> Optional[RawExtraction]:
        """
        Process a single link immediately.

        Raises:
            StoreUnavailableError: The data store could not be reached for
                any offer write attempt. Other failures are logged.
        """
        try:
            result = await self.processor.process_link(link)
        except StoreUnavailableError:
            raise
        except Exception as e:
            logger.error(f"Link {link.id} ({link.external_url}) failed: {e}", exc_info=True)
            return None

        if result.outcome is LinkOutcome.SUCCEEDED:
            return result.extraction
        return None

    def dispatch_one(self, link: TrackedLink) -> asyncio.Task:
        """
        Start an instant run for one link without waiting for it.

        Must be called from a running event loop. Errors are logged, never
        raised to the caller.
        """
        task = asyncio.create_task(self._run_detached(link), name=f"track-link-{link.id}")
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        logger.info(f"Dispatched instant run for link {link.id}")
        return task

    async def wait_pending(self) -> None:
        """Wait for every dispatched instant run to finish."""
        # Runs may be dispatched while earlier ones are still draining
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    async def _run_detached(self, link: TrackedLink) -> Optional[RawExtraction]:
        try:
            return await self.run_one(link)
        except Exception as e:
            logger.error(f"Instant run for link {link.id} failed: {e}", exc_info=True)
            return None

    async def _load_links(self) -> list[TrackedLink]:
        try:
            links = await asyncio.wait_for(
                self.store.list_active_tracked_links(), timeout=self.store_timeout_seconds
            )
        except asyncio.TimeoutError as e:
            raise BatchLoadError(
                f"Loading active links timed out after {self.store_timeout_seconds:.1f}s"
            ) from e
        except StoreError as e:
            raise BatchLoadError(f"Could not load active links: {e}") from e
        # The store filters already; keep the guarantee for other implementations
        return [link for link in links if link.is_active and link.external_url]
