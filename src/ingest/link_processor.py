"""Process one tracked link: fetch, extract, validate and reconcile into offers."""

import asyncio
import time
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional

from src import metrics
from src.config import settings
from src.db.models import TrackedLink
from src.db.store import (
    OfferUpsert,
    ReconcileError,
    StoreError,
    StoreUnavailableError,
    TrackerStore,
)
from src.ingest.base import BaseFetcher, FetchError, RawExtraction
from src.ingest.retailers.strategies import get_strategy_for_url
from src.logging_config import LoggerAdapter, get_logger

SCRAPER_SOURCE_ID = "scraper-auto"


class LinkOutcome(str, Enum):
    """Terminal state of one link in one cycle."""

    SUCCEEDED = "succeeded"
    SKIPPED_UNSUPPORTED = "skipped_unsupported"
    FAILED_FETCH = "failed_fetch"
    FAILED_NO_PRICE = "failed_no_price"
    FAILED_RECONCILE = "failed_reconcile"

    @property
    def is_failure(self) -> bool:
        return self.value.startswith("failed")


@dataclass
class LinkResult:
    """Outcome of processing one link."""

    link_id: int
    outcome: LinkOutcome
    extraction: Optional[RawExtraction] = None
    error: Optional[str] = None


class LinkProcessor:
    """
    Runs a single link through dispatch, fetch, extraction and reconciliation.

    Only the offer write is retried. A failed fetch or an empty price ends the
    cycle for the link; the next scheduled run tries again. Neither case
    touches stored offers or the link's check time, so a link that keeps
    failing shows up as stale.
    """

    def __init__(
        self,
        store: TrackerStore,
        fetcher: BaseFetcher,
        max_attempts: Optional[int] = None,
        backoff_seconds: Optional[float] = None,
        store_timeout_seconds: Optional[float] = None,
    ):
        """
        Args:
            store: Data-store interface
            fetcher: Page fetcher
            max_attempts: Offer write attempts before giving up
            backoff_seconds: Fixed wait between offer write attempts
            store_timeout_seconds: Ceiling on each store call; a write that
                exceeds it counts as a failed attempt
        """
        self.store = store
        self.fetcher = fetcher
        self.max_attempts = max_attempts or settings.reconcile_max_attempts
        self.backoff_seconds = (
            settings.reconcile_backoff_seconds if backoff_seconds is None else backoff_seconds
        )
        self.store_timeout_seconds = store_timeout_seconds or settings.store_timeout_seconds

    async def process(self, link: TrackedLink) -> Optional[RawExtraction]:
        """Process a link and return its extraction, or None if nothing was stored."""
        result = await self.process_link(link)
        if result.outcome is LinkOutcome.SUCCEEDED:
            return result.extraction
        return None

    async def process_link(self, link: TrackedLink) -> LinkResult:
        """
        Process a link and report its terminal state.

        Raises:
            StoreUnavailableError: Every offer write failed because the data
                store was unreachable
        """
        log = get_logger(__name__, link_id=link.id, component_id=link.component_id)

        strategy = get_strategy_for_url(link.external_url)
        if strategy is None:
            log.debug(f"No extraction strategy for {link.external_url}, skipping")
            return self._finish(link, link.source_id, LinkOutcome.SKIPPED_UNSUPPORTED)

        vendor = strategy.vendor
        log.extra["vendor"] = vendor
        log.info(f"Processing {link.external_url}")

        started = time.monotonic()
        try:
            page = await self.fetcher.fetch(link.external_url)
        except FetchError as e:
            metrics.record_fetch_error(vendor, time.monotonic() - started)
            log.warning(f"Fetch failed, skipping until next run: {e.reason}")
            return self._finish(link, vendor, LinkOutcome.FAILED_FETCH, error=e.reason)
        metrics.record_fetch_success(vendor, time.monotonic() - started)

        extraction = strategy.extract(page)
        if extraction.price == 0:
            log.warning(
                f"No usable price found (price text {extraction.price_text!r}), "
                "keeping last known offer"
            )
            return self._finish(
                link, vendor, LinkOutcome.FAILED_NO_PRICE, extraction=extraction,
                error="no price",
            )

        saved = await self._reconcile(link, extraction, log)
        if not saved:
            return self._finish(
                link, vendor, LinkOutcome.FAILED_RECONCILE, extraction=extraction,
                error="offer write failed",
            )

        await self._touch_checked_at(link, log)

        log.info(f"{vendor.upper()}: price {extraction.price}, in_stock={extraction.in_stock}")
        return self._finish(link, vendor, LinkOutcome.SUCCEEDED, extraction=extraction)

    async def _reconcile(
        self,
        link: TrackedLink,
        extraction: RawExtraction,
        log: LoggerAdapter,
    ) -> bool:
        """
        Upsert the offer with bounded retries; True once a write succeeded.

        Raises:
            StoreUnavailableError: Every attempt failed because the store was
                unreachable
        """
        last_error: Optional[StoreError] = None
        all_unavailable = True

        for attempt in range(1, self.max_attempts + 1):
            try:
                await self._with_ceiling(
                    self.store.upsert_offer(
                        OfferUpsert(
                            component_id=link.component_id,
                            vendor_id=extraction.vendor,
                            price=extraction.price,
                            in_stock=extraction.in_stock,
                            vendor_url=link.external_url,
                            source_id=SCRAPER_SOURCE_ID,
                            observed_at=datetime.utcnow(),
                        )
                    ),
                    f"Offer {link.component_id}/{extraction.vendor} write",
                )
                metrics.record_offer_upsert(extraction.vendor)
                return True
            except StoreError as e:
                last_error = e
                all_unavailable = all_unavailable and isinstance(e, StoreUnavailableError)
                metrics.record_reconcile_retry(extraction.vendor)
                if attempt < self.max_attempts:
                    log.warning(
                        f"Offer write {attempt}/{self.max_attempts} failed, "
                        f"retrying in {self.backoff_seconds:.1f}s: {e}"
                    )
                    await asyncio.sleep(self.backoff_seconds)
                else:
                    log.error(f"Offer write failed after {self.max_attempts} attempts: {e}")

        if all_unavailable and last_error is not None:
            raise last_error
        return False

    async def _touch_checked_at(self, link: TrackedLink, log: LoggerAdapter) -> None:
        try:
            await self._with_ceiling(
                self.store.touch_link_checked_at(link.id, datetime.utcnow()),
                f"Link {link.id} check time update",
            )
        except StoreError as e:
            # Offer is already saved; a stale check time only affects reporting
            log.warning(f"Could not update last checked time: {e}")

    async def _with_ceiling(self, call, what: str):
        """Await a store call; exceeding the ceiling is a retryable write failure."""
        try:
            return await asyncio.wait_for(call, timeout=self.store_timeout_seconds)
        except asyncio.TimeoutError:
            raise ReconcileError(f"{what} timed out after {self.store_timeout_seconds:.1f}s")

    @staticmethod
    def _finish(
        link: TrackedLink,
        vendor: str,
        outcome: LinkOutcome,
        extraction: Optional[RawExtraction] = None,
        error: Optional[str] = None,
    ) -> LinkResult:
        metrics.record_link_outcome(vendor, outcome.value)
        return LinkResult(link_id=link.id, outcome=outcome, extraction=extraction, error=error)
