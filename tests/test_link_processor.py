"""Tests for the per-link fetch, extract and reconcile pipeline."""

import logging

import pytest

from src.db.store import ReconcileError, StoreUnavailableError
from src.ingest.base import FetchError
from src.ingest.link_processor import LinkOutcome, LinkProcessor

from tests.fakes import (
    MDCOMPUTERS_URL,
    NO_PRICE_HTML,
    PRIMEABGB_URL,
    VEDANT_URL,
    FakeFetcher,
    FakeStore,
    make_link,
)


def _processor(store, fetcher, max_attempts=3):
    return LinkProcessor(store, fetcher, max_attempts=max_attempts, backoff_seconds=0)


@pytest.mark.asyncio
async def test_success_writes_offer_and_touches_link(fake_store, fake_fetcher):
    link = fake_store.links[0]

    result = await _processor(fake_store, fake_fetcher).process_link(link)

    assert result.outcome is LinkOutcome.SUCCEEDED
    assert result.extraction.price == 5300

    offer = fake_store.offers[(1, "mdcomputers")]
    assert offer.price == 5300
    assert offer.effective_price == 5300
    assert offer.in_stock is True
    assert offer.source_id == "scraper-auto"
    assert offer.vendor_url == MDCOMPUTERS_URL
    assert link.id in fake_store.touched


@pytest.mark.asyncio
async def test_process_returns_extraction(fake_store, fake_fetcher):
    extraction = await _processor(fake_store, fake_fetcher).process(fake_store.links[0])

    assert extraction is not None
    assert extraction.vendor == "mdcomputers"
    assert extraction.price == 5300


@pytest.mark.asyncio
async def test_vedant_link(fake_fetcher):
    store = FakeStore(links=[make_link(url=VEDANT_URL, source_id="vedant")])

    result = await _processor(store, fake_fetcher).process_link(store.links[0])

    assert result.outcome is LinkOutcome.SUCCEEDED
    assert store.offers[(1, "vedant")].price == 12999


@pytest.mark.asyncio
async def test_unsupported_vendor_is_skipped_without_fetch(fake_fetcher):
    store = FakeStore(links=[make_link(url=PRIMEABGB_URL, source_id="primeabgb")])
    processor = _processor(store, fake_fetcher)

    result = await processor.process_link(store.links[0])

    assert result.outcome is LinkOutcome.SKIPPED_UNSUPPORTED
    assert await processor.process(store.links[0]) is None
    assert fake_fetcher.calls == []
    assert store.upsert_calls == 0
    assert store.touched == {}


@pytest.mark.asyncio
async def test_fetch_failure_is_not_retried(fake_store):
    fetcher = FakeFetcher({MDCOMPUTERS_URL: FetchError(MDCOMPUTERS_URL, "Navigation timeout")})

    result = await _processor(fake_store, fetcher).process_link(fake_store.links[0])

    assert result.outcome is LinkOutcome.FAILED_FETCH
    assert result.error == "Navigation timeout"
    assert fetcher.calls == [MDCOMPUTERS_URL]
    assert fake_store.upsert_calls == 0
    assert fake_store.touched == {}


@pytest.mark.asyncio
async def test_zero_price_keeps_existing_offer(fake_store, fake_fetcher):
    link = fake_store.links[0]
    await _processor(fake_store, fake_fetcher).process_link(link)
    before = fake_store.offers[(1, "mdcomputers")].last_updated
    fake_store.touched.clear()

    fetcher = FakeFetcher({MDCOMPUTERS_URL: NO_PRICE_HTML})
    result = await _processor(fake_store, fetcher).process_link(link)

    assert result.outcome is LinkOutcome.FAILED_NO_PRICE
    offer = fake_store.offers[(1, "mdcomputers")]
    assert offer.price == 5300
    assert offer.last_updated == before
    assert fake_store.touched == {}


@pytest.mark.asyncio
async def test_reconcile_retries_then_succeeds(fake_store, fake_fetcher):
    fake_store.upsert_failures = [ReconcileError("deadlock"), ReconcileError("deadlock")]

    result = await _processor(fake_store, fake_fetcher).process_link(fake_store.links[0])

    assert result.outcome is LinkOutcome.SUCCEEDED
    assert fake_store.upsert_calls == 3
    assert len(fake_store.offers) == 1
    assert fake_fetcher.calls == [MDCOMPUTERS_URL]


@pytest.mark.asyncio
async def test_reconcile_gives_up_after_max_attempts(fake_store, fake_fetcher, caplog):
    fake_store.upsert_failures = [ReconcileError("rejected")] * 5

    with caplog.at_level(logging.WARNING, logger="src.ingest.link_processor"):
        result = await _processor(fake_store, fake_fetcher).process_link(fake_store.links[0])

    assert result.outcome is LinkOutcome.FAILED_RECONCILE
    assert fake_store.upsert_calls == 3
    assert fake_store.offers == {}
    assert fake_store.touched == {}
    errors = [r for r in caplog.records if r.levelno == logging.ERROR]
    assert len(errors) == 1
    assert "failed after 3 attempts" in errors[0].getMessage()
    assert errors[0].link_id == 1
    assert errors[0].vendor == "mdcomputers"


@pytest.mark.asyncio
async def test_unreachable_store_is_raised_after_retries(fake_store, fake_fetcher):
    fake_store.upsert_failures = [StoreUnavailableError("connection refused")] * 3

    with pytest.raises(StoreUnavailableError):
        await _processor(fake_store, fake_fetcher).process_link(fake_store.links[0])

    assert fake_store.upsert_calls == 3


@pytest.mark.asyncio
async def test_rejected_then_unreachable_is_a_failed_write(fake_store, fake_fetcher):
    fake_store.upsert_failures = [
        ReconcileError("serialization failure"),
        ReconcileError("serialization failure"),
        StoreUnavailableError("connection reset"),
    ]

    result = await _processor(fake_store, fake_fetcher).process_link(fake_store.links[0])

    assert result.outcome is LinkOutcome.FAILED_RECONCILE
    assert fake_store.upsert_calls == 3


@pytest.mark.asyncio
async def test_unreachable_then_rejected_is_a_failed_write(fake_store, fake_fetcher):
    fake_store.upsert_failures = [
        StoreUnavailableError("connection refused"),
        StoreUnavailableError("connection refused"),
        ReconcileError("serialization failure"),
    ]

    result = await _processor(fake_store, fake_fetcher).process_link(fake_store.links[0])

    assert result.outcome is LinkOutcome.FAILED_RECONCILE
    assert fake_store.upsert_calls == 3
    assert fake_store.offers == {}


@pytest.mark.asyncio
async def test_hanging_write_counts_as_failed_attempt(fake_store, fake_fetcher):
    fake_store.upsert_stalls = 1
    processor = LinkProcessor(
        fake_store, fake_fetcher, max_attempts=3, backoff_seconds=0, store_timeout_seconds=0.05
    )

    result = await processor.process_link(fake_store.links[0])

    assert result.outcome is LinkOutcome.SUCCEEDED
    assert fake_store.upsert_calls == 2
    assert (1, "mdcomputers") in fake_store.offers


@pytest.mark.asyncio
async def test_write_that_always_hangs_gives_up(fake_store, fake_fetcher):
    fake_store.upsert_stalls = 3
    processor = LinkProcessor(
        fake_store, fake_fetcher, max_attempts=3, backoff_seconds=0, store_timeout_seconds=0.05
    )

    result = await processor.process_link(fake_store.links[0])

    assert result.outcome is LinkOutcome.FAILED_RECONCILE
    assert fake_store.upsert_calls == 3
    assert fake_store.touched == {}


@pytest.mark.asyncio
async def test_hanging_touch_still_succeeds(fake_store, fake_fetcher):
    fake_store.stall_touch = True
    processor = LinkProcessor(
        fake_store, fake_fetcher, max_attempts=3, backoff_seconds=0, store_timeout_seconds=0.05
    )

    result = await processor.process_link(fake_store.links[0])

    assert result.outcome is LinkOutcome.SUCCEEDED
    assert fake_store.touched == {}



@pytest.mark.asyncio
async def test_backoff_waits_between_attempts_only(fake_store, fake_fetcher, monkeypatch):
    sleeps = []

    async def fake_sleep(seconds):
        sleeps.append(seconds)

    monkeypatch.setattr("src.ingest.link_processor.asyncio.sleep", fake_sleep)
    fake_store.upsert_failures = [ReconcileError("rejected")] * 3
    processor = LinkProcessor(fake_store, fake_fetcher, max_attempts=3, backoff_seconds=2.0)

    await processor.process_link(fake_store.links[0])

    assert sleeps == [2.0, 2.0]


@pytest.mark.asyncio
async def test_touch_failure_still_succeeds(fake_store, fake_fetcher):
    fake_store.touch_error = ReconcileError("lock timeout")

    result = await _processor(fake_store, fake_fetcher).process_link(fake_store.links[0])

    assert result.outcome is LinkOutcome.SUCCEEDED
    assert (1, "mdcomputers") in fake_store.offers


@pytest.mark.asyncio
async def test_processing_twice_keeps_one_offer(fake_store, fake_fetcher):
    processor = _processor(fake_store, fake_fetcher)
    link = fake_store.links[0]

    await processor.process_link(link)
    first = fake_store.offers[(1, "mdcomputers")].last_updated
    await processor.process_link(link)

    assert len(fake_store.offers) == 1
    offer = fake_store.offers[(1, "mdcomputers")]
    assert offer.price == 5300
    assert offer.last_updated >= first


def test_outcome_failure_flag():
    assert LinkOutcome.FAILED_FETCH.is_failure
    assert not LinkOutcome.SUCCEEDED.is_failure
    assert not LinkOutcome.SKIPPED_UNSUPPORTED.is_failure


@pytest.mark.asyncio
async def test_mdcomputers_listing_price_end_to_end():
    html = (
        '<html><body><span class="price-new">₹12,999</span>'
        '<button id="button-cart">Add to Cart</button></body></html>'
    )
    store = FakeStore(links=[make_link()])
    fetcher = FakeFetcher({MDCOMPUTERS_URL: html})

    result = await _processor(store, fetcher).process_link(store.links[0])

    assert result.outcome is LinkOutcome.SUCCEEDED
    offer = store.offers[(1, "mdcomputers")]
    assert (offer.price, offer.effective_price, offer.in_stock) == (12999, 12999, True)
    assert 1 in store.touched
