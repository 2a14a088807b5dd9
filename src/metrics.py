"""Prometheus metrics for the price tracker."""

import time

from prometheus_client import Counter, Gauge, Histogram, Info

# Application info
app_info = Info("price_tracker", "Component price tracker application info")
app_info.info({"version": "0.1.0", "name": "component-price-tracker"})

# Link processing metrics
tracked_links_processed_total = Counter(
    "tracked_links_processed_total",
    "Tracked links processed, by terminal outcome",
    ["vendor", "outcome"],
)

# Fetch metrics
page_fetches_total = Counter(
    "page_fetches_total",
    "Total number of headless page fetch attempts",
    ["vendor", "status"],
)

page_fetch_duration_seconds = Histogram(
    "page_fetch_duration_seconds",
    "Time spent rendering vendor pages",
    ["vendor"],
    buckets=[1.0, 2.0, 5.0, 10.0, 30.0, 60.0, 90.0, 120.0],
)

# Reconciliation metrics
offer_reconcile_retries_total = Counter(
    "offer_reconcile_retries_total",
    "Offer upsert attempts that failed and were retried",
    ["vendor"],
)

offer_upserts_total = Counter(
    "offer_upserts_total",
    "Offer upserts written by the tracker",
    ["vendor"],
)

# Batch metrics
tracker_batch_runs_total = Counter(
    "tracker_batch_runs_total",
    "Total number of tracker batch runs",
    ["status"],
)

tracker_batch_duration_seconds = Histogram(
    "tracker_batch_duration_seconds",
    "Wall-clock duration of tracker batch runs",
    buckets=[10.0, 30.0, 60.0, 120.0, 300.0, 600.0, 1800.0, 3600.0],
)

tracker_last_batch_timestamp = Gauge(
    "tracker_last_batch_timestamp",
    "Timestamp of the last completed tracker batch",
)

active_tracked_links = Gauge(
    "active_tracked_links",
    "Number of active tracked links seen by the last batch",
)


def record_link_outcome(vendor: str, outcome: str):
    """Record the terminal outcome of one link."""
    tracked_links_processed_total.labels(vendor=vendor or "unknown", outcome=outcome).inc()


def record_fetch_success(vendor: str, duration: float):
    """Record a successful page fetch."""
    page_fetches_total.labels(vendor=vendor, status="success").inc()
    page_fetch_duration_seconds.labels(vendor=vendor).observe(duration)


def record_fetch_error(vendor: str, duration: float):
    """Record a failed page fetch."""
    page_fetches_total.labels(vendor=vendor, status="error").inc()
    page_fetch_duration_seconds.labels(vendor=vendor).observe(duration)


def record_reconcile_retry(vendor: str):
    """Record a failed offer upsert attempt."""
    offer_reconcile_retries_total.labels(vendor=vendor).inc()


def record_offer_upsert(vendor: str):
    """Record a written offer."""
    offer_upserts_total.labels(vendor=vendor).inc()


def record_batch_run(success: bool, duration: float, link_count: int):
    """Record a tracker batch run."""
    status = "success" if success else "error"
    tracker_batch_runs_total.labels(status=status).inc()
    tracker_batch_duration_seconds.observe(duration)
    tracker_last_batch_timestamp.set(time.time())
    if success:
        active_tracked_links.set(link_count)
