"""APScheduler job definitions."""

import logging

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from src.config import settings
from src.worker.tasks import task_runner

logger = logging.getLogger(__name__)


def setup_scheduler() -> AsyncIOScheduler:
    """
    Setup and configure APScheduler.

    The tracker batch runs every ``settings.tracker_interval_minutes`` when
    ``settings.tracker_enabled`` is set.

    Returns:
        Configured scheduler instance
    """
    scheduler = AsyncIOScheduler()
    interval = max(1, int(settings.tracker_interval_minutes))

    if settings.tracker_enabled:
        scheduler.add_job(
            task_runner.run_price_tracker,
            IntervalTrigger(minutes=interval),
            id="price_tracker",
            name="Refresh offers for tracked links",
            max_instances=1,  # Prevent overlapping batches
            coalesce=True,
            misfire_grace_time=600,
            replace_existing=True,
        )
        logger.info(f"Scheduler configured: price tracker every {interval} minutes")
    else:
        logger.info("Scheduler configured: price tracker disabled")

    return scheduler
