"""FastAPI service hosting the price tracker, its scheduler and the tracked-link API."""

import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI
from prometheus_fastapi_instrumentator import Instrumentator

from src.api.routes import offers, tracked_links, tracker
from src.config import settings
from src.db.models import Base
from src.db.session import engine
from src.logging_config import setup_logging
from src.worker.scheduler import setup_scheduler
from src.worker.tasks import task_runner

setup_logging()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create tables, wire the tracker and run the scheduler for the app's lifetime."""
    logger.info(
        f"Starting component price tracker (batch every {settings.tracker_interval_minutes} min, "
        f"tracker {'enabled' if settings.tracker_enabled else 'disabled'})"
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    await task_runner.initialize()

    scheduler = setup_scheduler()
    scheduler.start()
    app.state.scheduler = scheduler

    try:
        yield
    finally:
        logger.info("Shutting down...")
        scheduler.shutdown(wait=False)
        await task_runner.close()
        await engine.dispose()
        logger.info("Shutdown complete")


def setup_metrics(app: FastAPI) -> None:
    """Instrument HTTP handlers and expose /metrics next to the tracker's own metrics."""
    Instrumentator(
        should_group_status_codes=True,
        should_ignore_untemplated=True,
        should_respect_env_var=True,
        excluded_handlers=["/metrics", "/health"],
    ).instrument(app).expose(app, include_in_schema=True, tags=["monitoring"])


app = FastAPI(
    title="Component Price Tracker",
    description="Keep vendor offers for PC components current",
    version="0.1.0",
    lifespan=lifespan,
)
setup_metrics(app)

app.include_router(tracked_links.router)
app.include_router(offers.router)
app.include_router(tracker.router)


@app.get("/health")
async def health():
    """Liveness plus a glance at the tracker."""
    last = task_runner.last_summary
    return {
        "status": "healthy",
        "tracker_running": task_runner.is_running,
        "last_batch_finished_at": last.finished_at.isoformat() if last and last.finished_at else None,
    }


if __name__ == "__main__":
    uvicorn.run(
        "src.main:app",
        host=settings.app_host,
        port=settings.app_port,
        reload=settings.debug,
        log_level=settings.log_level.lower(),
    )
