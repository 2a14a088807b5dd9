"""FastAPI dependencies."""

from fastapi import HTTPException, status

from src.db.session import AsyncSessionLocal
from src.db.store import SqlTrackerStore
from src.worker.tasks import TaskRunner, task_runner
from src.worker.tracker import PriceTracker


def get_store() -> SqlTrackerStore:
    """Dependency for the data store."""
    if task_runner.store is not None:
        return task_runner.store
    return SqlTrackerStore(AsyncSessionLocal)


def get_task_runner() -> TaskRunner:
    """Dependency for the shared task runner."""
    return task_runner


def get_tracker() -> PriceTracker:
    """
    Dependency for the running price tracker.

    Raises:
        HTTPException: 503 until the task runner has been initialized
    """
    if task_runner.tracker is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Price tracker not initialized",
        )
    return task_runner.tracker
