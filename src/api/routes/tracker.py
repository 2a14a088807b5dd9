"""Tracker control routes."""

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException
from pydantic import BaseModel

from src.api.deps import get_task_runner
from src.worker.tasks import TaskRunner

router = APIRouter(prefix="/api/tracker", tags=["tracker"])


class BatchSummaryResponse(BaseModel):
    started_at: datetime
    finished_at: Optional[datetime]
    processed: int
    succeeded: int
    failed: int
    skipped: int
    error: Optional[str]

    class Config:
        from_attributes = True


@router.post("/run", status_code=202)
async def trigger_run(
    background_tasks: BackgroundTasks,
    runner: TaskRunner = Depends(get_task_runner),
):
    """Start a tracker batch in the background."""
    if runner.tracker is None:
        raise HTTPException(status_code=503, detail="Price tracker not initialized")
    if runner.is_running:
        raise HTTPException(status_code=409, detail="A tracker batch is already running")

    background_tasks.add_task(runner.run_price_tracker)
    return {"status": "started"}


@router.get("/last-run", response_model=Optional[BatchSummaryResponse])
async def last_run(runner: TaskRunner = Depends(get_task_runner)):
    """Summary of the most recent batch, null before the first one."""
    return runner.last_summary
