"""Tracked link management routes."""

import logging
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, field_validator

from src.api.deps import get_store, get_tracker
from src.db.store import SqlTrackerStore, StoreError
from src.ingest.retailers.strategies import identify_vendor
from src.worker.tracker import PriceTracker

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/tracked-links", tags=["tracked-links"])


class TrackedLinkCreate(BaseModel):
    component_id: int
    url: str

    @field_validator("url")
    @classmethod
    def validate_url(cls, v: str) -> str:
        v = v.strip()
        if not v.startswith(("http://", "https://")):
            raise ValueError("URL must start with http:// or https://")
        return v


class TrackedLinkUpdate(BaseModel):
    is_active: bool


class TrackedLinkResponse(BaseModel):
    id: int
    component_id: int
    source_id: str
    external_url: str
    external_id: Optional[str]
    match_method: str
    confidence: float
    is_active: bool
    last_checked_at: Optional[datetime]
    created_at: Optional[datetime]

    class Config:
        from_attributes = True


class TrackedLinkCreated(BaseModel):
    message: str
    data: TrackedLinkResponse


@router.get("", response_model=List[TrackedLinkResponse])
async def list_tracked_links(
    component_id: Optional[int] = Query(None, description="Only links for this component"),
    store: SqlTrackerStore = Depends(get_store),
):
    """List tracked links."""
    try:
        return await store.list_tracked_links(component_id)
    except StoreError as e:
        raise HTTPException(status_code=503, detail=str(e))


@router.post("", response_model=TrackedLinkCreated, status_code=201)
async def create_tracked_link(
    link_data: TrackedLinkCreate,
    store: SqlTrackerStore = Depends(get_store),
    tracker: PriceTracker = Depends(get_tracker),
):
    """
    Register a vendor URL for a component and start an instant price check.

    The check runs in the background; the response does not wait for it.
    """
    try:
        if not await store.component_exists(link_data.component_id):
            raise HTTPException(status_code=404, detail="Component not found")

        link = await store.register_tracked_link(
            component_id=link_data.component_id,
            url=link_data.url,
            source_id=identify_vendor(link_data.url),
        )
    except StoreError as e:
        raise HTTPException(status_code=503, detail=str(e))

    logger.info(f"Registered link {link.id} ({link.source_id}) for component {link.component_id}")
    tracker.dispatch_one(link)

    return TrackedLinkCreated(
        message="Link added! Price is updating in background...",
        data=TrackedLinkResponse.model_validate(link),
    )


@router.patch("/{link_id}", response_model=TrackedLinkResponse)
async def update_tracked_link(
    link_id: int,
    update: TrackedLinkUpdate,
    store: SqlTrackerStore = Depends(get_store),
):
    """Activate or deactivate a tracked link."""
    try:
        link = await store.set_link_active(link_id, update.is_active)
    except StoreError as e:
        raise HTTPException(status_code=503, detail=str(e))
    if link is None:
        raise HTTPException(status_code=404, detail="Tracked link not found")
    return link
