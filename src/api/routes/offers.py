"""Offer routes."""

import logging
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from src.api.deps import get_store
from src.db.store import OfferUpsert, SqlTrackerStore, StoreError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["offers"])

MANUAL_SOURCE_ID = "manual"


class OfferResponse(BaseModel):
    id: int
    component_id: int
    vendor_id: str
    source_id: str
    vendor_url: str
    price: int
    shipping: int
    effective_price: int
    in_stock: bool
    last_updated: datetime

    class Config:
        from_attributes = True


class ComponentOffers(BaseModel):
    component_id: int
    offers: List[OfferResponse]
    best_offer: Optional[OfferResponse] = None


class ManualOfferCreate(BaseModel):
    component_id: int
    vendor_name: str = "Manual Entry"
    price: int = Field(gt=0)
    in_stock: bool = True


@router.get("/components/{component_id}/offers", response_model=ComponentOffers)
async def get_component_offers(
    component_id: int,
    store: SqlTrackerStore = Depends(get_store),
):
    """Offers for a component and the cheapest one currently in stock."""
    try:
        if not await store.component_exists(component_id):
            raise HTTPException(status_code=404, detail="Component not found")
        offers = await store.list_offers(component_id)
    except StoreError as e:
        raise HTTPException(status_code=503, detail=str(e))

    # list_offers is sorted by effective price
    best = next((offer for offer in offers if offer.in_stock), None)
    return ComponentOffers(
        component_id=component_id,
        offers=[OfferResponse.model_validate(offer) for offer in offers],
        best_offer=OfferResponse.model_validate(best) if best else None,
    )


@router.post("/offers/manual", response_model=OfferResponse)
async def add_manual_offer(
    offer_data: ManualOfferCreate,
    store: SqlTrackerStore = Depends(get_store),
):
    """Record a price entered by hand."""
    vendor = offer_data.vendor_name.strip() or "Manual Entry"
    logger.info(f"Manual offer: {vendor} - {offer_data.price}")

    try:
        if not await store.component_exists(offer_data.component_id):
            raise HTTPException(status_code=404, detail="Component not found")
        return await store.upsert_offer(
            OfferUpsert(
                component_id=offer_data.component_id,
                vendor_id=vendor,
                price=offer_data.price,
                in_stock=offer_data.in_stock,
                source_id=MANUAL_SOURCE_ID,
            )
        )
    except StoreError as e:
        logger.error(f"Manual offer failed: {e}")
        raise HTTPException(status_code=503, detail=str(e))
