"""Data-store interface consumed by the price tracker, and its SQLAlchemy implementation."""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional, Protocol

from sqlalchemy import select, update
from sqlalchemy.exc import DBAPIError, IntegrityError, InterfaceError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from src.db.models import Component, Offer, TrackedLink
from src.normalize.processor import effective_price

logger = logging.getLogger(__name__)


class StoreError(Exception):
    """Base class for data-store failures."""

    pass


class ReconcileError(StoreError):
    """An offer or link write failed; safe to retry."""

    pass


class StoreUnavailableError(StoreError):
    """The data store cannot be reached at all."""

    pass


@dataclass
class OfferUpsert:
    """New price observation for one (component, vendor) pair."""

    component_id: int
    vendor_id: str
    price: int
    in_stock: bool
    vendor_url: str = ""
    source_id: str = "scraper-auto"
    shipping: Optional[int] = None  # None keeps the stored shipping
    observed_at: datetime = None

    def __post_init__(self):
        if self.observed_at is None:
            self.observed_at = datetime.utcnow()


class TrackerStore(Protocol):
    """Persistence operations the tracker core depends on."""

    async def list_active_tracked_links(self) -> list[TrackedLink]:
        ...

    async def find_offer(self, component_id: int, vendor: str) -> Optional[Offer]:
        ...

    async def upsert_offer(self, offer: OfferUpsert) -> Offer:
        ...

    async def touch_link_checked_at(self, link_id: int, timestamp: datetime) -> None:
        ...


class ComponentRegistry(Protocol):
    """Read access to the component catalog."""

    async def get_component(self, component_id: int) -> Optional[Component]:
        ...

    async def component_exists(self, component_id: int) -> bool:
        ...


def _is_unavailable(exc: BaseException) -> bool:
    """Connection-level failures, as opposed to rejected statements."""
    if isinstance(exc, (OSError, InterfaceError)):
        return True
    return isinstance(exc, DBAPIError) and exc.connection_invalidated


def _wrap(exc: BaseException, fallback: type[StoreError], message: str) -> StoreError:
    if _is_unavailable(exc):
        return StoreUnavailableError(f"{message}: data store unavailable ({exc})")
    return fallback(f"{message}: {exc}")


class SqlTrackerStore:
    """
    TrackerStore and ComponentRegistry backed by async SQLAlchemy sessions.

    Each operation opens its own short-lived session, so one instance can be
    shared by a running batch and concurrent instant runs.
    """

    def __init__(self, session_factory: Callable[[], AsyncSession]):
        self._session_factory = session_factory

    # ------------------------------------------------------------------
    # Tracker operations
    # ------------------------------------------------------------------

    async def list_active_tracked_links(self) -> list[TrackedLink]:
        """Active links with a URL, in id order."""
        try:
            async with self._session_factory() as db:
                result = await db.execute(
                    select(TrackedLink)
                    .where(TrackedLink.is_active.is_(True), TrackedLink.external_url != "")
                    .order_by(TrackedLink.id)
                )
                return list(result.scalars().all())
        except (SQLAlchemyError, OSError) as e:
            raise _wrap(e, StoreError, "Could not list tracked links") from e

    async def find_offer(self, component_id: int, vendor: str) -> Optional[Offer]:
        try:
            async with self._session_factory() as db:
                result = await db.execute(
                    select(Offer).where(
                        Offer.component_id == component_id,
                        Offer.vendor_id == vendor,
                    )
                )
                return result.scalar_one_or_none()
        except (SQLAlchemyError, OSError) as e:
            raise _wrap(e, StoreError, f"Could not read offer {component_id}/{vendor}") from e

    async def upsert_offer(self, data: OfferUpsert) -> Offer:
        """
        Create or update the offer for ``(component_id, vendor_id)``.

        Lookup and write happen in one transaction with the row locked where
        the backend supports it. Two writers inserting the same new pair at
        once make one of them fail on the unique constraint; that surfaces as
        ReconcileError and the retry then takes the update path.

        Raises:
            ReconcileError: The write was rejected
            StoreUnavailableError: The database could not be reached
        """
        try:
            async with self._session_factory() as db:
                async with db.begin():
                    result = await db.execute(
                        select(Offer)
                        .where(
                            Offer.component_id == data.component_id,
                            Offer.vendor_id == data.vendor_id,
                        )
                        .with_for_update()
                    )
                    offer = result.scalar_one_or_none()

                    if offer is not None:
                        offer.price = data.price
                        if data.shipping is not None:
                            offer.shipping = data.shipping
                        offer.effective_price = effective_price(data.price, offer.shipping)
                        offer.in_stock = data.in_stock
                        offer.source_id = data.source_id
                        if data.vendor_url:
                            offer.vendor_url = data.vendor_url
                        offer.last_updated = data.observed_at
                    else:
                        shipping = data.shipping or 0
                        offer = Offer(
                            component_id=data.component_id,
                            vendor_id=data.vendor_id,
                            source_id=data.source_id,
                            vendor_url=data.vendor_url,
                            price=data.price,
                            shipping=shipping,
                            effective_price=effective_price(data.price, shipping),
                            in_stock=data.in_stock,
                            last_updated=data.observed_at,
                        )
                        db.add(offer)
                        logger.debug(f"Creating offer {data.component_id}/{data.vendor_id}")
                return offer
        except IntegrityError as e:
            raise ReconcileError(
                f"Offer {data.component_id}/{data.vendor_id} conflicted with a concurrent write: {e.orig}"
            ) from e
        except (SQLAlchemyError, OSError) as e:
            raise _wrap(e, ReconcileError, f"Offer {data.component_id}/{data.vendor_id} not saved") from e

    async def touch_link_checked_at(self, link_id: int, timestamp: datetime) -> None:
        try:
            async with self._session_factory() as db:
                await db.execute(
                    update(TrackedLink)
                    .where(TrackedLink.id == link_id)
                    .values(last_checked_at=timestamp)
                )
                await db.commit()
        except (SQLAlchemyError, OSError) as e:
            raise _wrap(e, ReconcileError, f"Link {link_id} check time not saved") from e

    # ------------------------------------------------------------------
    # Component registry
    # ------------------------------------------------------------------

    async def get_component(self, component_id: int) -> Optional[Component]:
        """Component with its category loaded, or None."""
        try:
            async with self._session_factory() as db:
                result = await db.execute(
                    select(Component)
                    .options(selectinload(Component.category))
                    .where(Component.id == component_id)
                )
                return result.scalar_one_or_none()
        except (SQLAlchemyError, OSError) as e:
            raise _wrap(e, StoreError, f"Could not read component {component_id}") from e

    async def component_exists(self, component_id: int) -> bool:
        return await self.get_component(component_id) is not None

    # ------------------------------------------------------------------
    # Link and offer management
    # ------------------------------------------------------------------

    async def register_tracked_link(
        self,
        component_id: int,
        url: str,
        source_id: str,
        external_id: Optional[str] = "manual-link",
        match_method: str = "manual",
        confidence: float = 1.0,
    ) -> TrackedLink:
        """Create an active tracked link."""
        try:
            async with self._session_factory() as db:
                link = TrackedLink(
                    component_id=component_id,
                    external_url=url,
                    source_id=source_id,
                    external_id=external_id,
                    match_method=match_method,
                    confidence=confidence,
                    is_active=True,
                )
                db.add(link)
                await db.commit()
                await db.refresh(link)
                return link
        except (SQLAlchemyError, OSError) as e:
            raise _wrap(e, StoreError, f"Could not register link for component {component_id}") from e

    async def set_link_active(self, link_id: int, active: bool) -> Optional[TrackedLink]:
        """Toggle a link's active flag; None when the link does not exist."""
        try:
            async with self._session_factory() as db:
                link = await db.get(TrackedLink, link_id)
                if link is None:
                    return None
                link.is_active = active
                await db.commit()
                return link
        except (SQLAlchemyError, OSError) as e:
            raise _wrap(e, StoreError, f"Could not update link {link_id}") from e

    async def list_tracked_links(self, component_id: Optional[int] = None) -> list[TrackedLink]:
        try:
            async with self._session_factory() as db:
                query = select(TrackedLink).order_by(TrackedLink.id)
                if component_id is not None:
                    query = query.where(TrackedLink.component_id == component_id)
                result = await db.execute(query)
                return list(result.scalars().all())
        except (SQLAlchemyError, OSError) as e:
            raise _wrap(e, StoreError, "Could not list tracked links") from e

    async def list_offers(self, component_id: int) -> list[Offer]:
        """Offers for a component, cheapest effective price first."""
        try:
            async with self._session_factory() as db:
                result = await db.execute(
                    select(Offer)
                    .where(Offer.component_id == component_id)
                    .order_by(Offer.effective_price, Offer.vendor_id)
                )
                return list(result.scalars().all())
        except (SQLAlchemyError, OSError) as e:
            raise _wrap(e, StoreError, f"Could not list offers for component {component_id}") from e
