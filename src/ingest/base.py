"""Base fetcher interface and the transient extraction types."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import Optional


@dataclass
class RenderedPage:
    """Snapshot of a rendered vendor page, detached from the browser that produced it."""

    url: str
    html: str
    title: str = ""
    status: Optional[int] = None
    fetched_at: datetime = None

    def __post_init__(self):
        if self.fetched_at is None:
            self.fetched_at = datetime.utcnow()


@dataclass
class RawExtraction:
    """Price and stock signal extracted from one vendor page.

    ``price == 0`` means no usable price was found, not that the item is free.
    """

    vendor: str
    price: int
    in_stock: bool
    price_text: str = "0"


class FetchError(Exception):
    """Page could not be fetched: timeout, network failure, HTTP error or not-found page."""

    def __init__(self, url: str, reason: str):
        self.url = url
        self.reason = reason
        super().__init__(f"Failed to fetch {url}: {reason}")


class BaseFetcher(ABC):
    """Abstract base class for page fetchers."""

    @abstractmethod
    async def fetch(self, url: str, timeout_ms: Optional[int] = None) -> RenderedPage:
        """
        Fetch and render a vendor page.

        Args:
            url: Absolute product page URL
            timeout_ms: Navigation timeout; implementation default when None

        Returns:
            RenderedPage snapshot

        Raises:
            FetchError: If the page cannot be loaded or is an error page
        """
        pass
