"""Vendor extraction strategy base class."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Optional

from selectolax.parser import HTMLParser, Node

from src.ingest.base import RawExtraction, RenderedPage
from src.normalize.processor import parse_price

logger = logging.getLogger(__name__)

NO_PRICE_TEXT = "0"


class VendorStrategy(ABC):
    """
    Base vendor strategy implementation.

    Subclasses list price selectors in priority order; the first selector
    whose element has non-empty text wins. When a vendor ships a new layout,
    append its selector to ``PRICE_SELECTORS`` rather than replacing the list.
    """

    vendor: str = "unknown"
    url_markers: tuple[str, ...] = ()
    PRICE_SELECTORS: list[str] = []

    def matches(self, url: str) -> bool:
        """Check whether this strategy handles the URL."""
        lowered = (url or "").lower()
        return any(marker in lowered for marker in self.url_markers)

    def extract(self, page: RenderedPage) -> RawExtraction:
        """
        Extract price and stock state from a rendered page.

        Never raises for missing nodes: a page without any price element
        yields price 0.
        """
        tree = HTMLParser(page.html or "")
        price_text = self.find_price_text(tree)
        price = parse_price(price_text)
        in_stock = self.is_in_stock(tree)

        logger.debug(
            f"{self.vendor}: price text {price_text!r} -> {price}, in_stock={in_stock}"
        )
        return RawExtraction(
            vendor=self.vendor,
            price=price,
            in_stock=in_stock,
            price_text=price_text,
        )

    def find_price_text(self, tree: HTMLParser) -> str:
        """Return the text of the first price selector with content."""
        for selector in self.PRICE_SELECTORS:
            text = node_text(tree.css_first(selector))
            if text:
                return text
        return NO_PRICE_TEXT

    @abstractmethod
    def is_in_stock(self, tree: HTMLParser) -> bool:
        """Stock availability rule."""
        pass


def node_text(node: Optional[Node]) -> str:
    """Visible text of a node, empty string for a missing node."""
    if node is None:
        return ""
    return node.text(separator=" ", strip=True)


def is_hidden(node: Node) -> bool:
    """True when the node carries an inline ``display: none``."""
    style = (node.attributes.get("style") or "").replace(" ", "").lower()
    return "display:none" in style
