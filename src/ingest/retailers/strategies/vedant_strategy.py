"""Vedant Computers vendor strategy."""

from __future__ import annotations

from selectolax.parser import HTMLParser

from src.ingest.retailers.strategies.base import VendorStrategy


class VedantStrategy(VendorStrategy):
    vendor = "vedant"
    url_markers = ("vedant",)

    PRICE_SELECTORS = [
        ".product-price",
        ".price-new",
        ".price",
    ]

    def is_in_stock(self, tree: HTMLParser) -> bool:
        # Vedant removes the cart button entirely for unavailable items
        return tree.css_first("#button-cart") is not None
