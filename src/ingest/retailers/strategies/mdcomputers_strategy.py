"""MDComputers vendor strategy."""

from __future__ import annotations

from selectolax.parser import HTMLParser

from src.ingest.retailers.strategies.base import VendorStrategy, is_hidden, node_text


class MDComputersStrategy(VendorStrategy):
    vendor = "mdcomputers"
    url_markers = ("mdcomputers",)

    # Price selectors ordered by priority
    PRICE_SELECTORS = [
        ".price-new",                     # Special price (current layout)
        ".product-price",
        ".price",                         # Often holds both MRP and selling price
        ".right-content-product .price",
    ]

    def is_in_stock(self, tree: HTMLParser) -> bool:
        button = tree.css_first("#button-cart")
        if button is None:
            return False
        if "disabled" in button.attributes or is_hidden(button):
            return False

        stock_status = node_text(tree.css_first(".stock-status")).lower()
        return "out of stock" not in stock_status
