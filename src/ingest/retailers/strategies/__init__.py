"""Vendor strategy registry.

Strategies are evaluated in registration order and the first whose predicate
accepts the URL wins. Adding a vendor means writing a strategy and calling
``register_strategy``; nothing else in the dispatch path changes.
"""

from __future__ import annotations

import logging
from typing import Callable, Optional

from src.ingest.retailers.strategies.base import VendorStrategy
from src.ingest.retailers.strategies.mdcomputers_strategy import MDComputersStrategy
from src.ingest.retailers.strategies.vedant_strategy import VedantStrategy

logger = logging.getLogger(__name__)

UNKNOWN_VENDOR = "unknown"

UrlPredicate = Callable[[str], bool]

_STRATEGIES: list[tuple[UrlPredicate, VendorStrategy]] = []

# Vendors recognised when a link is registered but without extraction support yet
CATALOG_ONLY_VENDORS = {
    "primeabgb": "primeabgb",
    "elitehubs": "elitehubs",
}


def register_strategy(
    strategy: VendorStrategy,
    predicate: Optional[UrlPredicate] = None,
) -> None:
    """
    Append a strategy to the dispatch list.

    Args:
        strategy: Strategy instance
        predicate: URL test; defaults to ``strategy.matches``
    """
    _STRATEGIES.append((predicate or strategy.matches, strategy))
    logger.debug(f"Registered vendor strategy: {strategy.vendor}")


def get_strategy_for_url(url: str) -> Optional[VendorStrategy]:
    """Return the first strategy accepting the URL, or None for unsupported vendors."""
    if not url:
        return None
    for predicate, strategy in _STRATEGIES:
        if predicate(url):
            return strategy
    return None


def identify_vendor(url: str) -> str:
    """Vendor tag for a URL, including vendors without an extraction strategy."""
    strategy = get_strategy_for_url(url)
    if strategy is not None:
        return strategy.vendor

    lowered = (url or "").lower()
    for marker, vendor in CATALOG_ONLY_VENDORS.items():
        if marker in lowered:
            return vendor
    return UNKNOWN_VENDOR


def list_vendors() -> list[str]:
    """Vendors with extraction support, in dispatch order."""
    return [strategy.vendor for _, strategy in _STRATEGIES]


register_strategy(MDComputersStrategy())
register_strategy(VedantStrategy())


__all__ = [
    "UNKNOWN_VENDOR",
    "VendorStrategy",
    "get_strategy_for_url",
    "identify_vendor",
    "list_vendors",
    "register_strategy",
]
