"""Normalize raw vendor price text into integer prices."""

import logging
import re
from typing import Optional

logger = logging.getLogger(__name__)

# Loose "digits with thousand separators / decimal points" pattern
PRICE_CANDIDATE_PATTERN = re.compile(r"[\d,.]+")
NON_DIGIT_PATTERN = re.compile(r"\D")


def parse_price(text: Optional[str]) -> int:
    """
    Parse vendor price text into an integer price.

    Every numeric run is stripped of separators and parsed on its own. When
    the text holds several prices (a struck-through MRP next to the selling
    price, e.g. ``"₹8,399 ₹5,300"``) the smallest one is returned, on the
    assumption that the selling price never exceeds the list price. This is a
    heuristic: price ranges or bundle prices can make it pick the wrong number.

    Decimal points are treated as separators like commas, so ``"1,299.00"``
    parses as 129900. Vendors handled here print whole-rupee prices.

    Args:
        text: Raw price text scraped from the page

    Returns:
        Price as an integer, or 0 when no positive number is present
    """
    if not text:
        return 0

    candidates = []
    for match in PRICE_CANDIDATE_PATTERN.findall(text):
        digits = NON_DIGIT_PATTERN.sub("", match)
        if not digits:
            continue
        value = int(digits)
        if value > 0:
            candidates.append(value)

    if not candidates:
        return 0

    if len(candidates) > 1:
        logger.debug(f"Multiple price candidates in {text!r}: {candidates}, using lowest")

    return min(candidates)


def effective_price(price: int, shipping: Optional[int] = None) -> int:
    """Price including shipping; unknown or negative shipping counts as free."""
    if not shipping or shipping < 0:
        return price
    return price + shipping
