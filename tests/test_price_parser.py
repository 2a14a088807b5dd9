"""Tests for vendor price text parsing."""

import pytest

from src.normalize.processor import effective_price, parse_price


@pytest.mark.parametrize(
    "text,expected",
    [
        ("₹8,399 ₹5,300", 5300),
        ("₹12,999", 12999),
        ("1,000", 1000),
        ("Rs. 45,490/-", 45490),
        ("Call for price", 0),
        ("", 0),
        (None, 0),
        ("₹0", 0),
    ],
)
def test_parse_price(text, expected):
    assert parse_price(text) == expected


def test_lowest_candidate_wins_regardless_of_order():
    assert parse_price("₹5,300 was ₹8,399") == 5300


def test_decimal_point_is_stripped_like_a_separator():
    assert parse_price("1,299.00") == 129900


def test_result_is_never_negative():
    assert parse_price("-₹1,500") == 1500


def test_effective_price_adds_shipping():
    assert effective_price(5300, 150) == 5450


@pytest.mark.parametrize("shipping", [None, 0, -10])
def test_effective_price_without_shipping(shipping):
    assert effective_price(5300, shipping) == 5300
