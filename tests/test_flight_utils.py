from __future__ import annotations

import math

import pytest

from shared.flight_utils import (
    InvalidInput,
    currency_for_country,
    format_clock_time,
    format_duration,
    format_price,
)


@pytest.mark.parametrize("minutes", [0, 59, 60, 160, 1439, 6001])
def test_format_duration_uses_floor_division(minutes: int) -> None:
    assert format_duration(minutes) == f"{minutes // 60}h {minutes % 60}m"


def test_format_duration_example() -> None:
    assert format_duration(160) == "2h 40m"


@pytest.mark.parametrize("bad", [-1, math.nan, math.inf])
def test_format_duration_rejects_invalid_input(bad: float) -> None:
    with pytest.raises(InvalidInput):
        format_duration(bad)


def test_format_clock_time_pads_and_handles_missing() -> None:
    assert format_clock_time(7, 5) == "07:05"
    assert format_clock_time(None, 30) == "N/A"
    assert format_clock_time(12, None) == "N/A"


def test_format_clock_time_rejects_out_of_range() -> None:
    with pytest.raises(InvalidInput):
        format_clock_time(24, 0)


def test_format_price_divides_thousandths_and_uses_symbol() -> None:
    assert format_price(3_500_000, "INR") == "₹3,500"
    assert format_price(1_234_567_000, "USD") == "$1,234,567"


def test_format_price_prefixes_unknown_codes() -> None:
    assert format_price(250_000, "AED") == "AED 250"


def test_format_price_rejects_negative_amounts() -> None:
    with pytest.raises(InvalidInput):
        format_price(-1, "USD")


def test_currency_for_country_lookup_and_default() -> None:
    assert currency_for_country("IN") == "INR"
    assert currency_for_country("de") == "EUR"
    assert currency_for_country("ZZ") == "USD"
    assert currency_for_country(None) == "USD"
