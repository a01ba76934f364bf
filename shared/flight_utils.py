"""Shared time, price and currency helpers for flight results."""

from __future__ import annotations

import math

NOT_AVAILABLE = "N/A"
DEFAULT_CURRENCY = "USD"
PRICE_SCALE = 1000

COUNTRY_CURRENCY: dict[str, str] = {
    "IN": "INR",
    "US": "USD",
    "GB": "GBP",
    "AE": "AED",
    "AU": "AUD",
    "CA": "CAD",
    "SG": "SGD",
    "EU": "EUR",
    "DE": "EUR",
    "FR": "EUR",
    "IT": "EUR",
    "ES": "EUR",
    "NL": "EUR",
    "JP": "JPY",
    "CN": "CNY",
    "HK": "HKD",
    "MY": "MYR",
    "TH": "THB",
    "NZ": "NZD",
    "ZA": "ZAR",
    "CH": "CHF",
    "SE": "SEK",
    "NO": "NOK",
    "DK": "DKK",
    "PL": "PLN",
    "MX": "MXN",
    "BR": "BRL",
    "AR": "ARS",
    "NG": "NGN",
    "KE": "KES",
    "PH": "PHP",
    "ID": "IDR",
    "VN": "VND",
    "PK": "PKR",
    "BD": "BDT",
    "LK": "LKR",
    "NP": "NPR",
}

CURRENCY_SYMBOLS: dict[str, str] = {
    "USD": "$",
    "INR": "₹",
    "GBP": "£",
    "EUR": "€",
    "JPY": "¥",
    "CNY": "CN¥",
    "AUD": "A$",
    "CAD": "CA$",
    "SGD": "S$",
    "HKD": "HK$",
    "NZD": "NZ$",
    "MXN": "MX$",
    "BRL": "R$",
    "THB": "฿",
    "PHP": "₱",
    "VND": "₫",
    "NGN": "₦",
    "BDT": "৳",
}


class InvalidInput(ValueError):
    """Raised when a formatter receives negative, non-finite or out-of-range input."""


def format_clock_time(hour: int | None, minute: int | None) -> str:
    """Return a zero-padded 24-hour ``HH:MM`` string, or ``N/A`` when a part is missing."""

    if hour is None or minute is None:
        return NOT_AVAILABLE
    if not 0 <= hour <= 23 or not 0 <= minute <= 59:
        raise InvalidInput(f"clock time out of range: {hour}:{minute}")
    return f"{hour:02d}:{minute:02d}"


def format_duration(total_minutes: int | float) -> str:
    """Render minutes as ``<h>h <m>m`` using floor division."""

    minutes = _require_non_negative(total_minutes, "duration")
    hours, mins = divmod(int(minutes), 60)
    return f"{hours}h {mins}m"


def format_price(amount_thousandths: int | float, currency: str) -> str:
    """Render an upstream price (thousandths of the major unit) with its currency symbol.

    Unknown currency codes are rendered as ``"<CODE> "`` prefixes. No decimals
    are shown and thousands are separated with commas regardless of locale.
    """

    amount = _require_non_negative(amount_thousandths, "price") / PRICE_SCALE
    code = (currency or DEFAULT_CURRENCY).upper()
    symbol = CURRENCY_SYMBOLS.get(code, f"{code} ")
    return f"{symbol}{amount:,.0f}"


def currency_for_country(country_code: str | None) -> str:
    """Return the ISO currency for a country code, defaulting to USD."""

    if not country_code:
        return DEFAULT_CURRENCY
    return COUNTRY_CURRENCY.get(country_code.strip().upper(), DEFAULT_CURRENCY)


def _require_non_negative(value: int | float, label: str) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise InvalidInput(f"{label} must be numeric, got {value!r}")
    if not math.isfinite(value) or value < 0:
        raise InvalidInput(f"{label} must be a non-negative finite number, got {value!r}")
    return value


__all__ = [
    "COUNTRY_CURRENCY",
    "CURRENCY_SYMBOLS",
    "DEFAULT_CURRENCY",
    "InvalidInput",
    "NOT_AVAILABLE",
    "PRICE_SCALE",
    "currency_for_country",
    "format_clock_time",
    "format_duration",
    "format_price",
]
