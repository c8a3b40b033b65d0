"""Utility functions for the EMI calculator.

This module provides helpers for parsing user input into Python data types at
the boundary of the calculator: amounts written with Indian or metric
shorthand, percentages, integers and range checks for form fields. All of
them raise ``LoanValidationError`` (a ``ValueError``) instead of defaulting
bad input to zero.
"""

from __future__ import annotations

from decimal import Decimal, InvalidOperation
from typing import Optional

from .exceptions import LoanValidationError

# Multipliers for amount shorthands ("500k", "12l", "1.5cr", "2m").
AMOUNT_SUFFIXES = (
    ("crore", Decimal("10000000")),
    ("lakh", Decimal("100000")),
    ("cr", Decimal("10000000")),
    ("k", Decimal("1000")),
    ("l", Decimal("100000")),
    ("m", Decimal("1000000")),
)


def decimal_from_str(value: str, name: str = "value") -> Decimal:
    """Convert a numeric string into a ``Decimal``.

    The function strips any commas, spaces and a leading rupee sign, and
    handles both integer and float-like strings. It raises
    ``LoanValidationError`` if conversion fails or the value is not finite.
    """
    cleaned = str(value).replace(",", "").replace("₹", "").strip()
    try:
        result = Decimal(cleaned)
    except InvalidOperation as exc:
        raise LoanValidationError(f"Invalid numeric value for {name}: {value}", name) from exc
    if not result.is_finite():
        raise LoanValidationError(f"Invalid numeric value for {name}: {value}", name)
    return result


def parse_amount(value: str, name: str = "amount") -> Decimal:
    """Parse a monetary amount with optional suffixes.

    Accepts plain numbers ("500000", "5,00,000") and shorthand with
    ``k``/``m`` as well as the Indian ``l``/``lakh`` and ``cr``/``crore``
    suffixes (e.g. "12l" meaning 1,200,000).
    """
    text = str(value).strip().lower()
    factor = Decimal("1")
    for suffix, multiplier in AMOUNT_SUFFIXES:
        if text.endswith(suffix):
            factor = multiplier
            text = text[: -len(suffix)]
            break
    return decimal_from_str(text, name) * factor


def parse_percent(value: str, name: str = "rate") -> Decimal:
    """Parse a percentage string such as "8.5" or "8.5%" into ``Decimal("8.5")``."""
    text = str(value).strip()
    if text.endswith("%"):
        text = text[:-1]
    return decimal_from_str(text, name)


def parse_int(value: object, name: str) -> int:
    """Parse a whole number; "12" and "12.0" are accepted, "12.5" is not."""
    if isinstance(value, bool):
        raise LoanValidationError(f"{name} must be a whole number", name)
    if isinstance(value, int):
        return value
    number = decimal_from_str(str(value), name)
    if number != number.to_integral_value():
        raise LoanValidationError(f"{name} must be a whole number; got {value}", name)
    return int(number)


def check_range(name: str, value: Decimal, low: Optional[Decimal], high: Optional[Decimal]) -> Decimal:
    """Return ``value`` if it lies within ``[low, high]``; either bound may be ``None``."""
    if low is not None and value < low:
        raise LoanValidationError(f"{name} must be at least {low}; got {value}", name)
    if high is not None and value > high:
        raise LoanValidationError(f"{name} must be at most {high}; got {value}", name)
    return value
