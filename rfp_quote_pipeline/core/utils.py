"""
Utility functions and constants for RFP processing.
"""

import re
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Optional, Set

# Pattern constants
TOKEN_PATTERN = re.compile(r"[a-z0-9]+")

CENTS = Decimal("0.01")


def tokenize(text: Optional[str]) -> Set[str]:
    """Split text into a set of lower-case ASCII alphanumeric tokens."""
    if not text:
        return set()
    return set(TOKEN_PATTERN.findall(text.lower()))


def to_decimal(value, default: Optional[Decimal] = None) -> Optional[Decimal]:
    """Coerce a number or numeric string (e.g. "$1,234.50") to Decimal."""
    if value is None or isinstance(value, bool):
        return default
    if isinstance(value, Decimal):
        d = value
    elif isinstance(value, (int, float)):
        d = Decimal(str(value))
    else:
        s = str(value).strip().replace(",", "").replace("$", "")
        if not s:
            return default
        try:
            d = Decimal(s)
        except InvalidOperation:
            return default
    if not d.is_finite():
        return default
    return d


def round_money(value: Decimal) -> Decimal:
    """Half-up rounding to 2 decimal places."""
    return value.quantize(CENTS, rounding=ROUND_HALF_UP)


def coerce_quantity(value) -> Decimal:
    """
    Quantity used for pricing.

    Missing, non-numeric and non-positive values count as "not provided"
    and default to 1.
    """
    q = to_decimal(value)
    if q is None or q <= 0:
        return Decimal(1)
    return q


def money_fmt(v: Optional[Decimal]) -> str:
    """Format amount as currency."""
    return f"${v:,.2f}" if v is not None else ""
