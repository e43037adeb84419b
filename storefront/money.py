"""
Money helpers.

All amounts are integer cents. Rounding is half-up (2.5 -> 3, -2.5 -> -2),
matching what the storefront client shows customers, not Python's
round-half-even.
"""

import math
from typing import Any


def round_cents(value: float) -> int:
    """Round a fractional cent amount half-up to a whole cent."""
    return int(math.floor(value + 0.5))


def _as_number(value: Any) -> float:
    if value is None or isinstance(value, bool):
        return 0.0
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0.0
    if not math.isfinite(number):
        return 0.0
    return number


def clamp_cents(value: Any) -> int:
    """Coerce a monetary input to non-negative whole cents (garbage -> 0)."""
    return max(0, round_cents(_as_number(value)))


def clamp_rate(value: Any) -> float:
    """Coerce a rate/percentage input to a non-negative float (garbage -> 0.0)."""
    return max(0.0, _as_number(value))


def clamp_quantity(value: Any) -> float:
    """Coerce a quantity to a non-negative float (garbage -> 0.0)."""
    return max(0.0, _as_number(value))


def format_cents(cents: int) -> str:
    """Format cents for display, e.g. 1234 -> "$12.34"."""
    sign = "-" if cents < 0 else ""
    return f"{sign}${abs(cents) / 100:,.2f}"
