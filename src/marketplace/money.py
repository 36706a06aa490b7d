"""Decimal helpers for monetary amounts.

Amounts are stored as floats on the aggregates; all arithmetic that feeds
bookkeeping goes through Decimal with half-up rounding.
"""

from decimal import ROUND_HALF_UP, Decimal

_CENT = Decimal("0.01")


def to_decimal(value) -> Decimal:
    return Decimal(str(value or 0))


def round_money(value) -> float:
    """Round to 2 decimal places, half up."""
    return float(to_decimal(value).quantize(_CENT, rounding=ROUND_HALF_UP))


def to_minor_units(value) -> int:
    """Convert a major-unit amount into integer minor units (value × 100)."""
    return int((to_decimal(value) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def amounts_equal(a, b) -> bool:
    return to_decimal(round_money(a)) == to_decimal(round_money(b))
