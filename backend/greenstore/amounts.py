# Overview: Decimal helpers for money and stock quantities.

from __future__ import annotations

from decimal import Decimal, ROUND_HALF_UP

MONEY_PLACES = Decimal("0.01")
QUANTITY_PLACES = Decimal("0.001")


def to_decimal(value) -> Decimal:
    if value is None:
        return Decimal("0")
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        return Decimal(str(value))
    return Decimal(value)


def quantize_money(value) -> Decimal:
    """Nearest-cent rounding (half-up)."""
    return to_decimal(value).quantize(MONEY_PLACES, rounding=ROUND_HALF_UP)


def quantize_quantity(value) -> Decimal:
    return to_decimal(value).quantize(QUANTITY_PLACES, rounding=ROUND_HALF_UP)


def money_str(value) -> str | None:
    if value is None:
        return None
    return str(quantize_money(value))


def quantity_str(value) -> str | None:
    """Quantities serialize without trailing zeros: 7.000 -> "7", 1.250 -> "1.25"."""
    if value is None:
        return None
    q = quantize_quantity(value)
    if q == 0:
        # SQLite's round() can hand back -0.0
        return "0"
    if q == q.to_integral_value():
        return str(q.to_integral_value())
    return format(q.normalize(), "f")
