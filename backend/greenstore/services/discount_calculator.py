# Overview: Pure discount arithmetic and applicability checks.

"""
Discount calculator.

compute_discount_amount() is a pure function of its inputs: no DB access, no
settings, no clock. Policy ceilings are applied by callers.

Discount arguments may be a Discount model or any mapping/object exposing
type, value, min_quantity, buy_quantity and get_quantity.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal, ROUND_FLOOR

from ..amounts import quantize_money, to_decimal
from ..time_utils import as_utc_naive, parse_time_of_day


ZERO = Decimal("0")


def _field(discount, name):
    if isinstance(discount, dict):
        return discount.get(name)
    return getattr(discount, name, None)


def _raw_amount(discount, quantity: Decimal, unit_price: Decimal, subtotal: Decimal) -> Decimal:
    kind = _field(discount, "type")
    value = to_decimal(_field(discount, "value"))

    if kind == "percent":
        return subtotal * value / Decimal(100)

    if kind == "fixed":
        return value

    if kind == "buy_x_get_y":
        buy_qty = to_decimal(_field(discount, "buy_quantity"))
        get_qty = to_decimal(_field(discount, "get_quantity"))
        if buy_qty > 0 and quantity >= buy_qty:
            return unit_price * get_qty
        return ZERO

    if kind == "fixed_bundle":
        bundle_qty = to_decimal(_field(discount, "buy_quantity"))
        if bundle_qty > 0 and value >= 0:
            bundles = (quantity / bundle_qty).to_integral_value(rounding=ROUND_FLOOR)
            remainder = quantity - bundles * bundle_qty
            return subtotal - (bundles * value + remainder * unit_price)
        return ZERO

    return ZERO


def compute_discount_amount(discount, quantity, unit_price, subtotal) -> Decimal:
    """
    Discount for one sale line, clamped to [0, subtotal] and rounded to cents.

    percent       subtotal * value / 100
    fixed         value
    buy_x_get_y   unit_price * get_quantity once quantity >= buy_quantity
    fixed_bundle  subtotal - (bundles * value + remainder * unit_price)

    A quantity below min_quantity (when set) yields zero for every type.
    """
    if discount is None:
        return quantize_money(ZERO)

    quantity = to_decimal(quantity)
    unit_price = to_decimal(unit_price)
    subtotal = to_decimal(subtotal)

    amount = _raw_amount(discount, quantity, unit_price, subtotal)

    min_quantity = _field(discount, "min_quantity")
    if min_quantity and quantity < to_decimal(min_quantity):
        amount = ZERO

    amount = max(amount, ZERO)
    amount = min(amount, max(subtotal, ZERO))
    return quantize_money(amount)


def discount_percent(amount, subtotal) -> Decimal:
    """Discount as a percent of subtotal; 0 when the subtotal is not positive."""
    subtotal = to_decimal(subtotal)
    if subtotal <= 0:
        return ZERO
    return to_decimal(amount) / subtotal * Decimal(100)


def is_within_schedule(discount, *, now_utc: datetime, now_local: datetime) -> bool:
    """
    Activation window check.

    starts_at/ends_at are UTC instants (inclusive). days_of_week uses 0=Monday
    and, like starts_time/ends_time ("HH:MM"), is evaluated in store-local
    time. A time window whose start is after its end wraps past midnight.
    """
    starts_at = as_utc_naive(_field(discount, "starts_at"))
    ends_at = as_utc_naive(_field(discount, "ends_at"))
    if starts_at is not None and now_utc < starts_at:
        return False
    if ends_at is not None and now_utc > ends_at:
        return False

    days = _field(discount, "days_of_week")
    if days:
        if now_local.weekday() not in {int(d) for d in days}:
            return False

    start_time = parse_time_of_day(_field(discount, "starts_time"))
    end_time = parse_time_of_day(_field(discount, "ends_time"))
    current = now_local.time()
    if start_time and end_time:
        if start_time <= end_time:
            return start_time <= current <= end_time
        return current >= start_time or current <= end_time
    if start_time and current < start_time:
        return False
    if end_time and current > end_time:
        return False
    return True


def targets_product(discount, product) -> bool:
    """Whether the discount's targeting covers this product."""
    target_type = _field(discount, "target_type") or "all"
    target_value = _field(discount, "target_value")

    if target_type == "all":
        return True
    if target_type == "product":
        return target_value is not None and str(target_value) == str(product.id)
    if target_type == "category":
        return (
            target_value is not None
            and product.category_id is not None
            and str(target_value) == str(product.category_id)
        )
    if target_type == "combo":
        criteria = _field(discount, "criteria") or []
        return str(product.id) in {str(c) for c in criteria}
    return False
