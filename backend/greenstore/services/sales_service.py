"""
Sales pipeline - one line-item sale under a single transaction.

validate product -> check stock -> (discount_id) load & validate discount ->
compute discount -> check ceiling -> deduct stock + movement -> persist sale

The ceiling check runs after the calculator because max_discount is a percent
of the line subtotal and needs the computed amount. Any step that rejects rolls
back every earlier write, so a rejected sale leaves stock and sales untouched.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from zoneinfo import ZoneInfo

from flask import current_app

from ..extensions import db
from ..errors import BusinessRuleError, NotFoundError
from ..models import Discount, Product, Sale, StockMovement
from ..amounts import quantize_money, to_decimal
from ..time_utils import utcnow
from .discount_calculator import (
    compute_discount_amount,
    discount_percent,
    is_within_schedule,
    targets_product,
)
from .settings_service import PolicySettings
from .stock_service import INSUFFICIENT_STOCK, check_quantity_for_unit, deduct_for_sale, load_product
from .transactions import run_pipeline


SALE_MOVEMENT_REASON = "POS sale"


def store_local_now(now_utc: datetime) -> datetime:
    tz = ZoneInfo(current_app.config.get("STORE_TIMEZONE") or "UTC")
    return now_utc.replace(tzinfo=ZoneInfo("UTC")).astimezone(tz).replace(tzinfo=None)


@dataclass
class SaleContext:
    product_id: int
    quantity: Decimal
    payment_method: str
    sold_by: int
    discount_id: int | None = None
    policy: PolicySettings = field(default_factory=PolicySettings)
    now_utc: datetime = field(default_factory=utcnow)

    product: Product | None = None
    discount: Discount | None = None
    total: Decimal = Decimal("0.00")
    discount_amount: Decimal = Decimal("0.00")
    final_total: Decimal = Decimal("0.00")
    movement: StockMovement | None = None
    sale: Sale | None = None


def _load_product(ctx: SaleContext) -> None:
    ctx.product = load_product(ctx.product_id, lock=True)
    ctx.quantity = check_quantity_for_unit(ctx.product, ctx.quantity)
    ctx.total = quantize_money(to_decimal(ctx.product.price) * ctx.quantity)


def _check_stock(ctx: SaleContext) -> None:
    if to_decimal(ctx.product.current_stock) < ctx.quantity:
        raise BusinessRuleError(
            INSUFFICIENT_STOCK,
            details={
                "product_id": ctx.product.id,
                "requested_quantity": str(ctx.quantity),
                "current_stock": str(ctx.product.current_stock),
            },
        )


def _resolve_discount(ctx: SaleContext) -> None:
    if ctx.discount_id is None:
        return
    discount = db.session.get(Discount, ctx.discount_id)
    if discount is None or not discount.active:
        raise BusinessRuleError("Invalid discount")
    if not is_within_schedule(discount, now_utc=ctx.now_utc, now_local=store_local_now(ctx.now_utc)):
        raise BusinessRuleError("Invalid discount", details={"reason": "outside_schedule"})
    if not targets_product(discount, ctx.product):
        raise BusinessRuleError("Invalid discount", details={"reason": "not_applicable"})
    ctx.discount = discount


def _compute_discount(ctx: SaleContext) -> None:
    ctx.discount_amount = compute_discount_amount(
        ctx.discount,
        ctx.quantity,
        ctx.product.price,
        ctx.total,
    )
    ctx.final_total = quantize_money(max(ctx.total - ctx.discount_amount, Decimal("0")))


def _check_discount_ceiling(ctx: SaleContext) -> None:
    ceiling = ctx.policy.max_discount
    if ceiling is None or ctx.discount is None:
        return
    percent = discount_percent(ctx.discount_amount, ctx.total)
    if percent > ceiling:
        raise BusinessRuleError(
            "Discount exceeds the allowed limit",
            status=403,
            details={"percent": str(percent.quantize(Decimal("0.01"))), "max_discount": str(ceiling)},
        )


def _deduct_stock(ctx: SaleContext) -> None:
    ctx.movement = deduct_for_sale(
        ctx.product,
        ctx.quantity,
        performed_by=ctx.sold_by,
        reason=SALE_MOVEMENT_REASON,
    )


def _persist_sale(ctx: SaleContext) -> None:
    ctx.sale = Sale(
        product_id=ctx.product.id,
        quantity=ctx.quantity,
        total=ctx.total,
        discount_id=ctx.discount.id if ctx.discount else None,
        discount_amount=ctx.discount_amount,
        final_total=ctx.final_total,
        payment_method=ctx.payment_method,
        sold_by_user_id=ctx.sold_by,
    )
    db.session.add(ctx.sale)
    db.session.flush()


SALE_STEPS = (
    _load_product,
    _check_stock,
    _resolve_discount,
    _compute_discount,
    _check_discount_ceiling,
    _deduct_stock,
    _persist_sale,
)


def record_sale(
    *,
    product_id: int,
    quantity,
    payment_method: str,
    sold_by: int,
    policy: PolicySettings,
    discount_id: int | None = None,
) -> SaleContext:
    """Record one sale line atomically. Returns the finished context."""
    ctx = SaleContext(
        product_id=product_id,
        quantity=to_decimal(quantity),
        payment_method=payment_method,
        sold_by=sold_by,
        discount_id=discount_id,
        policy=policy,
    )
    return run_pipeline(SALE_STEPS, ctx, label="sale")


def get_sale(sale_id: int) -> Sale:
    sale = db.session.get(Sale, sale_id)
    if sale is None:
        raise NotFoundError("Sale not found")
    return sale
