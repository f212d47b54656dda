# Overview: Stock ledger operations and the stock-operation policy gate.

"""
Stock ledger invariants (authoritative)

- Product.current_stock is a denormalized cache of the product's movement
  deltas. It is written only here, and only together with the StockMovement
  that explains the change, inside one transaction.
- current_stock never goes below zero. Every write is a compare-and-set:
      UPDATE products SET current_stock = round(current_stock + :delta, 3)
      WHERE id = :id AND round(current_stock + :delta, 3) >= 0
  so a concurrent writer that got there first turns our write into a
  rejection instead of a negative balance. The product row is also read
  FOR UPDATE where the database honors it.
- Movements are immutable: created once, never updated or deleted.

Policy gate:
- Adjustments and losses whose money value (|delta| * price, quantity * price)
  exceeds the configured ceiling need an approval for the matching action.
  The approval is consumed inside the same transaction as the mutation.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import Any

import sqlalchemy as sa
from sqlalchemy import func

from ..extensions import db
from ..errors import BusinessRuleError, NotFoundError, ValidationError
from ..models import Approval, Product, StockLoss, StockMovement
from ..amounts import quantity_str, quantize_quantity, to_decimal
from .approval_service import verify_and_consume
from .audit_service import log_audit
from .settings_service import PolicySettings
from .transactions import lock_for_update, run_pipeline


INSUFFICIENT_STOCK = "Insufficient stock"
NEGATIVE_STOCK = "Stock cannot go negative"

DEFAULT_LIST_LIMIT = 50
MAX_LIST_LIMIT = 200


def load_product(product_id: int, *, lock: bool = False) -> Product:
    query = db.session.query(Product).filter_by(id=product_id)
    if lock:
        query = lock_for_update(query)
    product = query.first()
    if product is None:
        raise NotFoundError("Product not found")
    return product


def check_quantity_for_unit(product: Product, quantity, *, field_name: str = "quantity") -> Decimal:
    """Normalize a quantity; "unit" products only move in whole units."""
    quantity = to_decimal(quantity)
    try:
        quantized = quantize_quantity(quantity)
    except InvalidOperation:
        raise ValidationError([{"field": field_name, "message": "is out of range"}])
    if quantity != quantity.to_integral_value() and not product.allows_fractional:
        raise ValidationError(
            [{"field": field_name, "message": f"must be a whole number for unit type '{product.unit_type}'"}]
        )
    if quantized != quantity:
        raise ValidationError([{"field": field_name, "message": "supports at most 3 decimal places"}])
    return quantity


def apply_stock_delta(
    product: Product,
    delta: Decimal,
    *,
    movement_type: str,
    reason: str | None,
    performed_by: int | None,
    rejection_message: str = NEGATIVE_STOCK,
) -> StockMovement:
    """
    Read-check-write-log for one product. Runs inside the caller's transaction.

    Raises BusinessRuleError (400) if the result would be negative, either at
    the read or at the compare-and-set write.
    """
    delta = to_decimal(delta)
    if to_decimal(product.current_stock) + delta < 0:
        raise BusinessRuleError(rejection_message)

    result = db.session.execute(
        sa.update(Product)
        .where(Product.id == product.id, func.round(Product.current_stock + delta, 3) >= 0)
        .values(current_stock=func.round(Product.current_stock + delta, 3))
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        # Stock changed under us after the read; the write would go negative
        raise BusinessRuleError(rejection_message)
    db.session.refresh(product)

    movement = StockMovement(
        product_id=product.id,
        type=movement_type,
        delta=delta,
        reason=reason,
        performed_by_user_id=performed_by,
    )
    db.session.add(movement)
    db.session.flush()
    return movement


def deduct_for_sale(product: Product, quantity, *, performed_by: int, reason: str = "POS sale") -> StockMovement:
    """Sale deduction: requires current_stock >= quantity; appends a negative 'sale' movement."""
    return apply_stock_delta(
        product,
        -to_decimal(quantity),
        movement_type="sale",
        reason=reason,
        performed_by=performed_by,
        rejection_message=INSUFFICIENT_STOCK,
    )


def requires_approval(value: Decimal, ceiling: Decimal | None) -> bool:
    """A change needs approval when a ceiling is configured and value exceeds it."""
    return ceiling is not None and value > ceiling


def gate_stock_change(
    *,
    value: Decimal,
    ceiling: Decimal | None,
    action: str,
    approval_token: str | None,
) -> Approval | None:
    """Policy gate: breach -> consume an approval for action; otherwise pass."""
    if not requires_approval(value, ceiling):
        return None
    return verify_and_consume(approval_token, action)


@dataclass
class StockOperation:
    """Shared state threaded through a stock pipeline's steps."""
    product_id: int
    quantity: Decimal
    reason: str
    performed_by: int
    policy: PolicySettings = field(default_factory=PolicySettings)
    approval_token: str | None = None
    movement_type: str = "adjustment"

    product: Product | None = None
    approval: Approval | None = None
    movement: StockMovement | None = None
    loss: StockLoss | None = None

    @property
    def approved_by(self) -> int | None:
        return self.approval.approved_by_user_id if self.approval else None

    def to_result(self) -> dict[str, Any]:
        return {
            "id": self.movement.id if self.movement else None,
            "product_id": self.product_id,
            "current_stock": quantity_str(self.product.current_stock) if self.product else None,
            "movement": self.movement.to_dict() if self.movement else None,
            "loss": self.loss.to_dict() if self.loss else None,
            "approved_by": self.approved_by,
        }


def _load_locked(op: StockOperation) -> None:
    op.product = load_product(op.product_id, lock=True)
    op.quantity = check_quantity_for_unit(
        op.product, op.quantity, field_name="delta" if op.movement_type == "adjustment" else "quantity"
    )


# -- loss ---------------------------------------------------------------------

def _gate_loss(op: StockOperation) -> None:
    value = op.quantity * to_decimal(op.product.price)
    op.approval = gate_stock_change(
        value=value,
        ceiling=op.policy.max_losses,
        action="stock_loss",
        approval_token=op.approval_token,
    )


def _apply_loss(op: StockOperation) -> None:
    op.movement = apply_stock_delta(
        op.product,
        -op.quantity,
        movement_type="loss",
        reason=op.reason,
        performed_by=op.performed_by,
        rejection_message=INSUFFICIENT_STOCK,
    )
    op.loss = StockLoss(
        product_id=op.product.id,
        quantity=op.quantity,
        reason=op.reason,
        reported_by_user_id=op.performed_by,
    )
    db.session.add(op.loss)
    db.session.flush()


def _audit_loss(op: StockOperation) -> None:
    log_audit(
        action="stock_loss",
        details={"product_id": op.product_id, "quantity": op.quantity, "reason": op.reason},
        performed_by=op.performed_by,
        approved_by=op.approved_by,
    )


def record_loss(
    *,
    product_id: int,
    quantity,
    reason: str,
    performed_by: int,
    policy: PolicySettings,
    approval_token: str | None = None,
) -> StockOperation:
    """
    Register shrinkage: deduct stock, append a 'loss' movement and a loss record.

    Requires a stock_loss approval when quantity * price exceeds max_losses.
    """
    op = StockOperation(
        product_id=product_id,
        quantity=to_decimal(quantity),
        reason=reason,
        performed_by=performed_by,
        policy=policy,
        approval_token=approval_token,
        movement_type="loss",
    )
    return run_pipeline([_load_locked, _gate_loss, _apply_loss, _audit_loss], op, label="stock loss")


# -- adjustment ---------------------------------------------------------------

def _gate_adjustment(op: StockOperation) -> None:
    value = abs(op.quantity) * to_decimal(op.product.price)
    op.approval = gate_stock_change(
        value=value,
        ceiling=op.policy.max_stock_adjust,
        action="stock_adjust",
        approval_token=op.approval_token,
    )


def _apply_adjustment(op: StockOperation) -> None:
    op.movement = apply_stock_delta(
        op.product,
        op.quantity,
        movement_type="adjustment",
        reason=op.reason,
        performed_by=op.performed_by,
    )


def _audit_adjustment(op: StockOperation) -> None:
    log_audit(
        action="stock_adjust",
        details={"product_id": op.product_id, "delta": op.quantity, "reason": op.reason},
        performed_by=op.performed_by,
        approved_by=op.approved_by,
    )


def adjust_stock(
    *,
    product_id: int,
    delta,
    reason: str,
    performed_by: int,
    policy: PolicySettings,
    approval_token: str | None = None,
) -> StockOperation:
    """
    Correct a count by a signed delta (positive for undercounts).

    Requires a stock_adjust approval when |delta| * price exceeds max_stock_adjust.
    """
    delta = to_decimal(delta)
    if delta == 0:
        raise ValidationError([{"field": "delta", "message": "must be non-zero"}])
    op = StockOperation(
        product_id=product_id,
        quantity=delta,
        reason=reason,
        performed_by=performed_by,
        policy=policy,
        approval_token=approval_token,
        movement_type="adjustment",
    )
    return run_pipeline(
        [_load_locked, _gate_adjustment, _apply_adjustment, _audit_adjustment],
        op,
        label="stock adjustment",
    )


# -- inbound / outbound -------------------------------------------------------

def _apply_move(op: StockOperation) -> None:
    delta = op.quantity if op.movement_type == "inbound" else -op.quantity
    op.movement = apply_stock_delta(
        op.product,
        delta,
        movement_type=op.movement_type,
        reason=op.reason,
        performed_by=op.performed_by,
    )


def _audit_move(op: StockOperation) -> None:
    log_audit(
        action="stock_move",
        details={
            "product_id": op.product_id,
            "quantity": op.quantity,
            "type": op.movement_type,
            "reason": op.reason,
        },
        performed_by=op.performed_by,
    )


def move_stock(*, product_id: int, quantity, movement_type: str, reason: str, performed_by: int) -> StockOperation:
    """Explicit receiving (inbound, +quantity) or dispatch (outbound, -quantity)."""
    if movement_type not in ("inbound", "outbound"):
        raise ValidationError([{"field": "type", "message": "must be one of: inbound, outbound"}])
    op = StockOperation(
        product_id=product_id,
        quantity=to_decimal(quantity),
        reason=reason,
        performed_by=performed_by,
        movement_type=movement_type,
    )
    return run_pipeline([_load_locked, _apply_move, _audit_move], op, label=f"stock {movement_type}")


# -- reads --------------------------------------------------------------------

def clamp_limit(raw, default: int = DEFAULT_LIST_LIMIT) -> int:
    try:
        limit = int(raw) if raw is not None else default
    except (TypeError, ValueError):
        return default
    return min(max(limit, 1), MAX_LIST_LIMIT)


def list_movements(*, product_id: int | None = None, limit=None) -> list[StockMovement]:
    q = db.session.query(StockMovement)
    if product_id is not None:
        q = q.filter(StockMovement.product_id == product_id)
    q = q.order_by(StockMovement.created_at.desc(), StockMovement.id.desc())
    return q.limit(clamp_limit(limit)).all()


def list_losses(*, limit=None) -> list[StockLoss]:
    q = db.session.query(StockLoss).order_by(StockLoss.created_at.desc(), StockLoss.id.desc())
    return q.limit(clamp_limit(limit)).all()


def list_restock_suggestions() -> list[Product]:
    """Active products at or below their min_stock, lowest stock first."""
    return (
        db.session.query(Product)
        .filter(Product.is_active.is_(True), Product.current_stock <= Product.min_stock)
        .order_by(Product.current_stock.asc(), Product.id.asc())
        .all()
    )


def reconcile_stock(product_id: int) -> dict:
    """
    Compare the cached current_stock with the sum of the product's movements.

    Diagnostic only; nothing is corrected. Stock loaded outside the ledger
    (e.g. opening balances set by catalog imports) shows up as drift.
    """
    product = load_product(product_id)
    ledger_sum = db.session.query(
        func.coalesce(func.sum(StockMovement.delta), 0)
    ).filter(StockMovement.product_id == product_id).scalar()

    current = to_decimal(product.current_stock)
    # SQLite sums NUMERIC as floats
    ledger = quantize_quantity(ledger_sum)
    return {
        "product_id": product_id,
        "current_stock": current,
        "ledger_sum": ledger,
        "drift": current - ledger,
    }
