# backend/greenstore/routes/inventory.py
"""
Stock ledger routes.

SECURITY: All routes require authentication.
- adjust / loss require supervisor or above, plus an approval token in
  X-Approval-Token when the change's value exceeds the configured ceiling
- move (receiving / dispatch) is open to any authenticated user
- restock-suggestions lists active products at or below min_stock
- reads return newest first; limit is clamped to [1, 200]

Quantities are returned as strings ("7", "1.25").
"""
from flask import Blueprint, request, g

from ..decorators import approval_token_from_request, require_auth, require_role
from ..services import stock_service
from ..services.settings_service import load_policy
from ..validation import MAX_QUANTITY, FieldRule, RequestPolicy, validate_payload


inventory_bp = Blueprint("inventory", __name__, url_prefix="/api/stock")

STOCK_ADJUST_POLICY = RequestPolicy(fields={
    "product_id": FieldRule("int", required=True, min_value=1),
    "delta": FieldRule("decimal", required=True, min_value=-MAX_QUANTITY, max_value=MAX_QUANTITY, nonzero=True),
    "reason": FieldRule("str", required=True, max_length=500),
})

STOCK_LOSS_POLICY = RequestPolicy(fields={
    "product_id": FieldRule("int", required=True, min_value=1),
    "quantity": FieldRule("decimal", required=True, min_value=0, max_value=MAX_QUANTITY, nonzero=True),
    "reason": FieldRule("str", required=True, max_length=500),
})

STOCK_MOVE_POLICY = RequestPolicy(fields={
    "product_id": FieldRule("int", required=True, min_value=1),
    "quantity": FieldRule("decimal", required=True, min_value=0, max_value=MAX_QUANTITY, nonzero=True),
    "type": FieldRule("str", required=True, choices=frozenset({"inbound", "outbound"})),
    "reason": FieldRule("str", max_length=500),
})


@inventory_bp.post("/adjust")
@require_auth
@require_role("supervisor")
def adjust_stock_route():
    """
    Correct a stock count by a signed delta.

    Needs a stock_adjust approval when |delta| * price exceeds max_stock_adjust.
    """
    patch = validate_payload(payload=request.get_json(silent=True), policy=STOCK_ADJUST_POLICY)

    op = stock_service.adjust_stock(
        product_id=patch["product_id"],
        delta=patch["delta"],
        reason=patch["reason"],
        performed_by=g.current_user.id,
        policy=load_policy(),
        approval_token=approval_token_from_request(),
    )
    return op.to_result(), 201


@inventory_bp.post("/loss")
@require_auth
@require_role("supervisor")
def record_loss_route():
    """
    Register shrinkage (damage, theft, expiry).

    Needs a stock_loss approval when quantity * price exceeds max_losses.
    """
    patch = validate_payload(payload=request.get_json(silent=True), policy=STOCK_LOSS_POLICY)

    op = stock_service.record_loss(
        product_id=patch["product_id"],
        quantity=patch["quantity"],
        reason=patch["reason"],
        performed_by=g.current_user.id,
        policy=load_policy(),
        approval_token=approval_token_from_request(),
    )
    return op.to_result(), 201


@inventory_bp.post("/move")
@require_auth
def move_stock_route():
    patch = validate_payload(payload=request.get_json(silent=True), policy=STOCK_MOVE_POLICY)

    op = stock_service.move_stock(
        product_id=patch["product_id"],
        quantity=patch["quantity"],
        movement_type=patch["type"],
        reason=patch.get("reason") or "",
        performed_by=g.current_user.id,
    )
    return op.to_result(), 201


@inventory_bp.get("/movements")
@require_auth
def list_movements_route():
    product_id = request.args.get("product_id", type=int)
    movements = stock_service.list_movements(product_id=product_id, limit=request.args.get("limit"))
    return {"movements": [m.to_dict() for m in movements]}, 200


@inventory_bp.get("/loss")
@require_auth
def list_losses_route():
    losses = stock_service.list_losses(limit=request.args.get("limit"))
    return {"losses": [loss.to_dict() for loss in losses]}, 200


@inventory_bp.get("/restock-suggestions")
@require_auth
def restock_suggestions_route():
    products = stock_service.list_restock_suggestions()
    return {"products": [p.to_dict() for p in products]}, 200
