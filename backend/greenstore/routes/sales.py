# Overview: Flask API routes for sales; parses input and returns JSON responses.

# backend/greenstore/routes/sales.py
"""Sales API routes. Any authenticated user may sell."""

from flask import Blueprint, request, g

from ..decorators import require_auth
from ..services import sales_service
from ..services.settings_service import load_policy
from ..amounts import money_str
from ..validation import MAX_QUANTITY, FieldRule, RequestPolicy, validate_payload


sales_bp = Blueprint("sales", __name__, url_prefix="/api/sales")

SALE_POLICY = RequestPolicy(fields={
    "product_id": FieldRule("int", required=True, min_value=1),
    "quantity": FieldRule("decimal", required=True, min_value=0, max_value=MAX_QUANTITY, nonzero=True),
    "payment_method": FieldRule("str", required=True, max_length=32),
    "discount_id": FieldRule("int", nullable=True, min_value=1),
})


@sales_bp.post("")
@require_auth
def create_sale_route():
    """
    Record a one-line sale.

    Money fields (total, discount_amount, final_total) are decimal strings
    with two places, e.g. "15.00", never JSON numbers.

    Errors:
    - 404 product not found
    - 400 insufficient stock / invalid discount
    - 403 discount over the max_discount ceiling
    """
    patch = validate_payload(payload=request.get_json(silent=True), policy=SALE_POLICY)

    ctx = sales_service.record_sale(
        product_id=patch["product_id"],
        quantity=patch["quantity"],
        payment_method=patch["payment_method"],
        sold_by=g.current_user.id,
        policy=load_policy(),
        discount_id=patch.get("discount_id"),
    )

    return {
        "id": ctx.sale.id,
        "total": money_str(ctx.total),
        "discount_amount": money_str(ctx.discount_amount),
        "final_total": money_str(ctx.final_total),
    }, 201


@sales_bp.get("/<int:sale_id>")
@require_auth
def get_sale_route(sale_id: int):
    sale = sales_service.get_sale(sale_id)
    return {"sale": sale.to_dict()}, 200
