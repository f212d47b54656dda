# backend/greenstore/routes/pos.py
"""
Register-side actions that change no stock but must be attributed.

remove-item and cancel-sale always need an approval for their action;
discount-override needs one only at or above approval_threshold.
"""
from flask import Blueprint, request, g

from ..decorators import approval_token_from_request, require_auth
from ..services import pos_service
from ..services.settings_service import load_policy
from ..validation import MAX_AMOUNT, FieldRule, RequestPolicy, validate_payload


pos_bp = Blueprint("pos", __name__, url_prefix="/api/pos")

REMOVE_ITEM_POLICY = RequestPolicy(fields={
    "item": FieldRule("str", required=True, max_length=255),
    "reason": FieldRule("str", required=True, max_length=500),
})

CANCEL_SALE_POLICY = RequestPolicy(fields={
    "reason": FieldRule("str", required=True, max_length=500),
    "items": FieldRule("int", min_value=0),
})

DISCOUNT_OVERRIDE_POLICY = RequestPolicy(fields={
    "amount": FieldRule("decimal", required=True, min_value=0, max_value=MAX_AMOUNT),
    "subtotal": FieldRule("decimal", min_value=0, max_value=MAX_AMOUNT),
    "reason": FieldRule("str", required=True, max_length=500),
})


@pos_bp.post("/remove-item")
@require_auth
def remove_item_route():
    patch = validate_payload(payload=request.get_json(silent=True), policy=REMOVE_ITEM_POLICY)
    result = pos_service.remove_item(
        item=patch["item"],
        reason=patch["reason"],
        performed_by=g.current_user.id,
        approval_token=approval_token_from_request(),
    )
    return result, 200


@pos_bp.post("/cancel-sale")
@require_auth
def cancel_sale_route():
    patch = validate_payload(payload=request.get_json(silent=True), policy=CANCEL_SALE_POLICY)
    result = pos_service.cancel_sale(
        reason=patch["reason"],
        items=patch.get("items", 0),
        performed_by=g.current_user.id,
        approval_token=approval_token_from_request(),
    )
    return result, 200


@pos_bp.post("/discount-override")
@require_auth
def discount_override_route():
    patch = validate_payload(payload=request.get_json(silent=True), policy=DISCOUNT_OVERRIDE_POLICY)
    result = pos_service.discount_override(
        amount=patch["amount"],
        subtotal=patch.get("subtotal", 0),
        reason=patch["reason"],
        performed_by=g.current_user.id,
        policy=load_policy(),
        approval_token=approval_token_from_request(),
    )
    return result, 200
