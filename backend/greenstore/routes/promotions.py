from __future__ import annotations

from flask import Blueprint, jsonify, request, g

from ..decorators import require_auth, require_role
from ..models import DISCOUNT_TYPES, STACKING_RULES, TARGET_TYPES
from ..services import promotions_service
from ..services.settings_service import load_policy
from ..services.transactions import run_in_transaction
from ..validation import MAX_AMOUNT, MAX_QUANTITY, FieldRule, RequestPolicy, validate_payload

promotions_bp = Blueprint("promotions", __name__, url_prefix="/api/discounts")

DISCOUNT_POLICY = RequestPolicy(fields={
    "name": FieldRule("str", required=True, max_length=255),
    "type": FieldRule("str", required=True, choices=frozenset(DISCOUNT_TYPES)),
    "value": FieldRule("decimal", min_value=0, max_value=MAX_AMOUNT),
    "min_quantity": FieldRule("decimal", nullable=True, min_value=0, max_value=MAX_QUANTITY),
    "buy_quantity": FieldRule("int", nullable=True, min_value=1),
    "get_quantity": FieldRule("int", nullable=True, min_value=1),
    "target_type": FieldRule("str", choices=frozenset(TARGET_TYPES)),
    "target_value": FieldRule("str", nullable=True, max_length=64),
    "criteria": FieldRule("list", nullable=True),
    "days_of_week": FieldRule("list", nullable=True),
    "starts_at": FieldRule("str", nullable=True),
    "ends_at": FieldRule("str", nullable=True),
    "starts_time": FieldRule("str", nullable=True, max_length=8),
    "ends_time": FieldRule("str", nullable=True, max_length=8),
    "stacking_rule": FieldRule("str", choices=frozenset(STACKING_RULES)),
    "priority": FieldRule("int"),
    "active": FieldRule("bool"),
})


@promotions_bp.route("", methods=["GET"])
@require_auth
@require_role("manager")
def list_discounts():
    active_only = request.args.get("active_only", "false").lower() == "true"
    return jsonify({"discounts": promotions_service.list_discounts(active_only)})


@promotions_bp.route("", methods=["POST"])
@require_auth
@require_role("manager")
def create_discount():
    patch = validate_payload(payload=request.get_json(silent=True), policy=DISCOUNT_POLICY)
    policy = load_policy()
    discount = run_in_transaction(
        lambda: promotions_service.create_discount(patch, policy=policy, user_id=g.current_user.id),
        label="discount create",
    )
    return jsonify({"discount": discount.to_dict()}), 201


@promotions_bp.route("/<int:discount_id>", methods=["PUT"])
@require_auth
@require_role("manager")
def update_discount(discount_id: int):
    patch = validate_payload(payload=request.get_json(silent=True), policy=DISCOUNT_POLICY, partial=True)
    policy = load_policy()
    discount = run_in_transaction(
        lambda: promotions_service.update_discount(discount_id, patch, policy=policy, user_id=g.current_user.id),
        label="discount update",
    )
    return jsonify({"discount": discount.to_dict()})
