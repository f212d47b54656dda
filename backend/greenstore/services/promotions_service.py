from __future__ import annotations

from ..extensions import db
from ..errors import ForbiddenError, NotFoundError, ValidationError
from ..models import Discount
from ..amounts import to_decimal
from ..time_utils import parse_iso_datetime, parse_time_of_day
from .audit_service import log_audit
from .settings_service import PolicySettings


EDITABLE_FIELDS = (
    'name', 'type', 'value', 'min_quantity', 'buy_quantity', 'get_quantity',
    'target_type', 'target_value', 'criteria', 'days_of_week', 'starts_at', 'ends_at',
    'starts_time', 'ends_time', 'stacking_rule', 'priority', 'active',
)


def list_discounts(active_only: bool = False) -> list[dict]:
    q = db.session.query(Discount)
    if active_only:
        q = q.filter_by(active=True)
    return [d.to_dict() for d in q.order_by(Discount.created_at.desc(), Discount.id.desc()).all()]


def _normalize(data: dict) -> dict:
    data = dict(data)
    errors = []
    for key in ('starts_at', 'ends_at'):
        if isinstance(data.get(key), str):
            try:
                data[key] = parse_iso_datetime(data[key])
            except ValueError:
                errors.append({"field": key, "message": "must be an ISO-8601 datetime"})
    for key in ('starts_time', 'ends_time'):
        if data.get(key):
            try:
                parse_time_of_day(data[key])
            except ValueError:
                errors.append({"field": key, "message": "must be HH:MM"})
    days = data.get('days_of_week')
    if days is not None and any(not isinstance(d, int) or isinstance(d, bool) or not 0 <= d <= 6 for d in days):
        errors.append({"field": "days_of_week", "message": "must contain weekdays 0-6 (0 = Monday)"})
    if data.get('target_value') is not None:
        data['target_value'] = str(data['target_value'])
    if errors:
        raise ValidationError(errors)
    return data


def _enforce_rules(discount: Discount, policy: PolicySettings) -> None:
    if discount.type == "fixed_bundle" and (not discount.buy_quantity or not discount.value):
        raise ValidationError([
            {"field": "buy_quantity", "message": "bundle quantity and bundle price are required"},
        ])
    if discount.type == "buy_x_get_y" and (not discount.buy_quantity or not discount.get_quantity):
        raise ValidationError([
            {"field": "buy_quantity", "message": "buy and get quantities are required"},
        ])
    if discount.target_type in ("product", "category") and not discount.target_value:
        raise ValidationError([{"field": "target_value", "message": "is required for this target type"}])
    if (
        discount.type == "percent"
        and policy.max_discount is not None
        and to_decimal(discount.value) > policy.max_discount
    ):
        raise ForbiddenError("Discount exceeds the allowed limit")


def create_discount(data: dict, *, policy: PolicySettings, user_id: int) -> Discount:
    """Create a discount rule. Caller commits."""
    data = _normalize(data)
    discount = Discount(created_by_user_id=user_id)
    for key in EDITABLE_FIELDS:
        if key in data and data[key] is not None:
            setattr(discount, key, data[key])
    if discount.value is None:
        discount.value = 0
    if discount.target_type is None:
        discount.target_type = "all"
    if discount.stacking_rule is None:
        discount.stacking_rule = "exclusive"
    if discount.active is None:
        discount.active = True
    _enforce_rules(discount, policy)

    db.session.add(discount)
    db.session.flush()
    log_audit(
        action="discount_created",
        details={"id": discount.id, "name": discount.name, "type": discount.type, "value": discount.value},
        performed_by=user_id,
    )
    return discount


def update_discount(discount_id: int, data: dict, *, policy: PolicySettings, user_id: int) -> Discount:
    """Patch a discount rule. Caller commits."""
    discount = db.session.get(Discount, discount_id)
    if discount is None:
        raise NotFoundError("Discount not found")

    data = _normalize(data)
    for key in EDITABLE_FIELDS:
        if key in data:
            setattr(discount, key, data[key])
    _enforce_rules(discount, policy)

    db.session.flush()
    log_audit(
        action="discount_updated",
        details={"id": discount.id, "name": discount.name, "type": discount.type, "value": discount.value},
        performed_by=user_id,
    )
    return discount
