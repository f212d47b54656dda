# Overview: Approval-gated POS actions that only need attribution (no stock change).

from __future__ import annotations

from decimal import Decimal

from ..errors import BusinessRuleError
from ..amounts import to_decimal
from .approval_service import verify_and_consume
from .audit_service import log_audit
from .discount_calculator import discount_percent
from .settings_service import PolicySettings
from .transactions import run_in_transaction


def remove_item(*, item: str, reason: str, performed_by: int, approval_token: str | None) -> dict:
    """Removing a scanned item always needs a remove_item approval."""
    def _op():
        approval = verify_and_consume(approval_token, "remove_item")
        log_audit(
            action="remove_item",
            details={"item": item, "reason": reason},
            performed_by=performed_by,
            approved_by=approval.approved_by_user_id,
        )
        return {"status": "ok", "approved_by": approval.approved_by_user_id}

    return run_in_transaction(_op, label="remove item")


def cancel_sale(*, reason: str, items: int, performed_by: int, approval_token: str | None) -> dict:
    """Cancelling an open sale always needs a cancel_sale approval."""
    def _op():
        approval = verify_and_consume(approval_token, "cancel_sale")
        log_audit(
            action="cancel_sale",
            details={"reason": reason, "items": items},
            performed_by=performed_by,
            approved_by=approval.approved_by_user_id,
        )
        return {"status": "ok", "approved_by": approval.approved_by_user_id}

    return run_in_transaction(_op, label="cancel sale")


def discount_override(
    *,
    amount,
    subtotal,
    reason: str,
    performed_by: int,
    policy: PolicySettings,
    approval_token: str | None,
) -> dict:
    """
    Manual discount typed at the register.

    - any discount ceiling configured, subtotal <= 0 and amount > 0: 400
    - percent of subtotal above max_discount: 403, approval cannot lift it
    - percent at or above approval_threshold: needs a discount_override approval
    """
    amount = to_decimal(amount)
    subtotal = to_decimal(subtotal)
    percent = discount_percent(amount, subtotal)

    if policy.any_discount_ceiling and subtotal <= 0 and amount > 0:
        raise BusinessRuleError("Subtotal is required to validate the discount")

    if policy.max_discount is not None and percent > policy.max_discount:
        raise BusinessRuleError("Discount exceeds the allowed limit", status=403)

    needs_approval = policy.approval_threshold is not None and percent >= policy.approval_threshold

    def _op():
        approval = verify_and_consume(approval_token, "discount_override") if needs_approval else None
        approved_by = approval.approved_by_user_id if approval else None
        log_audit(
            action="discount_override",
            details={
                "amount": amount,
                "reason": reason,
                "subtotal": subtotal,
                "percent": percent.quantize(Decimal("0.01")),
            },
            performed_by=performed_by,
            approved_by=approved_by,
        )
        return {"status": "ok", "approved_by": approved_by}

    return run_in_transaction(_op, label="discount override")
