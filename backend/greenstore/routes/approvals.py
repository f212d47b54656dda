# backend/greenstore/routes/approvals.py
"""
Approval issuance.

No session is required: the approver re-authenticates with email + password in
the body. The plaintext token is returned exactly once; the client retries the
gated call with it in the X-Approval-Token header.
"""
from flask import Blueprint, request

from ..models import APPROVAL_ACTIONS
from ..services import approval_service
from ..services.transactions import run_in_transaction
from ..time_utils import to_utc_z
from ..validation import FieldRule, RequestPolicy, validate_payload


approvals_bp = Blueprint("approvals", __name__, url_prefix="/api/approvals")

APPROVAL_POLICY = RequestPolicy(fields={
    "email": FieldRule("email", required=True, max_length=255),
    "password": FieldRule("str", required=True, max_length=255),
    "action": FieldRule("str", required=True, choices=frozenset(APPROVAL_ACTIONS)),
    "reason": FieldRule("str", max_length=500),
    "metadata": FieldRule("json", nullable=True),
})


@approvals_bp.post("")
def issue_approval_route():
    """
    Errors:
    - 401 unknown email, inactive approver, wrong password
    - 403 approver below manager
    """
    patch = validate_payload(payload=request.get_json(silent=True), policy=APPROVAL_POLICY)

    approval, token = run_in_transaction(
        lambda: approval_service.issue_approval(
            email=patch["email"],
            password=patch["password"],
            action=patch["action"],
            reason=patch.get("reason") or "",
            metadata=patch.get("metadata"),
        ),
        label="approval issue",
    )
    return {"token": token, "expires_at": to_utc_z(approval.expires_at)}, 201
