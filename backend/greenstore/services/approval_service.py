# Overview: Manager approval tokens; issuance with re-authentication, single-use verification.

"""
Approval workflow.

State per token: issued -> consumed (terminal) or issued -> expired (terminal).
There is no revocation; expiry is enforced when a token is presented, never by
a background sweep.

Issuance re-authenticates the approver from the credentials in the request,
independently of the requester's own session: the approver and the requester
are different people.

Consumption is a conditional UPDATE ... WHERE used_at IS NULL and the affected
row count decides the outcome, so two concurrent verifications of one token
cannot both succeed. It runs inside the caller's transaction: if the gated
mutation is rolled back, so is the consumption.
"""

from __future__ import annotations

import hashlib
import hmac
import secrets
from datetime import timedelta

from flask import current_app

from ..extensions import db
from ..errors import (
    ApprovalExpiredError,
    ApprovalInvalidError,
    ApprovalRequiredError,
    ForbiddenError,
    InvalidRequestError,
    UnauthorizedError,
)
from ..models import Approval, User, APPROVAL_ACTIONS
from ..time_utils import as_utc_naive, utcnow
from .audit_service import log_audit
from .auth_service import has_role, verify_password


APPROVER_ROLE = "manager"


def generate_approval_token() -> str:
    return secrets.token_hex(32)


def hash_approval_token(token: str) -> str:
    """
    Keyed hash of an approval token.

    HMAC-SHA256 with the application SECRET_KEY, so a leaked approvals table
    cannot be checked against guessed tokens without the key. Deterministic,
    which keeps lookup-by-hash possible.
    """
    key = current_app.config["SECRET_KEY"].encode("utf-8")
    return hmac.new(key, token.encode("utf-8"), hashlib.sha256).hexdigest()


def _approval_ttl() -> timedelta:
    return timedelta(minutes=current_app.config.get("APPROVAL_TTL_MINUTES", 10))


def issue_approval(
    *,
    email: str,
    password: str,
    action: str,
    reason: str = "",
    metadata: dict | None = None,
) -> tuple[Approval, str]:
    """
    Re-authenticate an approver and grant one approval for action.

    Returns (approval_record, plaintext_token); the plaintext is never stored.
    Caller commits.

    Raises:
        UnauthorizedError: unknown email, inactive user, or wrong password
        ForbiddenError: approver role below manager
    """
    if action not in APPROVAL_ACTIONS:
        raise InvalidRequestError(f"Unknown approval action: {action}")

    approver = db.session.query(User).filter_by(email=email.strip().lower()).first()
    if approver is None or not approver.is_active:
        raise UnauthorizedError("Invalid credentials")
    if not verify_password(password, approver.password_hash):
        raise UnauthorizedError("Invalid credentials")
    if not has_role(approver, APPROVER_ROLE):
        raise ForbiddenError("Approval requires a manager or admin")

    token = generate_approval_token()
    approval = Approval(
        token_hash=hash_approval_token(token),
        action=action,
        reason=reason or "",
        metadata_json=metadata or {},
        approved_by_user_id=approver.id,
        expires_at=utcnow() + _approval_ttl(),
    )
    db.session.add(approval)
    db.session.flush()

    log_audit(
        action="approval_granted",
        details={"action": action, "reason": reason or "", "metadata": metadata or {}},
        performed_by=approver.id,
        approved_by=approver.id,
    )

    current_app.logger.info(
        "Approval %s granted for %s by user %s", approval.id, action, approver.id
    )
    return approval, token


def verify_and_consume(token: str | None, action: str) -> Approval:
    """
    Check a presented token for action and mark it used.

    Returns the consumed Approval (approved_by_user_id is the audit approver).

    Raises:
        ApprovalRequiredError: no token presented (401)
        ApprovalInvalidError: no unused approval for this token and action (403)
        ApprovalExpiredError: the approval exists but expires_at has passed (403)
    """
    if not token:
        raise ApprovalRequiredError()

    approval = (
        db.session.query(Approval)
        .filter(
            Approval.token_hash == hash_approval_token(token),
            Approval.action == action,
            Approval.used_at.is_(None),
        )
        .first()
    )
    if approval is None:
        raise ApprovalInvalidError()

    now = utcnow()
    if as_utc_naive(approval.expires_at) < now:
        raise ApprovalExpiredError()

    consumed = (
        db.session.query(Approval)
        .filter(Approval.id == approval.id, Approval.used_at.is_(None))
        .update({Approval.used_at: now}, synchronize_session="fetch")
    )
    if consumed != 1:
        # Another verification consumed it between our read and write
        raise ApprovalInvalidError()

    current_app.logger.info(
        "Approval %s consumed for %s (approver %s)", approval.id, action, approval.approved_by_user_id
    )
    return approval
