from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


APPROVAL_ACTIONS = (
    "remove_item",
    "discount_override",
    "cancel_sale",
    "user_update",
    "stock_loss",
    "stock_adjust",
)


class Approval(db.Model):
    """
    Manager grant for one gated action.

    issued -> consumed (used_at set by the first successful verification)
    issued -> expired (expires_at passed; enforced at verification time only)

    Only the keyed hash of the token is stored; the plaintext is returned to the
    requester once, at issuance.
    """
    __tablename__ = "approvals"
    __table_args__ = (
        db.Index("ix_approvals_lookup", "token_hash", "action"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    token_hash = db.Column(db.String(64), nullable=False, unique=True)
    action = db.Column(db.String(32), nullable=False)
    reason = db.Column(db.Text, nullable=True)
    # "metadata" is reserved on declarative models
    metadata_json = db.Column("metadata", db.JSON, nullable=True)

    approved_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    expires_at = db.Column(db.DateTime(timezone=True), nullable=False)
    used_at = db.Column(db.DateTime(timezone=True), nullable=True)

    approver = db.relationship("User")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "action": self.action,
            "reason": self.reason,
            "metadata": self.metadata_json or {},
            "approved_by": self.approved_by_user_id,
            "expires_at": to_utc_z(self.expires_at),
            "used_at": to_utc_z(self.used_at),
        }
