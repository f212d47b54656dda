from __future__ import annotations

from ..extensions import db
from ..amounts import money_str, quantity_str
from ..time_utils import to_utc_z


DISCOUNT_TYPES = ("percent", "fixed", "buy_x_get_y", "fixed_bundle")
TARGET_TYPES = ("all", "category", "product", "combo")
STACKING_RULES = ("exclusive", "stackable")


class Discount(db.Model):
    """
    Promotional rule applied to a single sale line.

    value means: percent of the line subtotal (percent), a flat amount (fixed),
    or the price of one bundle of buy_quantity units (fixed_bundle). It is
    unused by buy_x_get_y, which gives get_quantity units free once
    buy_quantity units are bought.

    stacking_rule and priority are metadata for the POS and reporting; the
    discount calculator ignores them.
    """
    __tablename__ = "discounts"
    __table_args__ = (
        db.CheckConstraint(
            "type IN ('percent', 'fixed', 'buy_x_get_y', 'fixed_bundle')",
            name="ck_discounts_type",
        ),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    type = db.Column(db.String(16), nullable=False)
    value = db.Column(db.Numeric(12, 2), nullable=False, default=0)

    min_quantity = db.Column(db.Numeric(12, 3), nullable=True)
    buy_quantity = db.Column(db.Integer, nullable=True)
    get_quantity = db.Column(db.Integer, nullable=True)

    target_type = db.Column(db.String(16), nullable=False, default="all")
    target_value = db.Column(db.String(64), nullable=True)  # product id or category id
    criteria = db.Column(db.JSON, nullable=True)  # product ids for combo targeting

    # Optional activation window
    days_of_week = db.Column(db.JSON, nullable=True)  # [0..6], 0 = Monday
    starts_at = db.Column(db.DateTime(timezone=True), nullable=True)
    ends_at = db.Column(db.DateTime(timezone=True), nullable=True)
    starts_time = db.Column(db.String(8), nullable=True)  # "HH:MM"
    ends_time = db.Column(db.String(8), nullable=True)

    stacking_rule = db.Column(db.String(16), nullable=False, default="exclusive")
    priority = db.Column(db.Integer, nullable=False, default=0)
    active = db.Column(db.Boolean, nullable=False, default=True, index=True)

    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "type": self.type,
            "value": money_str(self.value),
            "min_quantity": quantity_str(self.min_quantity),
            "buy_quantity": self.buy_quantity,
            "get_quantity": self.get_quantity,
            "target_type": self.target_type,
            "target_value": self.target_value,
            "criteria": self.criteria,
            "days_of_week": self.days_of_week,
            "starts_at": to_utc_z(self.starts_at),
            "ends_at": to_utc_z(self.ends_at),
            "starts_time": self.starts_time,
            "ends_time": self.ends_time,
            "stacking_rule": self.stacking_rule,
            "priority": self.priority,
            "active": self.active,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
