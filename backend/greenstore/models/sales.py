from __future__ import annotations

from ..extensions import db
from ..amounts import money_str, quantity_str
from ..time_utils import to_utc_z


class Sale(db.Model):
    """
    One line-item sale. Created once per sale call, immutable afterwards.

    final_total = max(total - discount_amount, 0) and discount_amount <= total.
    """
    __tablename__ = "sales"
    __table_args__ = (
        db.CheckConstraint("discount_amount >= 0", name="ck_sales_discount_non_negative"),
        db.CheckConstraint("discount_amount <= total", name="ck_sales_discount_within_total"),
        db.CheckConstraint("final_total >= 0", name="ck_sales_final_total_non_negative"),
        db.Index("ix_sales_created_at", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    quantity = db.Column(db.Numeric(12, 3), nullable=False)

    total = db.Column(db.Numeric(12, 2), nullable=False)
    discount_id = db.Column(db.Integer, db.ForeignKey("discounts.id"), nullable=True)
    discount_amount = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    final_total = db.Column(db.Numeric(12, 2), nullable=False)

    payment_method = db.Column(db.String(32), nullable=False)
    sold_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    product = db.relationship("Product")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "quantity": quantity_str(self.quantity),
            "total": money_str(self.total),
            "discount_id": self.discount_id,
            "discount_amount": money_str(self.discount_amount),
            "final_total": money_str(self.final_total),
            "payment_method": self.payment_method,
            "sold_by": self.sold_by_user_id,
            "created_at": to_utc_z(self.created_at),
        }
