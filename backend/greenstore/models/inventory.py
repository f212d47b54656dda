from __future__ import annotations

from ..extensions import db
from ..amounts import money_str, quantity_str
from ..time_utils import to_utc_z


UNIT_TYPES = ("unit", "kg", "g", "l", "ml")
MOVEMENT_TYPES = ("sale", "loss", "adjustment", "inbound", "outbound")


class Category(db.Model):
    """Product grouping; referenced by products and category-targeted discounts."""
    __tablename__ = "categories"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False, unique=True)


class Product(db.Model):
    """
    Product master data plus the denormalized stock level.

    current_stock is a cache of SUM(stock_movements.delta) for the product. It
    is written only by stock_service, always in the same transaction as the
    movement that explains the change, and never goes below zero.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.CheckConstraint("current_stock >= 0", name="ck_products_stock_non_negative"),
        db.CheckConstraint("price >= 0", name="ck_products_price_non_negative"),
        db.Index("ix_products_category", "category_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    sku = db.Column(db.String(64), nullable=False, unique=True)
    name = db.Column(db.String(255), nullable=False)

    # "unit" products move in whole quantities; weight/volume units allow fractions
    unit_type = db.Column(db.String(8), nullable=False, default="unit")

    price = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    current_stock = db.Column(db.Numeric(12, 3), nullable=False, default=0)
    min_stock = db.Column(db.Numeric(12, 3), nullable=False, default=0)
    max_stock = db.Column(db.Numeric(12, 3), nullable=False, default=0)

    category_id = db.Column(db.Integer, db.ForeignKey("categories.id"), nullable=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    category = db.relationship("Category", backref=db.backref("products", lazy=True))

    @property
    def allows_fractional(self) -> bool:
        return self.unit_type != "unit"

    def __repr__(self) -> str:
        return f"<Product id={self.id} sku={self.sku!r} stock={self.current_stock}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sku": self.sku,
            "name": self.name,
            "unit_type": self.unit_type,
            "price": money_str(self.price),
            "current_stock": quantity_str(self.current_stock),
            "min_stock": quantity_str(self.min_stock),
            "max_stock": quantity_str(self.max_stock),
            "category_id": self.category_id,
            "is_active": self.is_active,
        }


class StockMovement(db.Model):
    """
    Immutable stock ledger entry. Created once, never updated or deleted.

    delta is signed: sale/loss/outbound are negative, inbound is positive,
    adjustment may be either.
    """
    __tablename__ = "stock_movements"
    __table_args__ = (
        db.CheckConstraint(
            "type IN ('sale', 'loss', 'adjustment', 'inbound', 'outbound')",
            name="ck_stock_movements_type",
        ),
        db.Index("ix_stock_movements_product_created", "product_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    type = db.Column(db.String(16), nullable=False)
    delta = db.Column(db.Numeric(12, 3), nullable=False)
    reason = db.Column(db.Text, nullable=True)
    performed_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    product = db.relationship("Product")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "product_name": self.product.name if self.product else None,
            "type": self.type,
            "delta": quantity_str(self.delta),
            "reason": self.reason,
            "performed_by": self.performed_by_user_id,
            "created_at": to_utc_z(self.created_at),
        }


class StockLoss(db.Model):
    """Shrinkage record kept apart from the generic movement log."""
    __tablename__ = "stock_losses"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    quantity = db.Column(db.Numeric(12, 3), nullable=False)
    reason = db.Column(db.Text, nullable=False)
    reported_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    product = db.relationship("Product")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "product_name": self.product.name if self.product else None,
            "quantity": quantity_str(self.quantity),
            "reason": self.reason,
            "reported_by": self.reported_by_user_id,
            "created_at": to_utc_z(self.created_at),
        }
