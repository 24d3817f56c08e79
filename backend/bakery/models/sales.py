from __future__ import annotations

from ..extensions import db
from ..enums import Shift
from ..time_utils import to_utc_z, utcnow
from .base import enum_column, enum_value


class SalesEvent(db.Model):
    """
    One recorded sale line.

    APPEND-ONLY except for the explicit, user-confirmed "clear shift sales"
    bulk delete. Line amount is quantity * (override or product price) minus
    discount, and is deliberately not floored at zero here.
    """
    __tablename__ = "sales_events"
    __table_args__ = (
        db.CheckConstraint("quantity >= 0", name="ck_sales_events_quantity_non_negative"),
        db.CheckConstraint(
            "unit_price_cents IS NULL OR unit_price_cents >= 0",
            name="ck_sales_events_price_non_negative",
        ),
        db.CheckConstraint(
            "discount_cents IS NULL OR discount_cents >= 0",
            name="ck_sales_events_discount_non_negative",
        ),
        db.Index("ix_sales_events_owner_shift_time", "recorded_by_user_id", "shift", "occurred_at"),
        db.Index("ix_sales_events_shift_time", "shift", "occurred_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    quantity = db.Column(db.Integer, nullable=False)

    # Optional per-line override of Product.price_cents
    unit_price_cents = db.Column(db.Integer, nullable=True)
    discount_cents = db.Column(db.Integer, nullable=True)

    shift = enum_column(Shift, nullable=False)
    recorded_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    occurred_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    product = db.relationship("Product", backref=db.backref("sales_events", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "quantity": self.quantity,
            "unit_price_cents": self.unit_price_cents,
            "discount_cents": self.discount_cents,
            "shift": enum_value(self.shift),
            "recorded_by_user_id": self.recorded_by_user_id,
            "occurred_at": to_utc_z(self.occurred_at),
        }


class RemainingStockEntry(db.Model):
    """
    Manually counted leftover stock for a product.

    One running entry per (owner, product); recording again overwrites the
    quantity. Not scoped to a shift or day.
    """
    __tablename__ = "remaining_stock_entries"
    __table_args__ = (
        db.UniqueConstraint("owner_user_id", "product_id", name="uq_remaining_stock_owner_product"),
        db.CheckConstraint("quantity >= 0", name="ck_remaining_stock_quantity_non_negative"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    owner_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    quantity = db.Column(db.Integer, nullable=False)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    product = db.relationship("Product")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "owner_user_id": self.owner_user_id,
            "product_id": self.product_id,
            "quantity": self.quantity,
            "updated_at": to_utc_z(self.updated_at),
        }
