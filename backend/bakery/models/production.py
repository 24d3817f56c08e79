from __future__ import annotations

from ..extensions import db
from ..enums import BatchStatus, Shift
from ..time_utils import to_utc_z, utcnow
from .base import enum_column, enum_value


class ProductionEvent(db.Model):
    """
    One logged production of a product during a shift.

    APPEND-ONLY: rows are never edited or deleted in normal flow. Production
    is shift-wide; recorded_by_user_id is kept for audit, not for scoping.
    """
    __tablename__ = "production_events"
    __table_args__ = (
        db.CheckConstraint("quantity >= 0", name="ck_production_events_quantity_non_negative"),
        db.Index("ix_production_events_shift_time", "shift", "occurred_at"),
        db.Index("ix_production_events_product_time", "product_id", "occurred_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    quantity = db.Column(db.Integer, nullable=False)
    shift = enum_column(Shift, nullable=False)
    recorded_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True, index=True)

    # Set when a completed batch was logged as production (at most once per batch)
    batch_id = db.Column(db.Integer, db.ForeignKey("batches.id"), nullable=True, unique=True)
    note = db.Column(db.Text, nullable=True)

    occurred_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    product = db.relationship("Product", backref=db.backref("production_events", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "quantity": self.quantity,
            "shift": enum_value(self.shift),
            "recorded_by_user_id": self.recorded_by_user_id,
            "batch_id": self.batch_id,
            "note": self.note,
            "occurred_at": to_utc_z(self.occurred_at),
        }


class Batch(db.Model):
    """
    A single production run of a product.

    LIFECYCLE (see services/batch_service.py for the transition table):
        planning -> active -> quality_check -> completed
        active <-> paused
        planning | active -> cancelled

    Never hard-deleted; cancellation is the terminal "removal" state.
    progress is a cache of the last computed value; the authoritative
    inputs are start_at and estimated_duration_minutes.
    """
    __tablename__ = "batches"
    __table_args__ = (
        db.UniqueConstraint("product_id", "batch_number", name="uq_batches_product_number"),
        db.CheckConstraint("target_quantity >= 0", name="ck_batches_target_non_negative"),
        db.CheckConstraint(
            "actual_quantity IS NULL OR actual_quantity >= 0",
            name="ck_batches_actual_non_negative",
        ),
        db.Index("ix_batches_status", "status"),
        db.Index("ix_batches_shift_created", "shift", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    batch_number = db.Column(db.String(32), nullable=False)

    target_quantity = db.Column(db.Integer, nullable=False, default=0)
    actual_quantity = db.Column(db.Integer, nullable=True)

    status = enum_column(BatchStatus, nullable=False, default=BatchStatus.PLANNING)
    estimated_duration_minutes = db.Column(db.Integer, nullable=False, default=120)
    progress = db.Column(db.Float, nullable=False, default=0.0)

    start_at = db.Column(db.DateTime(timezone=True), nullable=True)
    end_at = db.Column(db.DateTime(timezone=True), nullable=True)
    actual_duration_minutes = db.Column(db.Integer, nullable=True)

    shift = enum_column(Shift, nullable=False)
    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)
    version_id = db.Column(db.Integer, nullable=False, default=1)

    product = db.relationship("Product", backref=db.backref("batches", lazy=True))

    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Batch id={self.id} number={self.batch_number!r} status={enum_value(self.status)}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "product_name": self.product.name if self.product else None,
            "batch_number": self.batch_number,
            "target_quantity": self.target_quantity,
            "actual_quantity": self.actual_quantity,
            "status": enum_value(self.status),
            "estimated_duration_minutes": self.estimated_duration_minutes,
            "progress": round(self.progress or 0.0, 2),
            "start_at": to_utc_z(self.start_at),
            "end_at": to_utc_z(self.end_at),
            "actual_duration_minutes": self.actual_duration_minutes,
            "shift": enum_value(self.shift),
            "created_by_user_id": self.created_by_user_id,
            "notes": self.notes,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
            "version_id": self.version_id,
        }


class BatchSequence(db.Model):
    """
    Per-product counter for batch numbers.

    Incremented with a single UPDATE ... SET next_number = next_number + 1 so
    concurrent creators never read the same value.
    """
    __tablename__ = "batch_sequences"
    __table_args__ = (
        db.UniqueConstraint("product_id", name="uq_batch_sequences_product"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False)
    next_number = db.Column(db.Integer, nullable=False, default=1)
