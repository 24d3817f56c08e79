from __future__ import annotations

from ..extensions import db
from ..enums import Shift
from ..time_utils import to_utc_z, utcnow
from .base import enum_column, enum_value


class ShiftReport(db.Model):
    """
    Saved end-of-shift report for a sales representative.

    At most one row per (owner, shift, report_date). A repeated save for the
    same key updates this row; the unique constraint backs that up when two
    savers race.
    """
    __tablename__ = "shift_reports"
    __table_args__ = (
        db.UniqueConstraint("owner_user_id", "shift", "report_date", name="uq_shift_reports_owner_shift_day"),
        db.Index("ix_shift_reports_date", "report_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    owner_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    shift = enum_column(Shift, nullable=False)
    report_date = db.Column(db.Date, nullable=False)

    total_revenue_cents = db.Column(db.Integer, nullable=False, default=0)
    total_items_sold = db.Column(db.Integer, nullable=False, default=0)
    total_remaining_cents = db.Column(db.Integer, nullable=False, default=0)

    # Snapshots of the lines the totals were computed from
    sales_lines = db.Column(db.JSON, nullable=False, default=list)
    remaining_lines = db.Column(db.JSON, nullable=False, default=list)

    feedback = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    owner = db.relationship("User", backref=db.backref("shift_reports", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "owner_user_id": self.owner_user_id,
            "shift": enum_value(self.shift),
            "report_date": self.report_date.isoformat() if self.report_date else None,
            "total_revenue_cents": self.total_revenue_cents,
            "total_items_sold": self.total_items_sold,
            "total_remaining_cents": self.total_remaining_cents,
            "sales_lines": self.sales_lines or [],
            "remaining_lines": self.remaining_lines or [],
            "feedback": self.feedback,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
