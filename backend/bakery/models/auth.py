from __future__ import annotations

from ..extensions import db
from ..enums import Role, Shift
from ..time_utils import to_utc_z
from .base import enum_column, enum_value


class User(db.Model):
    """
    Staff member.

    Authentication is handled outside this service; a User row is the identity
    that owns sales, remaining-stock counts, batches and shift reports.

    selected_shift is the persisted "current shift" toggle. It is explicit
    state chosen by the user, never inferred from the clock.
    """
    __tablename__ = "users"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(64), nullable=False, unique=True, index=True)
    display_name = db.Column(db.String(120), nullable=True)
    role = enum_column(Role, nullable=False, default=Role.SALES_REP)
    selected_shift = enum_column(Shift, nullable=False, default=Shift.MORNING)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def __repr__(self) -> str:
        return f"<User id={self.id} username={self.username!r} role={enum_value(self.role)}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "username": self.username,
            "display_name": self.display_name,
            "role": enum_value(self.role),
            "selected_shift": enum_value(self.selected_shift),
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
        }
