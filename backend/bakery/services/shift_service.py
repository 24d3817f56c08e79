# Overview: Service-layer operations for the active shift and day boundaries.

"""
Shift Resolver

The active shift is an explicit, persisted selection that each user toggles.
It is never guessed from the time of day. The only automatic behavior here
is computing the [start, end) of a calendar day, always in the one zone named
by BAKERY_TIMEZONE, so every aggregation is cut at the same instants.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime

from flask import current_app, has_app_context

from ..extensions import db
from ..enums import Shift
from ..models import User
from ..time_utils import DEFAULT_TIMEZONE, day_bounds_utc, local_date, to_utc_z
from ..validation import NotFoundError, parse_shift

DEFAULT_SHIFT = Shift.MORNING


@dataclass(frozen=True)
class ShiftWindow:
    shift: Shift
    day: date
    start: datetime
    end: datetime

    def contains(self, instant: datetime) -> bool:
        return self.start <= instant < self.end

    def to_dict(self) -> dict:
        return {
            "shift": self.shift.value,
            "day": self.day.isoformat(),
            "start": to_utc_z(self.start),
            "end": to_utc_z(self.end),
        }


def configured_timezone() -> str:
    if has_app_context():
        return current_app.config.get("BAKERY_TIMEZONE") or DEFAULT_TIMEZONE
    return DEFAULT_TIMEZONE


def resolve_shift_window(
    now: datetime,
    selected_shift: Shift | str | None = None,
    *,
    day: date | None = None,
    tz_name: str | None = None,
) -> ShiftWindow:
    """
    Resolve the shift label and day boundaries for one query.

    Args:
        now: UTC-naive instant the query is made at
        selected_shift: explicit override or the user's persisted selection
        day: calendar day to scope to; defaults to the local date of `now`
        tz_name: zone override (tests); defaults to BAKERY_TIMEZONE

    Computed once per query and passed down, never recomputed per call site.
    """
    tz_name = tz_name or configured_timezone()
    shift = parse_shift(selected_shift, required=False) or DEFAULT_SHIFT
    if day is None:
        day = local_date(now, tz_name)
    start, end = day_bounds_utc(day, tz_name)
    return ShiftWindow(shift=shift, day=day, start=start, end=end)


def _get_user(user_id: int) -> User:
    user = db.session.get(User, user_id)
    if user is None:
        raise NotFoundError(f"User {user_id} not found")
    return user


def get_selected_shift(user_id: int) -> Shift:
    user = _get_user(user_id)
    return Shift(user.selected_shift) if user.selected_shift else DEFAULT_SHIFT


def select_shift(user_id: int, shift: Shift | str) -> User:
    """Persist the user's shift toggle."""
    shift = parse_shift(shift)
    user = _get_user(user_id)
    user.selected_shift = shift
    db.session.commit()
    return user
