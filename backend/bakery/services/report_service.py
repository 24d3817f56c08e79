# Overview: Service-layer operations for shift reports; idempotent save keyed by (owner, shift, day).

"""
Shift Report Upsert Service

RULE: exactly one ShiftReport per (owner, shift, report_date).

    save -> existing row for key?  yes -> overwrite totals, lines, feedback -> "updated"
                                   no  -> insert                             -> "created"
                                          insert hits the unique constraint
                                          (a concurrent saver won)           -> update -> "updated"

The duplicate-key conflict is never surfaced to the caller. Callers that may
fire twice for one logical save (auto-save plus a button) wrap the call in a
ReportSaveSession, whose completion flag makes the second call a no-op.
"""

from __future__ import annotations

import threading
from datetime import date, datetime

from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..enums import SaveOutcome, Shift
from ..models import ShiftReport
from ..time_utils import utcnow
from ..validation import NotFoundError, ValidationError, parse_day, parse_shift, require_id
from .concurrency import run_with_retry, shift_guard
from .inventory_service import InventoryFigures, reconcile
from .shift_service import resolve_shift_window


def sales_lines_from(figures: InventoryFigures) -> list[dict]:
    return [
        {
            "product_id": p.product_id,
            "product_name": p.product_name,
            "quantity": p.sold_units,
            "unit_price_cents": p.unit_price_cents,
            "total_cents": p.sold_value,
        }
        for p in figures.products
        if p.sold_units > 0
    ]


def remaining_lines_from(figures: InventoryFigures) -> list[dict]:
    return [
        {
            "product_id": p.product_id,
            "product_name": p.product_name,
            "quantity": p.remaining_manual_units,
            "unit_price_cents": p.unit_price_cents,
            "total_cents": p.remaining_manual_value,
        }
        for p in figures.products
        if p.remaining_manual_units > 0
    ]


def _apply(report: ShiftReport, totals: dict, sales_lines: list, remaining_lines: list, feedback: str | None) -> None:
    report.total_revenue_cents = totals["total_revenue_cents"]
    report.total_items_sold = totals["total_items_sold"]
    report.total_remaining_cents = totals["total_remaining_cents"]
    report.sales_lines = list(sales_lines)
    report.remaining_lines = list(remaining_lines)
    report.feedback = feedback
    report.updated_at = utcnow()


def _find(owner_id: int, shift: Shift, day: date) -> ShiftReport | None:
    return db.session.query(ShiftReport).filter_by(owner_user_id=owner_id, shift=shift, report_date=day).first()


def save_shift_report(
    *,
    owner_id,
    shift,
    day,
    figures: InventoryFigures,
    sales_lines: list[dict] | None = None,
    remaining_lines: list[dict] | None = None,
    feedback: str | None = None,
) -> tuple[SaveOutcome, ShiftReport]:
    """
    Create or update the report for (owner, shift, day).

    Totals come from `figures`: revenue is the summed sold value, items sold
    the summed sold units, remaining the summed remaining target. Line
    snapshots default to the ones derived from `figures`.
    """
    owner_id = require_id(owner_id, "owner_id")
    shift = parse_shift(shift)
    day = parse_day(day)
    if day is None:
        raise ValidationError("day is required")
    if figures is None:
        raise ValidationError("figures are required")
    if sales_lines is None:
        sales_lines = sales_lines_from(figures)
    if remaining_lines is None:
        remaining_lines = remaining_lines_from(figures)

    totals = {
        "total_revenue_cents": figures.total_sold_value,
        "total_items_sold": figures.total_sold_units,
        "total_remaining_cents": figures.total_remaining_target,
    }

    with shift_guard(owner_id, shift):
        def _op() -> tuple[SaveOutcome, ShiftReport]:
            existing = _find(owner_id, shift, day)
            if existing is not None:
                _apply(existing, totals, sales_lines, remaining_lines, feedback)
                db.session.commit()
                return SaveOutcome.UPDATED, existing

            report = ShiftReport(owner_user_id=owner_id, shift=shift, report_date=day, created_at=utcnow())
            _apply(report, totals, sales_lines, remaining_lines, feedback)
            db.session.add(report)
            try:
                db.session.commit()
                return SaveOutcome.CREATED, report
            except IntegrityError:
                # Another saver inserted the key first; converge on its row
                db.session.rollback()
                existing = _find(owner_id, shift, day)
                if existing is None:
                    raise
                _apply(existing, totals, sales_lines, remaining_lines, feedback)
                db.session.commit()
                return SaveOutcome.UPDATED, existing

        return run_with_retry(_op)


def build_report(*, owner_id, shift, day: date | None = None, now: datetime | None = None) -> dict:
    """
    Reconcile the owner's shift and package it the way a report stores it.

    Returns {"owner_id", "shift", "day", "figures", "sales_lines",
    "remaining_lines"}; nothing is persisted.
    """
    owner_id = require_id(owner_id, "owner_id")
    window = resolve_shift_window(now or utcnow(), parse_shift(shift), day=parse_day(day))
    figures = reconcile(shift=window.shift, day=window.day, owner_id=owner_id, now=now)
    return {
        "owner_id": owner_id,
        "shift": window.shift,
        "day": window.day,
        "figures": figures,
        "sales_lines": sales_lines_from(figures),
        "remaining_lines": remaining_lines_from(figures),
    }


def build_and_save_report(
    *,
    owner_id,
    shift,
    day: date | None = None,
    feedback: str | None = None,
    now: datetime | None = None,
) -> tuple[SaveOutcome, ShiftReport]:
    """
    Reconcile the owner's shift and persist it as their report.

    The shift guard is held across the reconcile and the write, so a sales
    clear for the same (owner, shift) lands either before or after both.
    """
    owner_id = require_id(owner_id, "owner_id")
    shift = parse_shift(shift)
    with shift_guard(owner_id, shift):
        built = build_report(owner_id=owner_id, shift=shift, day=day, now=now)
        return save_shift_report(
            owner_id=built["owner_id"],
            shift=built["shift"],
            day=built["day"],
            figures=built["figures"],
            sales_lines=built["sales_lines"],
            remaining_lines=built["remaining_lines"],
            feedback=feedback,
        )


class ReportSaveSession:
    """
    Single-use completion flag for one caller session.

    The first save() runs; any later save() on the same session returns the
    first outcome without touching the store.
    """

    def __init__(self, *, owner_id: int, shift: Shift | str, day: date | None):
        self.owner_id = owner_id
        self.shift = parse_shift(shift)
        self.day = day
        self._lock = threading.Lock()
        self._result: tuple[SaveOutcome, ShiftReport] | None = None

    @property
    def completed(self) -> bool:
        return self._result is not None

    def save(self, figures: InventoryFigures, *, sales_lines=None, remaining_lines=None,
             feedback: str | None = None) -> SaveOutcome:
        with self._lock:
            if self._result is None:
                self._result = save_shift_report(
                    owner_id=self.owner_id,
                    shift=self.shift,
                    day=self.day,
                    figures=figures,
                    sales_lines=sales_lines,
                    remaining_lines=remaining_lines,
                    feedback=feedback,
                )
            return self._result[0]

    def build_and_save(self, *, feedback: str | None = None,
                       now: datetime | None = None) -> tuple[SaveOutcome, ShiftReport]:
        """Reconcile and save once; later calls return the first result."""
        with self._lock:
            if self._result is None:
                self._result = build_and_save_report(
                    owner_id=self.owner_id,
                    shift=self.shift,
                    day=self.day,
                    feedback=feedback,
                    now=now,
                )
            return self._result


def get_shift_report(report_id: int) -> ShiftReport:
    report = db.session.get(ShiftReport, report_id)
    if report is None:
        raise NotFoundError(f"Shift report {report_id} not found")
    return report


def find_shift_report(*, owner_id: int, shift, day) -> ShiftReport | None:
    return _find(owner_id, parse_shift(shift), parse_day(day))


def list_shift_reports(
    *,
    owner_id: int | None = None,
    shift=None,
    start: date | None = None,
    end: date | None = None,
    limit: int = 200,
) -> list[ShiftReport]:
    q = db.session.query(ShiftReport)
    if owner_id is not None:
        q = q.filter(ShiftReport.owner_user_id == owner_id)
    if shift:
        q = q.filter(ShiftReport.shift == parse_shift(shift))
    if start is not None:
        q = q.filter(ShiftReport.report_date >= start)
    if end is not None:
        q = q.filter(ShiftReport.report_date <= end)
    return q.order_by(ShiftReport.report_date.desc(), ShiftReport.id.desc()).limit(limit).all()
