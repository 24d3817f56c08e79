# Overview: Flask API routes for shift reports; save (upsert) and history.

# backend/bakery/routes/reports.py
"""
Shift report routes.

SECURITY:
- Any identified user saves their own report for a shift/day
- Sales reps only read their own reports
- Managers and owners read everyone's, optionally filtered by owner_id

IDEMPOTENCE: saving twice for the same (owner, shift, day) updates the one
existing report. The first save answers 201, later ones 200.
"""
from flask import Blueprint, g, jsonify, request
from sqlalchemy.exc import OperationalError

from ..decorators import is_manager, require_auth
from ..enums import SaveOutcome
from ..services import report_service
from ..validation import NotFoundError, ValidationError, parse_day, parse_shift, require_id
from .responses import error, internal_error, store_unavailable

reports_bp = Blueprint("reports", __name__, url_prefix="/api/reports")


@reports_bp.post("/shift")
@require_auth
def save_shift_report_route():
    """
    Reconcile the caller's shift and save it as their report.

    Body: {"shift": "night", "day": "2026-03-14", "feedback": "..."}
    shift defaults to the caller's selection, day to today.
    """
    data = request.get_json(silent=True) or {}
    feedback = data.get("feedback")
    if feedback is not None and not isinstance(feedback, str):
        return error("feedback must be a string", 400)
    try:
        outcome, report = report_service.build_and_save_report(
            owner_id=g.current_user.id,
            shift=parse_shift(data.get("shift"), required=False) or g.current_user.selected_shift,
            day=parse_day(data.get("day")),
            feedback=feedback,
        )
        status = 201 if outcome == SaveOutcome.CREATED else 200
        return jsonify({"outcome": outcome.value, "report": report.to_dict()}), status
    except ValidationError as e:
        return error(str(e), 400)
    except OperationalError:
        return store_unavailable("save shift report")
    except Exception:
        return internal_error("save shift report")


@reports_bp.get("/shift")
@require_auth
def list_shift_reports_route():
    """Query params: owner_id (managers), shift, start, end (YYYY-MM-DD), limit."""
    try:
        if is_manager():
            owner_raw = request.args.get("owner_id")
            owner_id = require_id(owner_raw, "owner_id") if owner_raw else None
        else:
            owner_id = g.current_user.id
        reports = report_service.list_shift_reports(
            owner_id=owner_id,
            shift=request.args.get("shift"),
            start=parse_day(request.args.get("start")),
            end=parse_day(request.args.get("end")),
            limit=min(request.args.get("limit", 200, type=int), 500),
        )
        return jsonify({"reports": [r.to_dict() for r in reports], "count": len(reports)}), 200
    except ValidationError as e:
        return error(str(e), 400)
    except OperationalError:
        return store_unavailable("list shift reports")


@reports_bp.get("/shift/<int:report_id>")
@require_auth
def get_shift_report_route(report_id: int):
    try:
        report = report_service.get_shift_report(report_id)
    except NotFoundError as e:
        return error(str(e), 404)
    # Another seller's report is reported as missing, not forbidden
    if not is_manager() and report.owner_user_id != g.current_user.id:
        return error(f"Shift report {report_id} not found", 404)
    return jsonify({"report": report.to_dict()}), 200
