# Overview: Flask API routes for the caller's shift selection.

from flask import Blueprint, g, jsonify, request
from sqlalchemy.exc import OperationalError

from ..decorators import require_auth
from ..services.shift_service import resolve_shift_window, select_shift
from ..time_utils import utcnow
from ..validation import ValidationError
from .responses import error, store_unavailable

shift_bp = Blueprint("shift", __name__, url_prefix="/api/shift")


@shift_bp.get("")
@require_auth
def get_shift_route():
    """The caller's selected shift and today's window for it."""
    window = resolve_shift_window(utcnow(), g.current_user.selected_shift)
    return jsonify({"selected_shift": window.shift.value, "window": window.to_dict()}), 200


@shift_bp.put("")
@require_auth
def select_shift_route():
    """
    Persist the caller's shift toggle.

    Body: {"shift": "morning" | "night"}
    """
    data = request.get_json(silent=True) or {}
    try:
        user = select_shift(g.current_user.id, data.get("shift"))
        window = resolve_shift_window(utcnow(), user.selected_shift)
        return jsonify({"selected_shift": window.shift.value, "window": window.to_dict()}), 200
    except ValidationError as e:
        return error(str(e), 400)
    except OperationalError:
        return store_unavailable("select shift")
