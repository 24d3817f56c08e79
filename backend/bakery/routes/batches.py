# Overview: Flask API routes for production batches; lifecycle actions, progress tick and stats.

# backend/bakery/routes/batches.py
"""
Production batch routes.

SECURITY: All routes require the manager or owner role.

LIFECYCLE:
- POST /api/batches creates a batch in `planning`
- POST /api/batches/<id>/<action> applies start | pause | complete | cancel
- Invalid transitions return 409 with the current and requested states
- POST /api/batches/tick recomputes progress for active batches on demand;
  the background ticker does the same on its own cadence when enabled
"""
from flask import Blueprint, current_app, g, jsonify, request
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..decorators import require_auth, require_role
from ..enums import BatchAction, Role
from ..services import batch_service
from ..services.batch_service import BatchTransitionError
from ..services.batch_ticker import notify_batch_activity
from ..services.shift_service import resolve_shift_window
from ..time_utils import utcnow
from ..validation import ConflictError, NotFoundError, ValidationError, parse_shift, require_id
from .responses import error, internal_error, store_unavailable

batches_bp = Blueprint("batches", __name__, url_prefix="/api/batches")


@batches_bp.post("")
@require_auth
@require_role(Role.MANAGER, Role.OWNER)
def create_batch_route():
    """
    Body:
    {
        "product_id": 1,
        "target_quantity": 120,
        "shift": "morning",                 # defaults to the caller's selection
        "batch_number": "007",              # optional; issued when omitted
        "estimated_duration_minutes": 90,   # optional
        "notes": "..."
    }
    """
    data = request.get_json(silent=True) or {}
    try:
        batch = batch_service.create_batch(
            product_id=data.get("product_id"),
            shift=parse_shift(data.get("shift"), required=False) or g.current_user.selected_shift,
            created_by_user_id=g.current_user.id,
            target_quantity=data.get("target_quantity", 0),
            batch_number=data.get("batch_number"),
            estimated_duration_minutes=data.get(
                "estimated_duration_minutes", current_app.config["BATCH_DEFAULT_DURATION_MINUTES"]
            ),
            notes=data.get("notes"),
        )
        return jsonify({"batch": batch_service.serialize_batch(batch)}), 201
    except ValidationError as e:
        return error(str(e), 400)
    except NotFoundError as e:
        return error(str(e), 404)
    except ConflictError as e:
        return error(str(e), 409)
    except OperationalError:
        return store_unavailable("create batch")
    except Exception:
        return internal_error("create batch")


@batches_bp.get("")
@require_auth
@require_role(Role.MANAGER, Role.OWNER)
def list_batches_route():
    """Query params: shift, status, product_id, limit (default 200)."""
    try:
        product_id = request.args.get("product_id")
        batches = batch_service.list_batches(
            shift=request.args.get("shift"),
            status=request.args.get("status"),
            product_id=require_id(product_id, "product_id") if product_id else None,
            limit=min(request.args.get("limit", 200, type=int), 500),
        )
        now = utcnow()
        body = [batch_service.serialize_batch(b, now) for b in batches]
        return jsonify({"batches": body, "count": len(batches)}), 200
    except ValidationError as e:
        return error(str(e), 400)
    except OperationalError:
        return store_unavailable("list batches")


@batches_bp.get("/stats")
@require_auth
@require_role(Role.MANAGER, Role.OWNER)
def batch_stats_route():
    try:
        shift = request.args.get("shift")
        window = resolve_shift_window(utcnow(), shift)
        stats = batch_service.batch_stats(shift=shift or None, today_start=window.start)
        return jsonify(stats), 200
    except ValidationError as e:
        return error(str(e), 400)
    except OperationalError:
        return store_unavailable("load batch stats")


@batches_bp.post("/tick")
@require_auth
@require_role(Role.MANAGER, Role.OWNER)
def tick_route():
    try:
        moved = batch_service.tick_batch_progress()
        return jsonify({
            "transitioned": [batch_service.serialize_batch(b) for b in moved],
            "has_active_batches": batch_service.has_active_batches(),
        }), 200
    except OperationalError:
        return store_unavailable("tick batch progress")


@batches_bp.get("/<int:batch_id>")
@require_auth
@require_role(Role.MANAGER, Role.OWNER)
def get_batch_route(batch_id: int):
    try:
        batch = batch_service.get_batch(batch_id)
        body = batch_service.serialize_batch(batch)
        body["allowed_actions"] = [a.value for a in batch_service.allowed_actions(batch.status)]
        return jsonify({"batch": body}), 200
    except NotFoundError as e:
        return error(str(e), 404)


@batches_bp.post("/<int:batch_id>/log-production")
@require_auth
@require_role(Role.MANAGER, Role.OWNER)
def log_batch_production_route(batch_id: int):
    """Record a completed batch's actual quantity as production (once)."""
    try:
        event = batch_service.log_completed_batch(batch_id, recorded_by_user_id=g.current_user.id)
        return jsonify({"production": event.to_dict()}), 200
    except NotFoundError as e:
        return error(str(e), 404)
    except BatchTransitionError as e:
        return jsonify(e.to_dict()), 409
    except OperationalError:
        return store_unavailable("log batch production")
    except Exception:
        return internal_error("log batch production")


@batches_bp.post("/<int:batch_id>/<action>")
@require_auth
@require_role(Role.MANAGER, Role.OWNER)
def transition_batch_route(batch_id: int, action: str):
    """
    Apply a lifecycle action.

    complete requires {"actual_quantity": N} in the body.
    """
    data = request.get_json(silent=True) or {}
    try:
        batch = batch_service.transition_batch(
            batch_id,
            action,
            actual_quantity=data.get("actual_quantity"),
        )
        if batch_service.parse_action(action) == BatchAction.START:
            notify_batch_activity()
        return jsonify({"batch": batch_service.serialize_batch(batch)}), 200
    except ValidationError as e:
        return error(str(e), 400)
    except NotFoundError as e:
        return error(str(e), 404)
    except BatchTransitionError as e:
        return jsonify(e.to_dict()), 409
    except StaleDataError:
        return error("Batch was modified concurrently, please retry", 409, retryable=True)
    except OperationalError:
        return store_unavailable("transition batch")
    except Exception:
        return internal_error("transition batch")
