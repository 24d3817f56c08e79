# Overview: Flask API routes for inventory figures and event recording; parses input and returns JSON responses.

# backend/bakery/routes/inventory.py
"""
Inventory routes.

SECURITY: All routes require an identified user.
- Sales representatives see figures scoped to their own sales and counts.
- Managers and owners see shift-wide figures, optionally for one seller.
- Logging production requires the manager or owner role.

Freshness: figures are not pushed. Clients poll GET /api/inventory every
poll_interval_seconds (and when they come back online or regain focus).

Time semantics:
- day is a local calendar date (YYYY-MM-DD) in BAKERY_TIMEZONE.
- shift defaults to the caller's persisted shift selection.
"""
from flask import Blueprint, current_app, g, jsonify, request
from sqlalchemy.exc import OperationalError

from ..decorators import is_manager, require_auth, require_role
from ..enums import Role
from ..services import inventory_service
from ..services.shift_service import resolve_shift_window
from ..time_utils import utcnow
from ..validation import NotFoundError, ValidationError, parse_day, parse_shift, require_id
from .responses import error, internal_error, store_unavailable


inventory_bp = Blueprint("inventory", __name__, url_prefix="/api/inventory")


def _shift_arg(value):
    return parse_shift(value, required=False) or g.current_user.selected_shift


def _owner_scope(requested) -> int | None:
    """Sales reps are always scoped to themselves."""
    if not is_manager():
        return g.current_user.id
    if requested in (None, ""):
        return None
    return require_id(requested, "owner_id")


@inventory_bp.get("")
@require_auth
def get_inventory_route():
    """
    Per-product inventory figures for a shift/day.

    Query params: shift, day, owner_id (managers), product_id,
    include_idle (default true).
    """
    try:
        product_id = request.args.get("product_id")
        window = resolve_shift_window(
            utcnow(),
            _shift_arg(request.args.get("shift")),
            day=parse_day(request.args.get("day")),
        )
        figures = inventory_service.reconcile_window(
            window,
            product_id=require_id(product_id, "product_id") if product_id else None,
            owner_id=_owner_scope(request.args.get("owner_id")),
            include_idle=request.args.get("include_idle", "true").lower() == "true",
        )
        body = figures.to_dict()
        body["window"] = window.to_dict()
        body["poll_interval_seconds"] = current_app.config["INVENTORY_POLL_INTERVAL_SECONDS"]
        return jsonify(body), 200
    except ValidationError as e:
        return error(str(e), 400)
    except OperationalError:
        return store_unavailable("load inventory")


@inventory_bp.post("/production")
@require_auth
@require_role(Role.MANAGER, Role.OWNER)
def record_production_route():
    data = request.get_json(silent=True) or {}
    try:
        event = inventory_service.record_production(
            product_id=data.get("product_id"),
            quantity=data.get("quantity"),
            shift=_shift_arg(data.get("shift")),
            recorded_by_user_id=g.current_user.id,
            note=data.get("note"),
        )
        return jsonify({"production": event.to_dict()}), 201
    except ValidationError as e:
        return error(str(e), 400)
    except NotFoundError as e:
        return error(str(e), 404)
    except OperationalError:
        return store_unavailable("record production")
    except Exception:
        return internal_error("record production")


@inventory_bp.get("/production")
@require_auth
def list_production_route():
    """Production is shift-wide, so every role sees the same list."""
    try:
        events = inventory_service.list_production(
            shift=_shift_arg(request.args.get("shift")),
            day=parse_day(request.args.get("day")),
        )
        return jsonify({"production": [e.to_dict() for e in events], "count": len(events)}), 200
    except ValidationError as e:
        return error(str(e), 400)
    except OperationalError:
        return store_unavailable("list production")


@inventory_bp.post("/sales")
@require_auth
def record_sale_route():
    data = request.get_json(silent=True) or {}
    try:
        event = inventory_service.record_sale(
            product_id=data.get("product_id"),
            quantity=data.get("quantity"),
            shift=_shift_arg(data.get("shift")),
            recorded_by_user_id=g.current_user.id,
            unit_price_cents=data.get("unit_price_cents"),
            discount_cents=data.get("discount_cents"),
        )
        return jsonify({"sale": event.to_dict()}), 201
    except ValidationError as e:
        return error(str(e), 400)
    except NotFoundError as e:
        return error(str(e), 404)
    except OperationalError:
        return store_unavailable("record sale")
    except Exception:
        return internal_error("record sale")


@inventory_bp.get("/sales")
@require_auth
def list_sales_route():
    try:
        sales = inventory_service.list_sales(
            shift=_shift_arg(request.args.get("shift")),
            day=parse_day(request.args.get("day")),
            owner_id=_owner_scope(request.args.get("owner_id")),
        )
        return jsonify({"sales": [s.to_dict() for s in sales], "count": len(sales)}), 200
    except ValidationError as e:
        return error(str(e), 400)
    except OperationalError:
        return store_unavailable("list sales")


@inventory_bp.post("/sales/clear")
@require_auth
def clear_shift_sales_route():
    """
    End shift: delete the caller's sales events for a shift.

    DESTRUCTIVE. Requires {"confirm": true}. Waits for any in-flight report
    save for the same shift to finish first.
    """
    data = request.get_json(silent=True) or {}
    if data.get("confirm") is not True:
        return error("confirm must be true to clear shift sales", 400)
    try:
        shift = _shift_arg(data.get("shift"))
        deleted = inventory_service.clear_shift_sales(g.current_user.id, shift)
        current_app.logger.info(
            "User %s cleared %d sales event(s) for %s shift", g.current_user.id, deleted, parse_shift(shift).value
        )
        return jsonify({"deleted_count": deleted}), 200
    except ValidationError as e:
        return error(str(e), 400)
    except OperationalError:
        return store_unavailable("clear shift sales")
    except Exception:
        return internal_error("clear shift sales")


@inventory_bp.get("/remaining")
@require_auth
def list_remaining_route():
    try:
        entries = inventory_service.list_remaining_stock(_owner_scope(request.args.get("owner_id")))
        return jsonify({"remaining": [e.to_dict() for e in entries], "count": len(entries)}), 200
    except ValidationError as e:
        return error(str(e), 400)
    except OperationalError:
        return store_unavailable("list remaining stock")


@inventory_bp.put("/remaining")
@require_auth
def record_remaining_route():
    """Body: {"lines": [{"product_id": 1, "quantity": 4}, ...]} for the caller."""
    data = request.get_json(silent=True) or {}
    lines = data.get("lines")
    if not isinstance(lines, list):
        return error("lines must be a list", 400)
    try:
        results = inventory_service.record_remaining_stock(g.current_user.id, lines)
        return jsonify({"results": results}), 200
    except ValidationError as e:
        return error(str(e), 400)
    except NotFoundError as e:
        return error(str(e), 404)
    except OperationalError:
        return store_unavailable("record remaining stock")
    except Exception:
        return internal_error("record remaining stock")
