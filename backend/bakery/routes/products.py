# Overview: Flask API routes for products operations; parses input and returns JSON responses.

# backend/bakery/routes/products.py
"""
Product (bread type) routes.

SECURITY: All routes require an identified user.
- Any role can list products (sellers need prices to record sales)
- Creating and editing products requires the manager or owner role
"""
from flask import Blueprint, jsonify, request

from ..decorators import is_manager, require_auth, require_role
from ..enums import Role
from ..services import products_service
from ..validation import ConflictError, NotFoundError, ValidationError
from .responses import error, internal_error

products_bp = Blueprint("products", __name__, url_prefix="/api/products")


@products_bp.get("")
@require_auth
def list_products_route():
    """
    Query params:
    - include_inactive: "true" to include deactivated products (managers only)
    """
    include_inactive = request.args.get("include_inactive", "false").lower() == "true"
    products = products_service.list_products(include_inactive=include_inactive and is_manager())
    return jsonify({"products": [p.to_dict() for p in products], "count": len(products)}), 200


@products_bp.post("")
@require_auth
@require_role(Role.MANAGER, Role.OWNER)
def create_product_route():
    data = request.get_json(silent=True) or {}
    try:
        product = products_service.create_product(name=data.get("name"), price_cents=data.get("price_cents"))
        return jsonify({"product": product.to_dict()}), 201
    except ValidationError as e:
        return error(str(e), 400)
    except ConflictError as e:
        return error(str(e), 409)
    except Exception:
        return internal_error("create product")


@products_bp.patch("/<int:product_id>")
@require_auth
@require_role(Role.MANAGER, Role.OWNER)
def update_product_route(product_id: int):
    data = request.get_json(silent=True) or {}
    try:
        product = products_service.update_product(product_id, data)
        return jsonify({"product": product.to_dict()}), 200
    except ValidationError as e:
        return error(str(e), 400)
    except NotFoundError as e:
        return error(str(e), 404)
    except ConflictError as e:
        return error(str(e), 409)
    except Exception:
        return internal_error("update product")
