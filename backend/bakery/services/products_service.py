# backend/bakery/services/products_service.py
"""
Products Service

Products (bread types) are reference data: managers and owners create and
edit them; every event type refers to them. Products are deactivated rather
than deleted so historical events keep their reference.
"""
from __future__ import annotations

from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import Product
from ..validation import ConflictError, NotFoundError, ValidationError, optional_cents

PRODUCT_MUTABLE_FIELDS = {"name", "price_cents", "is_active"}


def _clean_name(value) -> str:
    name = str(value or "").strip()
    if not name:
        raise ValidationError("name is required")
    if len(name) > 255:
        raise ValidationError("name must be at most 255 characters")
    return name


def _clean_patch(patch: dict) -> dict:
    unknown = set(patch) - PRODUCT_MUTABLE_FIELDS
    if unknown:
        raise ValidationError(f"Unknown or read-only fields: {', '.join(sorted(unknown))}")
    clean = {}
    if "name" in patch:
        clean["name"] = _clean_name(patch["name"])
    if "price_cents" in patch:
        clean["price_cents"] = optional_cents(patch["price_cents"], "price_cents")
    if "is_active" in patch:
        if not isinstance(patch["is_active"], bool):
            raise ValidationError("is_active must be a boolean")
        clean["is_active"] = patch["is_active"]
    return clean


def list_products(*, include_inactive: bool = False) -> list[Product]:
    q = db.session.query(Product)
    if not include_inactive:
        q = q.filter(Product.is_active.is_(True))
    return q.order_by(Product.name.asc()).all()


def get_product(product_id: int) -> Product:
    product = db.session.get(Product, product_id)
    if product is None:
        raise NotFoundError(f"Product {product_id} not found")
    return product


def create_product(*, name, price_cents=None) -> Product:
    product = Product(name=_clean_name(name), price_cents=optional_cents(price_cents, "price_cents"), is_active=True)
    db.session.add(product)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ConflictError(f"Product '{product.name}' already exists")
    return product


def update_product(product_id: int, patch: dict) -> Product:
    clean = _clean_patch(patch or {})
    product = get_product(product_id)
    for k, v in clean.items():
        setattr(product, k, v)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ConflictError(f"Product '{clean.get('name')}' already exists")
    return product
