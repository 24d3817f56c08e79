# Overview: Service-layer operations for inventory; shift-scoped reconciliation and event recording.

"""
Inventory Reconciliation Engine

Three independent, append-only sources feed one per-product snapshot:

    production_events      shift-wide, counted for every owner
    sales_events           per seller, optionally scoped to one owner
    remaining_stock        manual leftover counts, not scoped to a shift

Unit figures and monetary figures are combined differently on purpose:

    current_stock_units       = produced_units - sold_units          (signed)
    available_units           = max(0, produced_units - sold_units)  (clamped)
    remaining_from_production = max(0, produced_value - sold_value)  (clamped)
    remaining_target          = remaining_from_production + remaining_manual_value
    sales_target              = produced_value

Both the signed and the clamped unit views are exposed under separate names;
they are shown on different screens and are not interchangeable. Sale line
amounts are NOT floored at zero; only remaining_from_production is.

The computation (compute_figures) is pure and works on plain line records;
reconcile() only loads rows for one shift window and hands them over.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Iterable, Sequence

from sqlalchemy import or_

from ..extensions import db
from ..enums import Shift, StockStatus
from ..models import Product, ProductionEvent, SalesEvent, RemainingStockEntry
from ..time_utils import utcnow
from ..validation import (
    NotFoundError,
    ValidationError,
    optional_cents,
    parse_shift,
    require_id,
    require_quantity,
)
from .concurrency import run_with_retry, shift_guard
from .shift_service import ShiftWindow, resolve_shift_window


STOCK_HIGH_RATIO = 0.6
STOCK_LOW_RATIO = 0.2
TOP_PRODUCTS_LIMIT = 3


# =============================================================================
# Pure computation
# =============================================================================

@dataclass(frozen=True)
class ProductRef:
    id: int
    name: str
    price_cents: int | None = None

    @property
    def unit_price_cents(self) -> int:
        return self.price_cents or 0


@dataclass(frozen=True)
class ProductionLine:
    product_id: int
    quantity: int


@dataclass(frozen=True)
class SaleLine:
    product_id: int
    quantity: int
    unit_price_cents: int | None = None
    discount_cents: int | None = None


@dataclass(frozen=True)
class RemainingLine:
    product_id: int
    quantity: int


def line_amount(quantity: int, default_price_cents: int | None, override_cents: int | None = None,
                discount_cents: int | None = None) -> int:
    """quantity * effective price - discount. Not clamped."""
    price = override_cents if override_cents is not None else (default_price_cents or 0)
    return quantity * price - (discount_cents or 0)


def classify_stock(current_stock_units: int, produced_units: int) -> StockStatus:
    """Order matters: out wins over high/low."""
    if current_stock_units <= 0:
        return StockStatus.OUT
    if current_stock_units > produced_units * STOCK_HIGH_RATIO:
        return StockStatus.HIGH
    if current_stock_units < produced_units * STOCK_LOW_RATIO:
        return StockStatus.LOW
    return StockStatus.NORMAL


@dataclass
class ProductFigures:
    product_id: int
    product_name: str
    unit_price_cents: int = 0
    produced_units: int = 0
    sold_units: int = 0
    produced_value: int = 0
    sold_value: int = 0
    remaining_manual_units: int = 0
    remaining_manual_value: int = 0

    @property
    def current_stock_units(self) -> int:
        return self.produced_units - self.sold_units

    @property
    def available_units(self) -> int:
        return max(0, self.produced_units - self.sold_units)

    @property
    def remaining_from_production(self) -> int:
        return max(0, self.produced_value - self.sold_value)

    @property
    def remaining_target(self) -> int:
        return self.remaining_from_production + self.remaining_manual_value

    @property
    def sales_target(self) -> int:
        return self.produced_value

    @property
    def status(self) -> StockStatus:
        return classify_stock(self.current_stock_units, self.produced_units)

    def to_dict(self) -> dict:
        return {
            "product_id": self.product_id,
            "product_name": self.product_name,
            "unit_price_cents": self.unit_price_cents,
            "produced_units": self.produced_units,
            "sold_units": self.sold_units,
            "current_stock_units": self.current_stock_units,
            "available_units": self.available_units,
            "produced_value": self.produced_value,
            "sold_value": self.sold_value,
            "remaining_manual_units": self.remaining_manual_units,
            "remaining_manual_value": self.remaining_manual_value,
            "remaining_from_production": self.remaining_from_production,
            "remaining_target": self.remaining_target,
            "sales_target": self.sales_target,
            "status": self.status.value,
        }


@dataclass
class InventoryFigures:
    shift: Shift
    day: date
    owner_id: int | None = None
    products: list[ProductFigures] = field(default_factory=list)

    @property
    def total_produced_units(self) -> int:
        return sum(p.produced_units for p in self.products)

    @property
    def total_sold_units(self) -> int:
        return sum(p.sold_units for p in self.products)

    @property
    def total_produced_value(self) -> int:
        return sum(p.produced_value for p in self.products)

    @property
    def total_sold_value(self) -> int:
        return sum(p.sold_value for p in self.products)

    @property
    def total_remaining_target(self) -> int:
        return sum(p.remaining_target for p in self.products)

    @property
    def low_stock_count(self) -> int:
        return sum(1 for p in self.products if p.status == StockStatus.LOW)

    @property
    def out_of_stock_count(self) -> int:
        return sum(1 for p in self.products if p.status == StockStatus.OUT)

    @property
    def alert_count(self) -> int:
        return self.low_stock_count + self.out_of_stock_count

    def top_products(self, limit: int = TOP_PRODUCTS_LIMIT) -> list[ProductFigures]:
        # sorted() is stable, so equal sold_value keeps input order
        return sorted(self.products, key=lambda p: p.sold_value, reverse=True)[:limit]

    def get(self, product_id: int) -> ProductFigures | None:
        for p in self.products:
            if p.product_id == product_id:
                return p
        return None

    def to_dict(self) -> dict:
        return {
            "shift": self.shift.value,
            "day": self.day.isoformat(),
            "owner_id": self.owner_id,
            "products": [p.to_dict() for p in self.products],
            "totals": {
                "produced_units": self.total_produced_units,
                "sold_units": self.total_sold_units,
                "produced_value": self.total_produced_value,
                "sold_value": self.total_sold_value,
                "remaining_target": self.total_remaining_target,
                "low_stock_count": self.low_stock_count,
                "out_of_stock_count": self.out_of_stock_count,
                "alert_count": self.alert_count,
            },
            "top_products": [
                {"product_id": p.product_id, "product_name": p.product_name, "sold_value": p.sold_value}
                for p in self.top_products()
            ],
        }


def compute_figures(
    products: Sequence[ProductRef],
    production: Iterable[ProductionLine],
    sales: Iterable[SaleLine],
    remaining: Iterable[RemainingLine] = (),
    *,
    include_idle: bool = False,
) -> list[ProductFigures]:
    """
    Fold the three sources into per-product figures.

    Output order follows `products`. Lines for products missing from
    `products` are valued at price 0 under a placeholder name rather than
    rejected. Products with no lines at all are dropped unless include_idle.
    """
    catalog = {p.id: p for p in products}
    figures: dict[int, ProductFigures] = {}

    def _slot(product_id: int) -> ProductFigures:
        slot = figures.get(product_id)
        if slot is None:
            ref = catalog.get(product_id) or ProductRef(id=product_id, name="Unknown")
            slot = ProductFigures(product_id=ref.id, product_name=ref.name, unit_price_cents=ref.unit_price_cents)
            figures[product_id] = slot
        return slot

    if include_idle:
        for ref in products:
            _slot(ref.id)

    for line in production:
        slot = _slot(line.product_id)
        slot.produced_units += line.quantity
        slot.produced_value += line.quantity * slot.unit_price_cents

    for line in sales:
        slot = _slot(line.product_id)
        slot.sold_units += line.quantity
        slot.sold_value += line_amount(
            line.quantity, slot.unit_price_cents, line.unit_price_cents, line.discount_cents
        )

    for line in remaining:
        slot = _slot(line.product_id)
        slot.remaining_manual_units += line.quantity
        slot.remaining_manual_value += line.quantity * slot.unit_price_cents

    order = {p.id: i for i, p in enumerate(products)}
    return sorted(figures.values(), key=lambda f: order.get(f.product_id, len(order)))


def compute_product_figures(
    product: ProductRef,
    production: Iterable[ProductionLine],
    sales: Iterable[SaleLine],
    remaining: Iterable[RemainingLine] = (),
) -> ProductFigures:
    """Figures for a single product; lines for other products are ignored."""
    pid = product.id
    (figures,) = compute_figures(
        [product],
        [l for l in production if l.product_id == pid],
        [l for l in sales if l.product_id == pid],
        [l for l in remaining if l.product_id == pid],
        include_idle=True,
    )
    return figures


# =============================================================================
# Store-backed reconciliation
# =============================================================================

def _load_product_refs(product_ids: set[int], *, include_idle: bool) -> list[ProductRef]:
    q = db.session.query(Product)
    if include_idle:
        if product_ids:
            q = q.filter(or_(Product.is_active.is_(True), Product.id.in_(product_ids)))
        else:
            q = q.filter(Product.is_active.is_(True))
    else:
        if not product_ids:
            return []
        q = q.filter(Product.id.in_(product_ids))
    return [ProductRef(id=p.id, name=p.name, price_cents=p.price_cents) for p in q.order_by(Product.id.asc())]


def reconcile_window(
    window: ShiftWindow,
    *,
    product_id: int | None = None,
    owner_id: int | None = None,
    include_idle: bool = False,
) -> InventoryFigures:
    """Reconcile for an already-resolved shift window."""
    figures = InventoryFigures(shift=window.shift, day=window.day, owner_id=owner_id)

    if product_id is not None and db.session.get(Product, product_id) is None:
        return figures

    prod_q = db.session.query(ProductionEvent.product_id, ProductionEvent.quantity).filter(
        ProductionEvent.shift == window.shift,
        ProductionEvent.occurred_at >= window.start,
        ProductionEvent.occurred_at < window.end,
    )
    sales_q = db.session.query(
        SalesEvent.product_id,
        SalesEvent.quantity,
        SalesEvent.unit_price_cents,
        SalesEvent.discount_cents,
    ).filter(
        SalesEvent.shift == window.shift,
        SalesEvent.occurred_at >= window.start,
        SalesEvent.occurred_at < window.end,
    )
    remaining_q = db.session.query(RemainingStockEntry.product_id, RemainingStockEntry.quantity)

    if owner_id is not None:
        sales_q = sales_q.filter(SalesEvent.recorded_by_user_id == owner_id)
        remaining_q = remaining_q.filter(RemainingStockEntry.owner_user_id == owner_id)
    if product_id is not None:
        prod_q = prod_q.filter(ProductionEvent.product_id == product_id)
        sales_q = sales_q.filter(SalesEvent.product_id == product_id)
        remaining_q = remaining_q.filter(RemainingStockEntry.product_id == product_id)

    production = [ProductionLine(r.product_id, r.quantity) for r in prod_q.order_by(ProductionEvent.id)]
    sales = [
        SaleLine(r.product_id, r.quantity, r.unit_price_cents, r.discount_cents)
        for r in sales_q.order_by(SalesEvent.id)
    ]
    remaining = [RemainingLine(r.product_id, r.quantity) for r in remaining_q.order_by(RemainingStockEntry.id)]

    if product_id is not None:
        refs = _load_product_refs({product_id}, include_idle=False)
        if not include_idle and not (production or sales or remaining):
            return figures
    else:
        referenced = {l.product_id for l in production} | {l.product_id for l in sales} | {
            l.product_id for l in remaining
        }
        refs = _load_product_refs(referenced, include_idle=include_idle)

    figures.products = compute_figures(refs, production, sales, remaining, include_idle=include_idle)
    return figures


def reconcile(
    *,
    shift: Shift | str,
    day: date | None = None,
    product_id: int | None = None,
    owner_id: int | None = None,
    include_idle: bool = False,
    now: datetime | None = None,
) -> InventoryFigures:
    """
    Per-product inventory figures for one shift on one calendar day.

    Args:
        shift: explicit shift label; never read from ambient state
        day: local calendar day; defaults to today in BAKERY_TIMEZONE
        product_id: restrict to one product (unknown id -> empty figures)
        owner_id: restrict sales and remaining counts to one seller
        include_idle: list active products with no activity as zero rows

    Reads tolerate eventual consistency: a sale committed concurrently may or
    may not be included; the next poll picks it up.
    """
    window = resolve_shift_window(now or utcnow(), parse_shift(shift), day=day)
    return reconcile_window(window, product_id=product_id, owner_id=owner_id, include_idle=include_idle)


# =============================================================================
# Writes
# =============================================================================

def _require_product(product_id: int) -> Product:
    product = db.session.get(Product, product_id)
    if product is None:
        raise NotFoundError(f"Product {product_id} not found")
    return product


def record_production(
    *,
    product_id,
    quantity,
    shift,
    recorded_by_user_id: int | None = None,
    batch_id: int | None = None,
    note: str | None = None,
    occurred_at: datetime | None = None,
) -> ProductionEvent:
    """Append a production event. All input is validated before the store is touched."""
    product_id = require_id(product_id, "product_id")
    quantity = require_quantity(quantity)
    shift = parse_shift(shift)

    def _op() -> ProductionEvent:
        _require_product(product_id)
        event = ProductionEvent(
            product_id=product_id,
            quantity=quantity,
            shift=shift,
            recorded_by_user_id=recorded_by_user_id,
            batch_id=batch_id,
            note=note,
            occurred_at=occurred_at or utcnow(),
        )
        db.session.add(event)
        db.session.commit()
        return event

    return run_with_retry(_op)


def record_sale(
    *,
    product_id,
    quantity,
    shift,
    recorded_by_user_id,
    unit_price_cents=None,
    discount_cents=None,
    occurred_at: datetime | None = None,
) -> SalesEvent:
    """Append a sales event for one seller."""
    product_id = require_id(product_id, "product_id")
    recorded_by_user_id = require_id(recorded_by_user_id, "recorded_by_user_id")
    quantity = require_quantity(quantity)
    shift = parse_shift(shift)
    unit_price_cents = optional_cents(unit_price_cents, "unit_price_cents")
    discount_cents = optional_cents(discount_cents, "discount_cents")

    def _op() -> SalesEvent:
        _require_product(product_id)
        event = SalesEvent(
            product_id=product_id,
            quantity=quantity,
            unit_price_cents=unit_price_cents,
            discount_cents=discount_cents,
            shift=shift,
            recorded_by_user_id=recorded_by_user_id,
            occurred_at=occurred_at or utcnow(),
        )
        db.session.add(event)
        db.session.commit()
        return event

    return run_with_retry(_op)


def record_remaining_stock(owner_id, lines: Iterable[dict]) -> list[dict]:
    """
    Record manual leftover counts for one owner.

    Each line is {"product_id", "quantity"}. An existing (owner, product)
    entry is overwritten. A zero quantity removes an existing entry and is
    otherwise skipped.

    Returns one result per line: {"product_id", "action", "quantity",
    "previous_quantity"} with action in inserted|updated|removed|skipped.
    """
    owner_id = require_id(owner_id, "owner_id")
    parsed: list[tuple[int, int]] = []
    for raw in lines or []:
        if not isinstance(raw, dict):
            raise ValidationError("each remaining stock line must be an object")
        parsed.append((require_id(raw.get("product_id"), "product_id"), require_quantity(raw.get("quantity"))))
    if not parsed:
        raise ValidationError("at least one remaining stock line is required")

    def _op() -> list[dict]:
        results = []
        for product_id, quantity in parsed:
            _require_product(product_id)
            entry = db.session.query(RemainingStockEntry).filter_by(
                owner_user_id=owner_id, product_id=product_id
            ).first()
            previous = entry.quantity if entry else None

            if quantity == 0:
                if entry is None:
                    action = "skipped"
                else:
                    db.session.delete(entry)
                    action = "removed"
            elif entry is None:
                db.session.add(RemainingStockEntry(owner_user_id=owner_id, product_id=product_id, quantity=quantity))
                action = "inserted"
            else:
                entry.quantity = quantity
                entry.updated_at = utcnow()
                action = "updated"

            results.append({
                "product_id": product_id,
                "action": action,
                "quantity": quantity,
                "previous_quantity": previous,
            })
        db.session.commit()
        return results

    return run_with_retry(_op)


def clear_shift_sales(owner_id, shift) -> int:
    """
    Delete every sales event an owner recorded for a shift ("end shift").

    DESTRUCTIVE: callers must have explicit user confirmation. Runs under the
    same (owner, shift) guard as report saves, so it waits for an in-flight
    save to complete first.
    """
    owner_id = require_id(owner_id, "owner_id")
    shift = parse_shift(shift)

    with shift_guard(owner_id, shift):
        def _op() -> int:
            deleted = (
                db.session.query(SalesEvent)
                .filter(SalesEvent.recorded_by_user_id == owner_id, SalesEvent.shift == shift)
                .delete(synchronize_session=False)
            )
            db.session.commit()
            return int(deleted or 0)

        return run_with_retry(_op)


# =============================================================================
# Read helpers
# =============================================================================

def list_sales(*, shift, day: date | None = None, owner_id: int | None = None,
               now: datetime | None = None) -> list[SalesEvent]:
    window = resolve_shift_window(now or utcnow(), parse_shift(shift), day=day)
    q = db.session.query(SalesEvent).filter(
        SalesEvent.shift == window.shift,
        SalesEvent.occurred_at >= window.start,
        SalesEvent.occurred_at < window.end,
    )
    if owner_id is not None:
        q = q.filter(SalesEvent.recorded_by_user_id == owner_id)
    return q.order_by(SalesEvent.occurred_at.desc(), SalesEvent.id.desc()).all()


def list_production(*, shift, day: date | None = None, now: datetime | None = None) -> list[ProductionEvent]:
    window = resolve_shift_window(now or utcnow(), parse_shift(shift), day=day)
    return (
        db.session.query(ProductionEvent)
        .filter(
            ProductionEvent.shift == window.shift,
            ProductionEvent.occurred_at >= window.start,
            ProductionEvent.occurred_at < window.end,
        )
        .order_by(ProductionEvent.occurred_at.desc(), ProductionEvent.id.desc())
        .all()
    )


def list_remaining_stock(owner_id: int | None = None) -> list[RemainingStockEntry]:
    q = db.session.query(RemainingStockEntry)
    if owner_id is not None:
        q = q.filter_by(owner_user_id=owner_id)
    return q.order_by(RemainingStockEntry.product_id.asc()).all()
