# Overview: Service-layer operations for production batches; lifecycle, progress and numbering.

"""
Batch Lifecycle Manager

================================================================================
STATE MACHINE
================================================================================

    planning --start--> active --(tick, progress >= 95)--> quality_check --complete--> completed
                          |  ^
                     pause|  |start (resume)
                          v  |
                         paused

    planning | active --cancel--> cancelled

completed and cancelled are terminal. No path reaches completed without
passing through active and quality_check.

PROGRESS:
    progress = clamp((now - start_at) / (estimated_minutes * 60000 ms) * 100, 0, 95)

Always recomputed from stored timestamps and the supplied instant, never
accumulated, so the tick cadence affects freshness only. Capped at 95 so
nothing shows 100% before the explicit complete. quality_check and paused
hold the last computed value; completed is fixed at 100.

NUMBERING:
    Batch numbers ("001", "002", ...) come from a per-product BatchSequence
    row bumped with a single UPDATE, and the insert retries on a unique
    constraint collision (e.g. with a hand-entered number).
================================================================================
"""

from __future__ import annotations

import logging
from datetime import datetime

from sqlalchemy import func, update
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..enums import BatchAction, BatchStatus, Shift, TERMINAL_BATCH_STATUSES
from ..models import Batch, BatchSequence, Product, ProductionEvent
from ..time_utils import utcnow
from ..validation import (
    ConflictError,
    NotFoundError,
    ValidationError,
    parse_shift,
    require_id,
    require_quantity,
)
from .concurrency import lock_for_update, run_with_retry
from . import inventory_service

logger = logging.getLogger(__name__)


PROGRESS_CAP = 95.0
QUALITY_CHECK_THRESHOLD = 95.0
DEFAULT_DURATION_MINUTES = 120
BATCH_NUMBER_PAD = 3
MAX_NUMBER_ATTEMPTS = 5


# Explicit (status, action) -> status edges. The automatic
# active -> quality_check edge is applied by tick_batch_progress only.
TRANSITIONS: dict[tuple[BatchStatus, BatchAction], BatchStatus] = {
    (BatchStatus.PLANNING, BatchAction.START): BatchStatus.ACTIVE,
    (BatchStatus.PAUSED, BatchAction.START): BatchStatus.ACTIVE,
    (BatchStatus.ACTIVE, BatchAction.PAUSE): BatchStatus.PAUSED,
    (BatchStatus.QUALITY_CHECK, BatchAction.COMPLETE): BatchStatus.COMPLETED,
    (BatchStatus.PLANNING, BatchAction.CANCEL): BatchStatus.CANCELLED,
    (BatchStatus.ACTIVE, BatchAction.CANCEL): BatchStatus.CANCELLED,
}


class BatchTransitionError(Exception):
    """
    Raised when an action is not allowed from the batch's current state.

    The batch is left untouched.
    """

    def __init__(self, current: BatchStatus, requested: BatchAction | str, batch_id: int | None = None):
        self.current = BatchStatus(current)
        self.requested = requested.value if isinstance(requested, BatchAction) else str(requested)
        self.batch_id = batch_id
        super().__init__(
            f"Invalid transition: cannot '{self.requested}' a batch in status '{self.current.value}'"
        )

    def to_dict(self) -> dict:
        return {
            "error": str(self),
            "current": self.current.value,
            "requested": self.requested,
            "batch_id": self.batch_id,
        }


def parse_action(action) -> BatchAction:
    if isinstance(action, BatchAction):
        return action
    try:
        return BatchAction(str(action).strip().lower())
    except ValueError:
        allowed = ", ".join(a.value for a in BatchAction)
        raise ValidationError(f"Invalid action '{action}'. Must be one of: {allowed}")


def next_status(current: BatchStatus, action: BatchAction) -> BatchStatus | None:
    """Target status for an explicit action, or None if the edge does not exist."""
    return TRANSITIONS.get((BatchStatus(current), action))


def allowed_actions(current: BatchStatus) -> list[BatchAction]:
    current = BatchStatus(current)
    return [action for (status, action) in TRANSITIONS if status == current]


# =============================================================================
# Progress (pure)
# =============================================================================

def progress_at(start_at: datetime | None, estimated_duration_minutes: int, now: datetime) -> float:
    if start_at is None or not estimated_duration_minutes:
        return 0.0
    elapsed_ms = (now - start_at).total_seconds() * 1000
    pct = elapsed_ms / (estimated_duration_minutes * 60000) * 100
    return max(0.0, min(pct, PROGRESS_CAP))


def compute_progress(batch: Batch, now: datetime) -> float:
    status = BatchStatus(batch.status)
    if status == BatchStatus.COMPLETED:
        return 100.0
    if status == BatchStatus.PLANNING:
        return 0.0
    if status == BatchStatus.ACTIVE:
        return progress_at(batch.start_at, batch.estimated_duration_minutes, now)
    # quality_check, paused, cancelled: held
    return float(batch.progress or 0.0)


def serialize_batch(batch: Batch, now: datetime | None = None) -> dict:
    """Batch as JSON, with progress computed at `now` instead of the stored cache."""
    body = batch.to_dict()
    body["progress"] = round(compute_progress(batch, now or utcnow()), 2)
    return body


def _refresh_progress(batch: Batch, now: datetime) -> bool:
    """Recompute an active batch's progress; returns True if it moved to quality_check."""
    if BatchStatus(batch.status) != BatchStatus.ACTIVE:
        return False
    batch.progress = compute_progress(batch, now)
    if batch.progress >= QUALITY_CHECK_THRESHOLD:
        batch.status = BatchStatus.QUALITY_CHECK
        logger.info("Batch %s (%s) reached quality check", batch.id, batch.batch_number)
        return True
    return False


# =============================================================================
# Numbering
# =============================================================================

def format_batch_number(number: int) -> str:
    return f"{number:0{BATCH_NUMBER_PAD}d}"


def allocate_batch_number(product_id: int) -> str:
    """
    Atomically allocate the next batch number for a product.

    Same approach as a document-number sequence: bump the row in one UPDATE,
    create it on first use, and fall back to the UPDATE if a concurrent
    creator inserted the row first.
    """
    stmt = (
        update(BatchSequence)
        .where(BatchSequence.product_id == product_id)
        .values(next_number=BatchSequence.next_number + 1)
    )

    result = db.session.execute(stmt)
    if result.rowcount:
        db.session.flush()
        current = db.session.query(BatchSequence.next_number).filter_by(product_id=product_id).scalar()
        return format_batch_number(current - 1)

    seq = BatchSequence(product_id=product_id, next_number=2)
    db.session.add(seq)
    try:
        db.session.flush()
        return format_batch_number(1)
    except IntegrityError:
        db.session.rollback()
        result = db.session.execute(stmt)
        if not result.rowcount:
            raise
        db.session.flush()
        current = db.session.query(BatchSequence.next_number).filter_by(product_id=product_id).scalar()
        return format_batch_number(current - 1)


def _number_taken(product_id: int, batch_number: str) -> bool:
    return db.session.query(Batch.id).filter_by(product_id=product_id, batch_number=batch_number).first() is not None


# =============================================================================
# Commands
# =============================================================================

def create_batch(
    *,
    product_id,
    shift,
    created_by_user_id,
    target_quantity=0,
    batch_number: str | None = None,
    estimated_duration_minutes=None,
    notes: str | None = None,
) -> Batch:
    """
    Create a batch in `planning`.

    A caller-supplied batch_number must be unused for the product
    (ConflictError otherwise). Without one, the next sequence number is
    issued, retrying past numbers that are already taken.
    """
    product_id = require_id(product_id, "product_id")
    created_by_user_id = require_id(created_by_user_id, "created_by_user_id")
    shift = parse_shift(shift)
    target_quantity = require_quantity(target_quantity, "target_quantity")
    if estimated_duration_minutes in (None, ""):
        estimated_duration_minutes = DEFAULT_DURATION_MINUTES
    estimated_duration_minutes = require_quantity(estimated_duration_minutes, "estimated_duration_minutes")
    if estimated_duration_minutes < 1:
        raise ValidationError("estimated_duration_minutes must be >= 1")
    if batch_number is not None:
        batch_number = str(batch_number).strip()
        if not batch_number:
            raise ValidationError("batch_number must not be blank")

    if db.session.get(Product, product_id) is None:
        raise NotFoundError(f"Product {product_id} not found")

    if batch_number is not None and _number_taken(product_id, batch_number):
        raise ConflictError(f"Batch number {batch_number} already exists for product {product_id}")

    def _issue_number() -> str:
        # Committed on its own so a failed batch insert cannot roll the counter back
        number = allocate_batch_number(product_id)
        db.session.commit()
        return number

    for attempt in range(MAX_NUMBER_ATTEMPTS):
        number = batch_number or run_with_retry(_issue_number)
        batch = Batch(
            product_id=product_id,
            batch_number=number,
            target_quantity=target_quantity,
            status=BatchStatus.PLANNING,
            estimated_duration_minutes=estimated_duration_minutes,
            progress=0.0,
            shift=shift,
            created_by_user_id=created_by_user_id,
            notes=notes,
        )
        db.session.add(batch)
        try:
            db.session.commit()
        except IntegrityError:
            db.session.rollback()
            if batch_number is not None:
                raise ConflictError(f"Batch number {batch_number} already exists for product {product_id}")
            logger.warning("Batch number %s collided for product %s (attempt %d)", number, product_id, attempt + 1)
            continue
        logger.info("Created batch %s for product %s", batch.batch_number, product_id)
        return batch

    raise ConflictError(f"Could not allocate a unique batch number for product {product_id}")


def get_batch(batch_id: int) -> Batch:
    batch = db.session.get(Batch, batch_id)
    if batch is None:
        raise NotFoundError(f"Batch {batch_id} not found")
    return batch


def _settle(auto_moved: bool) -> None:
    """Keep a due auto-transition when the requested action is rejected."""
    if auto_moved:
        db.session.commit()
    else:
        db.session.rollback()


def transition_batch(
    batch_id,
    action,
    *,
    now: datetime | None = None,
    actual_quantity=None,
) -> Batch:
    """
    Apply an explicit action (start | pause | complete | cancel).

    Before the action is checked, an active batch's progress is brought up
    to `now`; a batch already due for quality check is moved there first,
    exactly as the next tick would have done.

    Raises:
        ValidationError: unknown action, or a valid complete without actual_quantity
        NotFoundError: batch does not exist
        BatchTransitionError: edge not in TRANSITIONS, checked before
            actual_quantity (batch unchanged)
    """
    batch_id = require_id(batch_id, "batch_id")
    action = parse_action(action)
    now = now or utcnow()

    def _op() -> Batch:
        batch = lock_for_update(db.session.query(Batch).filter_by(id=batch_id)).first()
        if batch is None:
            raise NotFoundError(f"Batch {batch_id} not found")

        # The automatic edge is kept even when the requested action is rejected
        auto_moved = _refresh_progress(batch, now)
        current = BatchStatus(batch.status)
        target = next_status(current, action)
        if target is None:
            _settle(auto_moved)
            raise BatchTransitionError(current, action, batch_id=batch.id)

        quantity = None
        if action == BatchAction.COMPLETE:
            try:
                quantity = require_quantity(actual_quantity, "actual_quantity")
            except ValidationError:
                _settle(auto_moved)
                raise

        if action == BatchAction.START:
            if batch.start_at is None:
                batch.start_at = now
                batch.progress = 0.0
            batch.status = BatchStatus.ACTIVE
            _refresh_progress(batch, now)
        elif action == BatchAction.PAUSE:
            batch.progress = progress_at(batch.start_at, batch.estimated_duration_minutes, now)
            batch.status = BatchStatus.PAUSED
        elif action == BatchAction.COMPLETE:
            batch.status = BatchStatus.COMPLETED
            batch.end_at = now
            batch.actual_quantity = quantity
            if batch.start_at is not None:
                batch.actual_duration_minutes = int((now - batch.start_at).total_seconds() // 60)
            batch.progress = 100.0
        elif action == BatchAction.CANCEL:
            batch.status = BatchStatus.CANCELLED
            batch.end_at = now

        db.session.commit()
        logger.info("Batch %s: %s -> %s", batch.id, current.value, BatchStatus(batch.status).value)
        return batch

    return run_with_retry(_op)


def has_active_batches() -> bool:
    return db.session.query(Batch.id).filter(Batch.status == BatchStatus.ACTIVE).first() is not None


def tick_batch_progress(now: datetime | None = None) -> list[Batch]:
    """
    Recompute progress for every active batch at `now`.

    Applies the automatic active -> quality_check transition and returns the
    batches that made it. Pure function of stored timestamps and `now`: any
    scheduler, test or cron job can drive it.
    """
    now = now or utcnow()

    def _op() -> list[Batch]:
        batches = (
            db.session.query(Batch)
            .filter(Batch.status == BatchStatus.ACTIVE)
            .order_by(Batch.id.asc())
            .all()
        )
        moved = [batch for batch in batches if _refresh_progress(batch, now)]
        db.session.commit()
        if moved:
            logger.info("Progress tick moved %d batch(es) to quality check", len(moved))
        return moved

    return run_with_retry(_op)


def log_completed_batch(batch_id, *, recorded_by_user_id: int | None = None) -> ProductionEvent:
    """
    Record a completed batch's actual quantity as production, once.

    A second call returns the event already logged for the batch.
    """
    batch = get_batch(require_id(batch_id, "batch_id"))
    if BatchStatus(batch.status) != BatchStatus.COMPLETED:
        raise BatchTransitionError(batch.status, "log_production", batch_id=batch.id)

    existing = db.session.query(ProductionEvent).filter_by(batch_id=batch.id).first()
    if existing is not None:
        return existing

    try:
        return inventory_service.record_production(
            product_id=batch.product_id,
            quantity=batch.actual_quantity or 0,
            shift=batch.shift,
            recorded_by_user_id=recorded_by_user_id or batch.created_by_user_id,
            batch_id=batch.id,
            note=f"Batch {batch.batch_number}",
            occurred_at=batch.end_at,
        )
    except IntegrityError:
        db.session.rollback()
        return db.session.query(ProductionEvent).filter_by(batch_id=batch.id).one()


# =============================================================================
# Queries
# =============================================================================

def list_batches(
    *,
    shift: Shift | str | None = None,
    status: BatchStatus | str | None = None,
    product_id: int | None = None,
    limit: int = 200,
) -> list[Batch]:
    q = db.session.query(Batch)
    if shift:
        q = q.filter(Batch.shift == parse_shift(shift))
    if status:
        try:
            status = BatchStatus(status)
        except ValueError:
            allowed = ", ".join(s.value for s in BatchStatus)
            raise ValidationError(f"Invalid status '{status}'. Must be one of: {allowed}")
        q = q.filter(Batch.status == status)
    if product_id is not None:
        q = q.filter(Batch.product_id == product_id)
    return q.order_by(Batch.created_at.desc(), Batch.id.desc()).limit(limit).all()


def batch_stats(*, shift: Shift | str | None = None, today_start: datetime | None = None) -> dict:
    """Counts, quantity totals, completion and efficiency rates."""
    q = db.session.query(
        Batch.status,
        func.count(Batch.id),
        func.coalesce(func.sum(Batch.target_quantity), 0),
        func.coalesce(func.sum(Batch.actual_quantity), 0),
    )
    if shift:
        shift = parse_shift(shift)
        q = q.filter(Batch.shift == shift)
    rows = q.group_by(Batch.status).all()

    counts = {s: 0 for s in BatchStatus}
    total_target = 0
    total_actual = 0
    for status, count, target, actual in rows:
        counts[BatchStatus(status)] = int(count)
        total_target += int(target or 0)
        total_actual += int(actual or 0)
    total = sum(counts.values())

    today_count = None
    if today_start is not None:
        tq = db.session.query(func.count(Batch.id)).filter(Batch.created_at >= today_start)
        if shift:
            tq = tq.filter(Batch.shift == shift)
        today_count = int(tq.scalar() or 0)

    return {
        "shift": shift.value if isinstance(shift, Shift) else "all",
        "total_batches": total,
        "by_status": {s.value: counts[s] for s in BatchStatus},
        "active_batches": counts[BatchStatus.ACTIVE],
        "completed_batches": counts[BatchStatus.COMPLETED],
        "cancelled_batches": counts[BatchStatus.CANCELLED],
        "terminal_batches": sum(counts[s] for s in TERMINAL_BATCH_STATUSES),
        "today_batches": today_count,
        "total_target_quantity": total_target,
        "total_actual_quantity": total_actual,
        "completion_rate": (counts[BatchStatus.COMPLETED] / total * 100) if total else 0.0,
        "efficiency_rate": (total_actual / total_target * 100) if total_target else 0.0,
    }
