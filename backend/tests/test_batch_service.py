"""
Batch lifecycle tests.

Verifies:
- Only the edges in the transition table are accepted; anything else raises
  BatchTransitionError and leaves the batch unchanged
- Progress is a clamped function of start_at, duration and `now`
- The automatic active -> quality_check edge fires at 95%
- Batch numbers are unique per product, issued or hand-entered
- Completed batches log production exactly once
"""

from datetime import datetime, timedelta

import pytest

from bakery.enums import BatchAction, BatchStatus, Shift
from bakery.models import Batch, ProductionEvent
from bakery.services import batch_service
from bakery.services.batch_service import (
    PROGRESS_CAP,
    TRANSITIONS,
    BatchTransitionError,
    allowed_actions,
    compute_progress,
    progress_at,
)
from bakery.services.inventory_service import reconcile
from bakery.validation import ConflictError, NotFoundError, ValidationError


T0 = datetime(2026, 3, 14, 6, 0)


def _create(product, user, **kwargs):
    kwargs.setdefault("shift", Shift.MORNING)
    kwargs.setdefault("target_quantity", 100)
    return batch_service.create_batch(product_id=product.id, created_by_user_id=user.id, **kwargs)


def _started(product, user, *, at=T0, minutes=100):
    batch = _create(product, user, estimated_duration_minutes=minutes)
    return batch_service.transition_batch(batch.id, "start", now=at)


def _batch_in(db_session, product, user, status: BatchStatus, number: str) -> Batch:
    batch = Batch(
        product_id=product.id,
        batch_number=number,
        target_quantity=10,
        status=status,
        estimated_duration_minutes=100,
        progress=0.0,
        shift=Shift.MORNING,
        created_by_user_id=user.id,
        start_at=None if status == BatchStatus.PLANNING else T0,
    )
    db_session.add(batch)
    db_session.commit()
    return batch


# =============================================================================
# PROGRESS (pure)
# =============================================================================


class TestProgress:

    def test_not_started_is_zero(self):
        assert progress_at(None, 100, T0) == 0.0

    def test_linear_before_cap(self):
        assert progress_at(T0, 100, T0 + timedelta(minutes=50)) == pytest.approx(50.0)

    def test_clock_skew_clamps_at_zero(self):
        assert progress_at(T0, 100, T0 - timedelta(minutes=5)) == 0.0

    @pytest.mark.parametrize("minutes", [95, 97, 100, 150, 10_000])
    def test_capped_below_100(self, minutes):
        assert progress_at(T0, 100, T0 + timedelta(minutes=minutes)) == PROGRESS_CAP

    def test_compute_progress_by_status(self):
        batch = Batch(status=BatchStatus.COMPLETED, progress=95.0, start_at=T0, estimated_duration_minutes=100)
        assert compute_progress(batch, T0) == 100.0
        batch.status = BatchStatus.PLANNING
        assert compute_progress(batch, T0 + timedelta(hours=5)) == 0.0
        batch.status = BatchStatus.PAUSED
        batch.progress = 40.0
        assert compute_progress(batch, T0 + timedelta(hours=5)) == 40.0


# =============================================================================
# TRANSITIONS
# =============================================================================


class TestTransitionTable:

    def test_terminal_states_have_no_actions(self):
        assert allowed_actions(BatchStatus.COMPLETED) == []
        assert allowed_actions(BatchStatus.CANCELLED) == []

    def test_completed_only_reachable_from_quality_check(self):
        sources = {src for (src, _), dst in TRANSITIONS.items() if dst == BatchStatus.COMPLETED}
        assert sources == {BatchStatus.QUALITY_CHECK}

    def test_quality_check_only_entered_automatically(self):
        assert BatchStatus.QUALITY_CHECK not in TRANSITIONS.values()

    @pytest.mark.parametrize("status", list(BatchStatus))
    @pytest.mark.parametrize("action", list(BatchAction))
    def test_closure(self, db_session, manager, white_bread, status, action):
        batch = _batch_in(db_session, white_bread, manager, status, number="900")
        allowed = (status, action) in TRANSITIONS

        if allowed:
            result = batch_service.transition_batch(batch.id, action, now=T0, actual_quantity=5)
            assert BatchStatus(result.status) == TRANSITIONS[(status, action)]
        else:
            with pytest.raises(BatchTransitionError) as exc:
                batch_service.transition_batch(batch.id, action, now=T0, actual_quantity=5)
            assert exc.value.current == status
            assert exc.value.requested == action.value
            db_session.expire_all()
            assert BatchStatus(db_session.get(Batch, batch.id).status) == status

    def test_error_payload(self):
        err = BatchTransitionError(BatchStatus.COMPLETED, BatchAction.START, batch_id=7)
        assert err.to_dict() == {
            "error": str(err),
            "current": "completed",
            "requested": "start",
            "batch_id": 7,
        }


class TestLifecycle:

    def test_create_starts_in_planning(self, db_session, manager, white_bread):
        batch = _create(white_bread, manager)
        assert BatchStatus(batch.status) == BatchStatus.PLANNING
        assert batch.progress == 0.0
        assert batch.estimated_duration_minutes == 120

    def test_start_sets_start_at(self, db_session, manager, white_bread):
        batch = _started(white_bread, manager)
        assert BatchStatus(batch.status) == BatchStatus.ACTIVE
        assert batch.start_at == T0
        assert batch.progress == 0.0

    def test_tick_moves_to_quality_check_and_holds(self, db_session, manager, white_bread):
        batch = _started(white_bread, manager, minutes=100)

        assert batch_service.tick_batch_progress(T0 + timedelta(minutes=50)) == []
        moved = batch_service.tick_batch_progress(T0 + timedelta(minutes=97))
        assert [b.id for b in moved] == [batch.id]
        assert BatchStatus(batch.status) == BatchStatus.QUALITY_CHECK
        assert batch.progress == PROGRESS_CAP

        # No completion yet: value stays held, never 100
        assert batch_service.tick_batch_progress(T0 + timedelta(minutes=110)) == []
        assert compute_progress(batch, T0 + timedelta(minutes=110)) == PROGRESS_CAP

    def test_complete_records_quantity_and_duration(self, db_session, manager, white_bread):
        batch = _started(white_bread, manager, minutes=120)
        batch_service.tick_batch_progress(T0 + timedelta(minutes=120))

        done = batch_service.transition_batch(
            batch.id, "complete", now=T0 + timedelta(minutes=125), actual_quantity=96
        )
        assert BatchStatus(done.status) == BatchStatus.COMPLETED
        assert done.actual_quantity == 96
        assert done.actual_duration_minutes == 125
        assert done.end_at == T0 + timedelta(minutes=125)
        assert done.progress == 100.0

    def test_complete_requires_actual_quantity(self, db_session, manager, white_bread):
        batch = _started(white_bread, manager)
        batch_service.tick_batch_progress(T0 + timedelta(minutes=100))
        with pytest.raises(ValidationError):
            batch_service.transition_batch(batch.id, "complete", now=T0 + timedelta(minutes=101))

    def test_complete_from_planning_without_quantity_is_invalid_transition(self, db_session, manager, white_bread):
        batch = _create(white_bread, manager)
        with pytest.raises(BatchTransitionError) as exc:
            batch_service.transition_batch(batch.id, "complete")
        assert exc.value.current == BatchStatus.PLANNING
        assert exc.value.requested == "complete"
        db_session.expire_all()
        assert BatchStatus(db_session.get(Batch, batch.id).status) == BatchStatus.PLANNING

    def test_due_batch_keeps_quality_check_when_quantity_missing(self, db_session, manager, white_bread):
        batch = _started(white_bread, manager, minutes=100)
        with pytest.raises(ValidationError):
            batch_service.transition_batch(batch.id, "complete", now=T0 + timedelta(minutes=99))
        db_session.expire_all()
        assert BatchStatus(db_session.get(Batch, batch.id).status) == BatchStatus.QUALITY_CHECK

    def test_due_batch_moves_to_quality_check_even_if_action_rejected(self, db_session, manager, white_bread):
        batch = _started(white_bread, manager, minutes=100)
        with pytest.raises(BatchTransitionError) as exc:
            batch_service.transition_batch(batch.id, "pause", now=T0 + timedelta(minutes=99))
        assert exc.value.current == BatchStatus.QUALITY_CHECK
        db_session.expire_all()
        assert BatchStatus(db_session.get(Batch, batch.id).status) == BatchStatus.QUALITY_CHECK

    def test_complete_directly_when_due(self, db_session, manager, white_bread):
        batch = _started(white_bread, manager, minutes=100)
        done = batch_service.transition_batch(
            batch.id, "complete", now=T0 + timedelta(minutes=100), actual_quantity=80
        )
        assert BatchStatus(done.status) == BatchStatus.COMPLETED

    def test_pause_and_resume_keep_start_at(self, db_session, manager, white_bread):
        batch = _started(white_bread, manager, minutes=120)

        paused = batch_service.transition_batch(batch.id, "pause", now=T0 + timedelta(minutes=30))
        assert BatchStatus(paused.status) == BatchStatus.PAUSED
        assert paused.progress == pytest.approx(25.0)

        # Paused batches are not ticked
        batch_service.tick_batch_progress(T0 + timedelta(minutes=45))
        assert paused.progress == pytest.approx(25.0)

        resumed = batch_service.transition_batch(batch.id, "start", now=T0 + timedelta(minutes=60))
        assert BatchStatus(resumed.status) == BatchStatus.ACTIVE
        assert resumed.start_at == T0
        assert resumed.progress == pytest.approx(50.0)

    def test_cancel_sets_end_at(self, db_session, manager, white_bread):
        batch = _started(white_bread, manager)
        cancelled = batch_service.transition_batch(batch.id, "cancel", now=T0 + timedelta(minutes=5))
        assert BatchStatus(cancelled.status) == BatchStatus.CANCELLED
        assert cancelled.end_at == T0 + timedelta(minutes=5)

    def test_unknown_action(self, db_session, manager, white_bread):
        batch = _create(white_bread, manager)
        with pytest.raises(ValidationError):
            batch_service.transition_batch(batch.id, "bake")

    def test_unknown_batch(self, db_session):
        with pytest.raises(NotFoundError):
            batch_service.transition_batch(9999, "start")

    def test_has_active_batches(self, db_session, manager, white_bread):
        assert not batch_service.has_active_batches()
        _started(white_bread, manager)
        assert batch_service.has_active_batches()


# =============================================================================
# NUMBERING
# =============================================================================


class TestBatchNumbering:

    def test_sequential_per_product(self, db_session, manager, white_bread, wheat_bread):
        numbers = [_create(white_bread, manager).batch_number for _ in range(3)]
        assert numbers == ["001", "002", "003"]
        assert _create(wheat_bread, manager).batch_number == "001"

    def test_manual_number_must_be_unused(self, db_session, manager, white_bread, wheat_bread):
        _create(white_bread, manager, batch_number="042")
        with pytest.raises(ConflictError):
            _create(white_bread, manager, batch_number="042")
        # Same number on another product is fine
        assert _create(wheat_bread, manager, batch_number="042").batch_number == "042"

    def test_issued_number_skips_hand_entered_one(self, db_session, manager, white_bread):
        _create(white_bread, manager, batch_number="001")
        issued = _create(white_bread, manager)
        assert issued.batch_number == "002"
        numbers = [b.batch_number for b in db_session.query(Batch).filter_by(product_id=white_bread.id)]
        assert len(numbers) == len(set(numbers))

    def test_validation_before_store(self, db_session, manager, white_bread):
        with pytest.raises(ValidationError):
            _create(white_bread, manager, target_quantity=-1)
        with pytest.raises(ValidationError):
            _create(white_bread, manager, estimated_duration_minutes=0)
        with pytest.raises(ValidationError):
            _create(white_bread, manager, batch_number="   ")
        assert db_session.query(Batch).count() == 0

    def test_unknown_product(self, db_session, manager):
        with pytest.raises(NotFoundError):
            batch_service.create_batch(product_id=9999, shift="morning", created_by_user_id=manager.id)


# =============================================================================
# PRODUCTION LOGGING & STATS
# =============================================================================


class TestLogCompletedBatch:

    def _completed(self, product, user, quantity=90):
        batch = _started(product, user, minutes=100)
        return batch_service.transition_batch(
            batch.id, "complete", now=T0 + timedelta(minutes=100), actual_quantity=quantity
        )

    def test_logs_once(self, db_session, manager, white_bread):
        batch = self._completed(white_bread, manager)

        first = batch_service.log_completed_batch(batch.id)
        second = batch_service.log_completed_batch(batch.id)
        assert first.id == second.id
        assert first.quantity == 90
        assert first.batch_id == batch.id
        assert db_session.query(ProductionEvent).count() == 1

    def test_logged_production_feeds_inventory(self, db_session, manager, white_bread):
        batch = self._completed(white_bread, manager, quantity=40)
        batch_service.log_completed_batch(batch.id)

        figures = reconcile(shift=Shift.MORNING, day=T0.date())
        assert figures.get(white_bread.id).produced_units == 40

    def test_only_completed_batches(self, db_session, manager, white_bread):
        batch = _started(white_bread, manager)
        with pytest.raises(BatchTransitionError):
            batch_service.log_completed_batch(batch.id)


class TestBatchStats:

    def test_rates(self, db_session, manager, white_bread):
        _create(white_bread, manager, target_quantity=100)
        batch = _started(white_bread, manager, minutes=100)
        batch_service.transition_batch(batch.id, "complete", now=T0 + timedelta(minutes=100), actual_quantity=90)

        stats = batch_service.batch_stats(today_start=datetime(2000, 1, 1))
        assert stats["total_batches"] == 2
        assert stats["by_status"]["completed"] == 1
        assert stats["by_status"]["planning"] == 1
        assert stats["completion_rate"] == pytest.approx(50.0)
        assert stats["efficiency_rate"] == pytest.approx(45.0)
        assert stats["today_batches"] == 2

    def test_shift_filter_and_empty(self, db_session, manager, white_bread):
        _create(white_bread, manager, shift=Shift.NIGHT)
        stats = batch_service.batch_stats(shift="morning")
        assert stats["shift"] == "morning"
        assert stats["total_batches"] == 0
        assert stats["completion_rate"] == 0.0
        assert stats["efficiency_rate"] == 0.0
