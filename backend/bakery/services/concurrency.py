# Overview: Service-layer helpers for concurrency; retries, row locks and keyed shift guards.

from __future__ import annotations

import threading
import time
from contextlib import contextmanager

from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    """
    return query.with_for_update()


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.1):
    """
    Execute a DB operation with retry on concurrency-related failures.

    Retries on OperationalError (deadlocks, locks) and StaleDataError
    (optimistic locking conflicts). The final failure propagates so the
    route can report it as retryable.
    """
    last_exc = None
    for attempt in range(attempts):
        try:
            return func()
        except (OperationalError, StaleDataError) as exc:
            db.session.rollback()
            last_exc = exc
            if attempt >= attempts - 1:
                raise
            time.sleep(backoff_base * (2 ** attempt))
    if last_exc:
        raise last_exc


_guards_lock = threading.Lock()
_shift_guards: dict[tuple[int, str], threading.RLock] = {}


@contextmanager
def shift_guard(owner_id: int, shift: str):
    """
    Serialize report saves and sales clears for one (owner, shift).

    A clear waits for an in-flight save to finish so a report is never
    built from data that is being deleted underneath it. The guard is
    reentrant for the holding thread.
    """
    key = (owner_id, str(getattr(shift, "value", shift)))
    with _guards_lock:
        guard = _shift_guards.setdefault(key, threading.RLock())
    with guard:
        yield
