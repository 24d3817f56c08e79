# Overview: Periodic batch progress recomputation that only runs while batches are active.

from __future__ import annotations

import logging
import threading
from datetime import datetime

from flask import Flask, current_app

from ..extensions import db
from . import batch_service

logger = logging.getLogger(__name__)

EXTENSION_KEY = "batch_ticker"


class BatchProgressTicker:
    """
    Drives tick_batch_progress on a threading.Timer cadence.

    At most one timer is scheduled at a time. After every tick the ticker
    checks for remaining active batches and, when there are none, does not
    reschedule, so no timer is left running while nothing is in the oven.
    ensure_running() is called whenever a batch becomes active.
    """

    def __init__(self, app: Flask, interval_seconds: float | None = None):
        self.app = app
        self.interval = float(interval_seconds or app.config.get("BATCH_TICK_INTERVAL_SECONDS", 90))
        self._lock = threading.Lock()
        self._timer: threading.Timer | None = None

    @property
    def is_running(self) -> bool:
        return self._timer is not None

    def ensure_running(self) -> bool:
        """Schedule the next tick if a batch is active and none is pending."""
        with self._lock:
            if self._timer is not None:
                return False
            with self.app.app_context():
                if not batch_service.has_active_batches():
                    return False
            self._schedule_locked()
            return True

    def stop(self) -> None:
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None

    def run_once(self, now: datetime | None = None) -> bool:
        """Tick once; returns True while at least one batch is still active."""
        with self.app.app_context():
            try:
                batch_service.tick_batch_progress(now)
                return batch_service.has_active_batches()
            finally:
                db.session.remove()

    def _schedule_locked(self) -> None:
        timer = threading.Timer(self.interval, self._run)
        timer.daemon = True
        self._timer = timer
        timer.start()

    def _run(self) -> None:
        with self._lock:
            self._timer = None
        try:
            keep_going = self.run_once()
        except Exception:
            # Store failures are transient; try again on the next cadence
            logger.exception("Batch progress tick failed")
            keep_going = True
        if not keep_going:
            logger.info("No active batches; progress ticker stopped")
            return
        with self._lock:
            if self._timer is None:
                self._schedule_locked()


def init_ticker(app: Flask) -> BatchProgressTicker:
    ticker = BatchProgressTicker(app)
    app.extensions[EXTENSION_KEY] = ticker
    return ticker


def notify_batch_activity() -> None:
    """Called after a batch becomes active; starts the ticker when enabled."""
    if not current_app.config.get("BATCH_TICKER_ENABLED"):
        return
    ticker = current_app.extensions.get(EXTENSION_KEY)
    if ticker is not None:
        ticker.ensure_running()
