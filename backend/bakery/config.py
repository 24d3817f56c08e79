# backend/bakery/config.py
from __future__ import annotations
import os


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/bakery.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///bakery.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Calendar days (and therefore shift aggregation) are cut in this zone
    BAKERY_TIMEZONE = os.environ.get("BAKERY_TIMEZONE", "Africa/Lagos")

    # Batch progress refresh cadence; a UX refresh, not a correctness boundary
    BATCH_TICK_INTERVAL_SECONDS = int(os.environ.get("BATCH_TICK_INTERVAL_SECONDS", "90"))
    BATCH_TICKER_ENABLED = os.environ.get("BATCH_TICKER_ENABLED", "true").lower() == "true"
    BATCH_DEFAULT_DURATION_MINUTES = int(os.environ.get("BATCH_DEFAULT_DURATION_MINUTES", "120"))

    # Advertised to polling clients of the inventory endpoint
    INVENTORY_POLL_INTERVAL_SECONDS = int(os.environ.get("INVENTORY_POLL_INTERVAL_SECONDS", "30"))
