# backend/bakery/routes/system.py
"""
System health and version endpoints.

The health check also reports whether the batch progress ticker is running,
which is the only background work this service does.
"""

import sys
import time
from flask import Blueprint, current_app

from ..extensions import db
from ..models import Batch, Product, User
from ..enums import BatchStatus
from ..services.batch_ticker import EXTENSION_KEY
from ..time_utils import utcnow, to_utc_z

system_bp = Blueprint("system", __name__)


def check_database_health() -> dict:
    """Check database connectivity with a few cheap counts."""
    start_time = time.time()
    try:
        user_count = db.session.query(User).count()
        product_count = db.session.query(Product).count()
        active_batches = db.session.query(Batch).filter(Batch.status == BatchStatus.ACTIVE).count()

        elapsed_ms = (time.time() - start_time) * 1000
        return {
            "status": "healthy",
            "latency_ms": round(elapsed_ms, 2),
            "details": {
                "users": user_count,
                "products": product_count,
                "active_batches": active_batches,
            }
        }
    except Exception:
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Database health check failed")
        return {
            "status": "unhealthy",
            "latency_ms": round(elapsed_ms, 2),
            "error": "Database error"
        }


def check_ticker_health() -> dict:
    ticker = current_app.extensions.get(EXTENSION_KEY)
    if ticker is None:
        return {"status": "healthy", "details": {"enabled": False}}
    return {
        "status": "healthy",
        "details": {
            "enabled": bool(current_app.config.get("BATCH_TICKER_ENABLED")),
            "running": ticker.is_running,
            "interval_seconds": ticker.interval,
        }
    }


@system_bp.get("/api/health")
def health():
    """
    Health check endpoint.

    Returns:
    - 200: database reachable
    - 503: database unhealthy
    """
    start_time = time.time()

    database_health = check_database_health()
    ticker_health = check_ticker_health()

    if database_health["status"] == "unhealthy":
        overall_status = "unhealthy"
        http_status = 503
    else:
        overall_status = "healthy"
        http_status = 200

    total_elapsed_ms = (time.time() - start_time) * 1000

    response = {
        "status": overall_status,
        "timestamp": to_utc_z(utcnow()),
        "total_latency_ms": round(total_elapsed_ms, 2),
        "checks": {
            "database": database_health,
            "batch_ticker": ticker_health,
        }
    }

    return response, http_status


@system_bp.get("/api/version")
def version():
    """Non-sensitive deployment information."""
    env = "production" if not current_app.debug else "development"

    return {
        "api_version": "0.1.0",
        "environment": env,
        "python_version": sys.version.split()[0],
        "timezone": current_app.config["BAKERY_TIMEZONE"],
        "server_time": to_utc_z(utcnow()),
    }
