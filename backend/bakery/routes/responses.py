# Overview: Shared JSON error responses for API routes.

from flask import current_app, jsonify


def error(message: str, status: int, **extra):
    body = {"error": message}
    body.update(extra)
    return jsonify(body), status


def store_unavailable(what: str):
    """Transient store failure: logged, reported as retryable."""
    current_app.logger.exception("Store failure while trying to %s", what)
    return error("Data store temporarily unavailable, please retry", 503, retryable=True)


def internal_error(what: str):
    current_app.logger.exception("Failed to %s", what)
    return error("Internal server error", 500)
