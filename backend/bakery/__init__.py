# backend/bakery/__init__.py
from flask import Flask, request
from sqlalchemy.exc import OperationalError

from .config import Config
from .extensions import db, migrate


def create_app(config_overrides: dict | None = None) -> Flask:
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(Config)
    if config_overrides:
        app.config.update(config_overrides)

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)

    # Import models so Alembic can discover metadata reliably
    from . import models  # noqa: F401

    # Register blueprints
    from .routes.system import system_bp
    from .routes.products import products_bp
    from .routes.shift import shift_bp
    from .routes.inventory import inventory_bp
    from .routes.batches import batches_bp
    from .routes.reports import reports_bp

    app.register_blueprint(system_bp)
    app.register_blueprint(products_bp)
    app.register_blueprint(shift_bp)
    app.register_blueprint(inventory_bp)
    app.register_blueprint(batches_bp)
    app.register_blueprint(reports_bp)

    @app.errorhandler(OperationalError)
    def handle_store_unavailable(exc):
        app.logger.exception("Unhandled store failure")
        db.session.rollback()
        return {"error": "Data store temporarily unavailable, please retry", "retryable": True}, 503

    @app.after_request
    def add_cors_headers(response):
        origin = request.headers.get("Origin")
        allowed_origins = {
            "http://localhost:5173",
            "http://127.0.0.1:5173",
            "http://localhost:4173",
            "http://127.0.0.1:4173",
        }
        if origin in allowed_origins:
            response.headers["Access-Control-Allow-Origin"] = origin
            response.headers["Vary"] = "Origin"
            response.headers["Access-Control-Allow-Headers"] = "X-User-Id, Content-Type"
            response.headers["Access-Control-Allow-Methods"] = "GET,POST,PUT,PATCH,OPTIONS"
        return response

    # Background progress refresh for active batches
    from .services.batch_ticker import init_ticker
    ticker = init_ticker(app)
    if app.config.get("BATCH_TICKER_ENABLED") and not app.config.get("TESTING"):
        with app.app_context():
            try:
                ticker.ensure_running()
            except OperationalError:
                # Tables may not exist yet (before `flask db upgrade`)
                app.logger.warning("Batch ticker not started: store unavailable")
                db.session.rollback()

    # Register CLI commands
    from .cli import register_commands
    register_commands(app)

    return app
