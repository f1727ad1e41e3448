# backend/backoffice/__init__.py
from __future__ import annotations
import os

from flask import Flask, request

from .config import Config
from .extensions import db, migrate

MIGRATIONS_DIR = os.path.join(os.path.dirname(os.path.dirname(__file__)), "migrations")


def create_app(test_config: dict | None = None) -> Flask:
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(Config)
    if test_config:
        app.config.update(test_config)

    app.logger.setLevel(app.config.get("LOG_LEVEL", "INFO"))

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db, directory=MIGRATIONS_DIR)

    # Import models so Alembic can discover metadata reliably
    from . import models  # noqa: F401

    # Register blueprints
    from .routes.system import system_bp
    from .routes.ledger import ledger_bp
    from .routes.shifts import shifts_bp
    from .routes.menu_items import menu_items_bp
    from .routes.stock_adjustments import stock_adjustments_bp
    from .routes.suppliers import suppliers_bp
    from .routes.purchases import purchases_bp

    app.register_blueprint(system_bp)
    app.register_blueprint(ledger_bp)
    app.register_blueprint(shifts_bp)
    app.register_blueprint(menu_items_bp)
    app.register_blueprint(stock_adjustments_bp)
    app.register_blueprint(suppliers_bp)
    app.register_blueprint(purchases_bp)

    allowed_origins = set(app.config.get("CORS_ALLOWED_ORIGINS", ()))

    @app.after_request
    def add_cors_headers(response):
        origin = request.headers.get("Origin")
        if origin in allowed_origins:
            response.headers["Access-Control-Allow-Origin"] = origin
            response.headers["Vary"] = "Origin"
            response.headers["Access-Control-Allow-Headers"] = "Content-Type"
            response.headers["Access-Control-Allow-Methods"] = "GET,POST,PATCH,DELETE,OPTIONS"
        return response

    # Register CLI commands
    from .cli import register_commands
    register_commands(app)

    return app
