# backend/app/__init__.py
from __future__ import annotations

from flask import Flask, request

from .config import Config
from .extensions import db, migrate


def create_app(overrides: dict | None = None) -> Flask:
    """
    Application factory.

    overrides are applied on top of Config before any extension reads the
    configuration (tests pass the in-memory database URI this way).
    """
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(Config)
    if overrides:
        app.config.update(overrides)

    app.logger.setLevel(app.config["LOG_LEVEL"])

    db.init_app(app)
    migrate.init_app(app, db)

    # Models must be imported before the observers are registered against them
    from . import models  # noqa: F401

    from .report_cache import init_report_cache
    init_report_cache(app)

    from .routes.system import system_bp
    from .routes.reports import reports_bp
    from .routes.hpp import hpp_bp

    for blueprint in (system_bp, reports_bp, hpp_bp):
        app.register_blueprint(blueprint)

    allowed_origins = frozenset(app.config["CORS_ALLOWED_ORIGINS"])

    @app.after_request
    def add_cors_headers(response):
        origin = request.headers.get("Origin")
        if origin in allowed_origins:
            response.headers["Access-Control-Allow-Origin"] = origin
            response.headers["Vary"] = "Origin"
            response.headers["Access-Control-Allow-Headers"] = "Content-Type"
            response.headers["Access-Control-Allow-Methods"] = "GET,POST,OPTIONS"
        return response

    from .cli import register_commands
    register_commands(app)

    return app
