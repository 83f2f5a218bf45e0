# backend/ombor/__init__.py
from flask import Flask, request
from werkzeug.exceptions import HTTPException

from .config import Config
from .extensions import db, migrate

__version__ = "1.0.0"


def create_app(config_overrides: dict | None = None) -> Flask:
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(Config)
    if config_overrides:
        app.config.update(config_overrides)
    app.url_map.strict_slashes = False

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)

    # Import models so Alembic can discover metadata reliably
    from . import models  # noqa: F401

    # Register blueprints
    from .routes.system import system_bp
    from .routes.categories import categories_bp
    from .routes.products import products_bp
    from .routes.transactions import transactions_bp
    from .routes.sales import sales_bp
    from .routes.debtors import debtors_bp

    app.register_blueprint(system_bp)
    app.register_blueprint(categories_bp)
    app.register_blueprint(products_bp)
    app.register_blueprint(transactions_bp)
    app.register_blueprint(sales_bp)
    app.register_blueprint(debtors_bp)

    @app.after_request
    def add_cors_headers(response):
        origin = request.headers.get("Origin")
        if origin in app.config["CORS_ALLOWED_ORIGINS"]:
            response.headers["Access-Control-Allow-Origin"] = origin
            response.headers["Vary"] = "Origin"
            response.headers["Access-Control-Allow-Credentials"] = "true"
            response.headers["Access-Control-Allow-Headers"] = "Authorization, Content-Type, Accept, X-Requested-With"
            response.headers["Access-Control-Allow-Methods"] = "GET,POST,PUT,DELETE,PATCH,OPTIONS"
        return response

    register_error_handlers(app)

    # Register CLI commands
    from .cli import register_commands
    register_commands(app)

    return app


def register_error_handlers(app: Flask) -> None:
    from .envelope import fail, server_error
    from .routes.system import API_ENDPOINTS

    @app.errorhandler(404)
    def endpoint_not_found(exc):
        return fail(
            "Endpoint not found",
            http_status=404,
            requested_url=request.path,
            method=request.method,
            available_endpoints=sorted(API_ENDPOINTS.values()),
        )

    @app.errorhandler(HTTPException)
    def http_error(exc: HTTPException):
        return fail(exc.description or exc.name, http_status=exc.code or 500)

    @app.errorhandler(Exception)
    def unhandled_error(exc: Exception):
        db.session.rollback()
        return server_error(exc, f"Unhandled error on {request.method} {request.path}")
