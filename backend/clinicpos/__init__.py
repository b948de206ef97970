# backend/clinicpos/__init__.py
from flask import Flask, request, jsonify

from .config import Config
from .extensions import db, migrate
from .errors import ServiceError, error_response
from .validation import ValidationError, ConflictError


def create_app(overrides: dict | None = None) -> Flask:
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(Config)
    if overrides:
        app.config.update(overrides)

    app.logger.setLevel(app.config.get("LOG_LEVEL", "INFO"))

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)

    # Import models so Alembic can discover metadata reliably
    from . import models  # noqa: F401

    # Register blueprints
    from .routes.system import system_bp
    from .routes.inventory import inventory_bp
    from .routes.sales import sales_bp
    from .routes.numbering import numbering_bp
    from .routes.audit_logs import audit_logs_bp
    from .routes.clients import clients_bp

    app.register_blueprint(system_bp)
    app.register_blueprint(inventory_bp)
    app.register_blueprint(sales_bp)
    app.register_blueprint(numbering_bp)
    app.register_blueprint(audit_logs_bp)
    app.register_blueprint(clients_bp)

    # Errors that escape a route's own handling
    @app.errorhandler(ServiceError)
    @app.errorhandler(ValidationError)
    @app.errorhandler(ConflictError)
    def handle_domain_error(exc):
        body, status = error_response(exc)
        return jsonify(body), status

    @app.after_request
    def add_cors_headers(response):
        origin = request.headers.get("Origin")
        if origin in app.config["CORS_ALLOWED_ORIGINS"]:
            response.headers["Access-Control-Allow-Origin"] = origin
            response.headers["Vary"] = "Origin"
            response.headers["Access-Control-Allow-Headers"] = "Authorization, Content-Type"
            response.headers["Access-Control-Allow-Methods"] = "GET,POST,PUT,DELETE,PATCH,OPTIONS"
        return response

    # Register CLI commands
    from .cli import register_commands
    register_commands(app)

    return app
