"""
app/__init__.py — Flask application factory.

Pattern: create_app(config_name) creates and returns a configured Flask app.
         Nothing is initialised at import time — this enables:
           - Multiple isolated test app instances
           - Clean separation between app creation and app startup
           - Alembic to import the metadata without starting the server

Responsibilities:
  1. Load configuration from config_by_name[config_name] and validate it
  2. Configure the app logger level from LOG_LEVEL
  3. Initialise extensions (SQLAlchemy, Marshmallow) via init_app()
  4. Register route blueprints under /api/v1 and the operator CLI
  5. Register global error handlers (AppError → JSON, Exception → 500)

Note on model imports:
  All model classes are imported inside create_app() so that SQLAlchemy's
  metadata is populated before Alembic or db.create_all() inspects it.
"""

from __future__ import annotations

import logging
import os
import traceback

from flask import Flask, jsonify, request
from marshmallow import ValidationError
from werkzeug.exceptions import HTTPException

from backend.config import config_by_name, validate_config


# ── Application factory ────────────────────────────────────────────────────

def create_app(config_name: str | None = None) -> Flask:
    """
    Creates and returns a configured Flask application instance.

    Args:
        config_name: One of "development", "testing", "production".
                     Defaults to APP_ENV, then "development".

    Returns:
        A fully configured Flask app ready to serve requests.

    Raises:
        ValueError: the configuration is missing a required secret or is
                    insecure for production.
    """
    config_name = config_name or os.getenv("APP_ENV", "development")

    app = Flask(__name__)

    # ── Configuration ──────────────────────────────────────────────────────
    config_class = config_by_name.get(config_name, config_by_name["development"])
    app.config.from_object(config_class)
    validate_config(app)  # raises ValueError if misconfigured

    app.logger.setLevel(getattr(logging, str(app.config["LOG_LEVEL"]).upper(), logging.INFO))

    # ── Extensions ─────────────────────────────────────────────────────────
    # Import here (not at module top) to avoid circular imports.
    from backend.app.extensions import db, ma
    db.init_app(app)
    ma.init_app(app)

    # ── Model registration ─────────────────────────────────────────────────
    with app.app_context():
        from backend.app.models import refresh_token, teacher  # noqa: F401

    # ── Blueprints / CLI ───────────────────────────────────────────────────
    _register_blueprints(app)

    from backend.app.cli import teachers_cli
    app.cli.add_command(teachers_cli)

    # ── Error handlers ─────────────────────────────────────────────────────
    _register_error_handlers(app)
    _register_cors(app)

    return app


def _register_blueprints(app: Flask) -> None:
    """
    Registers all route blueprints under the /api/v1 prefix.

    Resource blueprints (students, assignments, calendar, ...) register here
    and protect their routes with @require_auth.
    """
    from backend.app.routes.auth import auth_bp

    app.register_blueprint(auth_bp, url_prefix="/api/v1/auth")


def _register_error_handlers(app: Flask) -> None:
    """
    Registers global error handlers.

    Handlers:
      AppError        → structured JSON error envelope with the correct HTTP status
      ValidationError → marshmallow schema errors as VALIDATION_ERROR (422),
                        with the first failing field and every field's messages
      HTTPException   → the same envelope for routing errors (404, 405, ...)
      Exception       → generic INTERNAL_ERROR (500); full traceback logged

    Stack traces never leave the server.
    """
    from backend.app.errors import AppError, ErrorCode

    @app.errorhandler(AppError)
    def handle_app_error(error: AppError):
        """
        Converts an AppError raised anywhere in the request lifecycle
        (middleware, service, route) into the standard error envelope.
        """
        return jsonify(error.to_dict()), error.http_status

    @app.errorhandler(ValidationError)
    def handle_validation_error(error: ValidationError):
        """
        Converts marshmallow ValidationError into the standard error envelope.

        messages is keyed by field name, e.g. {"password": ["Password must..."]}.
        The first field/message pair becomes the headline; the full map is
        returned under "fields" for client form feedback.
        """
        messages = error.messages

        field = None
        message = "Invalid input."
        fields: dict = {}

        if isinstance(messages, dict):
            for field_name, field_errors in messages.items():
                if isinstance(field_errors, list):
                    fields[field_name] = [str(m) for m in field_errors]
                else:
                    fields[field_name] = [str(field_errors)]
            for field_name, field_messages in fields.items():
                field = field_name if field_name != "_schema" else None
                message = field_messages[0] if field_messages else "Invalid value."
                break
        elif isinstance(messages, list) and messages:
            message = str(messages[0])

        body = AppError(
            ErrorCode.VALIDATION_ERROR,
            message,
            422,
            field=field,
            details=fields or None,
        ).to_dict()
        return jsonify(body), 422

    @app.errorhandler(HTTPException)
    def handle_http_exception(error: HTTPException):
        code = ErrorCode.NOT_FOUND if error.code == 404 else error.name.upper().replace(" ", "_")
        return jsonify({
            "success": False,
            "error": {
                "code": code,
                "message": error.description,
            },
        }), error.code

    @app.errorhandler(Exception)
    def handle_unexpected_error(error: Exception):
        """
        Catches all unhandled exceptions and returns a generic 500 response.
        The full traceback goes to the application logger only.
        """
        app.logger.error(
            "Unhandled exception: %s\n%s",
            str(error),
            traceback.format_exc(),
        )
        return jsonify({
            "success": False,
            "error": {
                "code": ErrorCode.INTERNAL_ERROR,
                "message": "An unexpected error occurred. Please try again later.",
            },
        }), 500


def _register_cors(app: Flask) -> None:
    """
    Adds CORS headers for local development.

    Enabled when DEBUG or TESTING is true so the mobile dev server / web
    preview can call the API with Authorization headers.
    """

    @app.after_request
    def add_cors_headers(response):
        origin = request.headers.get("Origin")
        allow_all = bool(app.config.get("DEBUG") or app.config.get("TESTING"))

        if allow_all:
            response.headers["Access-Control-Allow-Origin"] = origin if origin else "*"
            response.headers["Vary"] = "Origin"
            response.headers["Access-Control-Allow-Methods"] = "GET, POST, PATCH, DELETE, OPTIONS"
            response.headers["Access-Control-Allow-Headers"] = "Authorization, Content-Type"

        return response
