# backend/greenstore/__init__.py
import uuid

from flask import Flask, g, request
from werkzeug.exceptions import HTTPException

from .config import Config
from .extensions import db, migrate
from .errors import (
    AppError,
    INTERNAL_ERROR,
    INTERNAL_ERROR_MESSAGE,
    INVALID_REQUEST,
    NOT_FOUND,
    error_body,
    error_response,
)


REQUEST_ID_HEADER = "X-Request-ID"


def create_app(config_object=None) -> Flask:
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(config_object or Config)
    app.logger.setLevel(app.config.get("LOG_LEVEL", "INFO"))

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)

    # Import models so Alembic can discover metadata reliably
    from . import models  # noqa: F401

    # Register blueprints
    from .routes.system import system_bp
    from .routes.sales import sales_bp
    from .routes.inventory import inventory_bp
    from .routes.approvals import approvals_bp
    from .routes.pos import pos_bp
    from .routes.promotions import promotions_bp
    from .routes.settings import settings_bp

    app.register_blueprint(system_bp)
    app.register_blueprint(sales_bp)
    app.register_blueprint(inventory_bp)
    app.register_blueprint(approvals_bp)
    app.register_blueprint(pos_bp)
    app.register_blueprint(promotions_bp)
    app.register_blueprint(settings_bp)

    @app.before_request
    def assign_request_id():
        incoming = (request.headers.get(REQUEST_ID_HEADER) or "").strip()
        g.request_id = incoming[:64] or uuid.uuid4().hex

    @app.after_request
    def echo_request_id(response):
        request_id = g.get("request_id")
        if request_id:
            response.headers[REQUEST_ID_HEADER] = request_id
        return response

    register_error_handlers(app)

    # Register CLI commands
    from .cli import register_commands
    register_commands(app)

    return app


def register_error_handlers(app: Flask) -> None:
    @app.errorhandler(AppError)
    def handle_app_error(err: AppError):
        if err.status >= 500:
            app.logger.error("%s (request_id=%s)", err.message, g.get("request_id"))
        return error_response(err)

    @app.errorhandler(HTTPException)
    def handle_http_exception(err: HTTPException):
        code = NOT_FOUND if err.code == 404 else INVALID_REQUEST
        body = error_body({"code": code, "message": err.description or err.name, "details": None})
        return body, err.code

    @app.errorhandler(Exception)
    def handle_unexpected(err: Exception):
        app.logger.exception("Unhandled error (request_id=%s)", g.get("request_id"))
        body = error_body({"code": INTERNAL_ERROR, "message": INTERNAL_ERROR_MESSAGE, "details": None})
        return body, 500
