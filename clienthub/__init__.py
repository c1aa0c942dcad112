"""
ClientHub application factory.

    from clienthub import create_app
    app = create_app()            # APP_ENV, default "development"
    app = create_app("testing")
"""

import logging
import os

import click
from flask import Flask, abort, request
from flask_cors import CORS
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from flask_migrate import Migrate
from sqlalchemy import engine as sa_engine, event as sa_event
from sqlalchemy.exc import SQLAlchemyError

from clienthub.config import config
from clienthub.middleware.jwt_auth import init_jwt_middleware
from clienthub.middleware.logging_config import configure_logging
from clienthub.middleware.rate_limiter import init_rate_limits
from clienthub.middleware.timing import init_request_timing
from clienthub.models import db

logger = logging.getLogger(__name__)

migrate = Migrate()
# Storage comes from RATELIMIT_STORAGE_URI; limits are applied per blueprint
limiter = Limiter(key_func=get_remote_address, default_limits=[])

# Raw bodies on these prefixes are signature-checked, not parsed as JSON
_RAW_BODY_PREFIXES = ("/api/v1/webhooks/",)


@sa_event.listens_for(sa_engine.Engine, "connect")
def _sqlite_foreign_keys(dbapi_conn, connection_record):
    # Task/project cascades rely on FK enforcement in SQLite as well
    if "sqlite" in type(dbapi_conn).__module__:
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


def create_app(config_name=None):
    """Build the app for ``config_name`` (or ``APP_ENV``)."""
    config_name = config_name or os.getenv("APP_ENV", "development")

    app = Flask(__name__, instance_relative_config=True)
    # Instantiated so ProductionConfig can refuse to start without its env vars
    app.config.from_object(config[config_name]())

    configure_logging(app)

    db.init_app(app)
    migrate.init_app(app, db)
    limiter.init_app(app)
    origins = app.config.get("CORS_ORIGINS") or ""
    if origins == "*":
        CORS(app)
    else:
        CORS(app, origins=[o.strip() for o in origins.split(",") if o.strip()])

    init_request_timing(app)
    init_jwt_middleware(app)
    _register_json_guard(app)

    from clienthub.models import audit, email, onboarding, organization, project, workspace  # noqa: F401

    if app.config.get("AUTO_CREATE_TABLES"):
        with app.app_context():
            try:
                db.create_all()
            except SQLAlchemyError as exc:
                logger.warning("create_all skipped: %s", exc)

    from clienthub.blueprints import register_blueprints
    register_blueprints(app)

    _register_cli(app)
    _register_error_handlers(app)
    init_rate_limits(app, limiter)

    logger.info("ClientHub started env=%s", config_name)
    return app


def _register_json_guard(app):
    @app.before_request
    def _require_json():
        if request.method not in ("POST", "PUT", "PATCH") or not request.path.startswith("/api/"):
            return None
        if request.path.startswith(_RAW_BODY_PREFIXES):
            return None
        if request.data and not request.is_json:
            abort(415, description="Content-Type must be application/json")
        return None


def _register_cli(app):

    @app.cli.command("seed-templates")
    def seed_templates_cmd():
        """Create the default workspace templates that do not exist yet."""
        from clienthub.services.module_service import seed_default_templates

        created = seed_default_templates()
        db.session.commit()
        click.echo(f"Seeded {created} workspace template(s).")

    @app.cli.command("issue-token")
    @click.argument("user_id")
    @click.option("--email", default=None, help="Email claim for the token.")
    def issue_token_cmd(user_id, email):
        """Print an identity token for USER_ID (local development only)."""
        from clienthub.services.jwt_service import generate_access_token

        click.echo(generate_access_token(user_id, email))


def _register_error_handlers(app):

    @app.errorhandler(404)
    def not_found(e):
        return {"error": "Not found", "code": "NOT_FOUND"}, 404

    @app.errorhandler(405)
    def method_not_allowed(e):
        return {"error": "Method not allowed", "code": "METHOD_NOT_ALLOWED"}, 405

    @app.errorhandler(413)
    def too_large(e):
        return {"error": "Request body too large", "code": "VALIDATION_ERROR"}, 413

    @app.errorhandler(415)
    def unsupported_media(e):
        return {"error": e.description, "code": "VALIDATION_ERROR"}, 415

    @app.errorhandler(429)
    def rate_limited(e):
        return {"error": "Too many requests", "code": "RATE_LIMITED", "limit": e.description}, 429

    @app.errorhandler(500)
    def server_error(e):
        logger.error("Unhandled error on %s %s", request.method, request.path, exc_info=True)
        return {"error": "Internal server error", "code": "INTERNAL_ERROR"}, 500
