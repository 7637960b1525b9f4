"""
Cadence
Flask Application Factory.

Usage:
    from cadence import create_app
    app = create_app()           # defaults to APP_ENV, else "development"
    app = create_app("testing")  # explicit config

CLI:
    flask --app wsgi collab-serve            run the canvas collaboration server
    flask --app wsgi seed-agenda-templates   insert the built-in agenda templates
"""

import asyncio
import logging
import os

import click
from flask import Flask, request
from flask_cors import CORS
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from flask_migrate import Migrate
from sqlalchemy import engine as _sa_engine
from sqlalchemy import event as _sa_event

from cadence.config import config
from cadence.models import db
from cadence.middleware.logging_config import configure_logging
from cadence.middleware.timing import init_request_timing
from cadence.middleware.security_headers import init_security_headers
from cadence.middleware.rate_limiter import init_rate_limits
from cadence.middleware.jwt_auth import init_jwt_middleware

logger = logging.getLogger(__name__)


# ── SQLite FK enforcement (global engine event) ─────────────────────────
@_sa_event.listens_for(_sa_engine.Engine, "connect")
def _enable_sqlite_fk(dbapi_conn, connection_record):
    """Enable foreign key enforcement for SQLite connections."""
    if "sqlite" in type(dbapi_conn).__module__:
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


migrate = Migrate()
limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[],                     # no global limit — apply per-blueprint
    storage_uri=os.getenv("REDIS_URL", "memory://"),
)


def create_app(config_name=None):
    """
    Create and configure the Flask application.

    Args:
        config_name: One of "development", "testing", "production".
                     Defaults to the APP_ENV env var, or "development".

    Returns:
        Configured Flask application instance.
    """
    if config_name is None:
        config_name = os.getenv("APP_ENV", "development")

    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(config[config_name]())

    # ── Structured logging (must be first) ───────────────────────────────
    configure_logging(app)

    # ── Extensions ───────────────────────────────────────────────────────
    db.init_app(app)
    migrate.init_app(app, db)
    limiter.init_app(app)
    cors_origins = app.config.get("CORS_ORIGINS", "*")
    if cors_origins and cors_origins != "*":
        CORS(app, origins=[o.strip() for o in cors_origins.split(",") if o.strip()])
    else:
        CORS(app)

    # ── Middleware ───────────────────────────────────────────────────────
    init_security_headers(app)
    init_request_timing(app)
    init_jwt_middleware(app)

    app.config.setdefault("MAX_CONTENT_LENGTH", 2 * 1024 * 1024)  # 2 MB

    @app.before_request
    def _guard_request():
        from flask import abort
        if request.method in ("POST", "PUT", "PATCH") and request.path.startswith("/api/"):
            ct = request.content_type or ""
            if request.data and "json" not in ct:
                abort(415, description="Content-Type must be application/json")

    # ── Navigation tree cache ────────────────────────────────────────────
    from cadence.services.navigation_service import configure_cache
    configure_cache(
        ttl=app.config.get("NAVIGATION_CACHE_TTL", 300),
        redis_url=app.config.get("REDIS_URL"),
    )

    # ── Import all models so Alembic can detect them ─────────────────────
    from cadence.models import auth as _auth_models        # noqa: F401
    from cadence.models import team as _team_models        # noqa: F401
    from cadence.models import meeting as _meeting_models  # noqa: F401
    from cadence.models import rcdo as _rcdo_models        # noqa: F401
    from cadence.models import canvas as _canvas_models    # noqa: F401

    # ── Auto-create tables (CREATE IF NOT EXISTS) ────────────────────────
    with app.app_context():
        try:
            db.create_all()
            app.logger.info("db.create_all() completed successfully")
        except Exception as e:
            app.logger.warning("db.create_all() failed: %s", e)

    # ── Blueprints ───────────────────────────────────────────────────────
    from cadence.blueprints import all_blueprints
    for bp in all_blueprints():
        app.register_blueprint(bp)

    # ── CLI commands ─────────────────────────────────────────────────────
    @app.cli.command("seed-agenda-templates")
    def seed_agenda_templates_cmd():
        """Insert the built-in agenda templates that are missing."""
        from cadence.services.meeting_service import seed_system_templates
        count = seed_system_templates()
        logger.info("Seeded %s new agenda templates.", count)

    @app.cli.command("collab-serve")
    @click.option("--host", default=None, help="Bind address (default COLLAB_HOST).")
    @click.option("--port", default=None, type=int, help="Port (default COLLAB_PORT).")
    def collab_serve_cmd(host, port):
        """Run the canvas collaboration (y-websocket) server."""
        from cadence.canvas.persistence import SnapshotStore
        from cadence.collab.server import CollabServer, run
        from cadence.services.canvas_service import room_layout

        def layout_loader(room):
            with app.app_context():
                return room_layout(room)

        server = CollabServer(
            SnapshotStore(app),
            layout_loader=layout_loader,
            debounce=app.config.get("CANVAS_SAVE_DEBOUNCE_SECONDS", 0.8),
        )
        asyncio.run(run(
            host or app.config.get("COLLAB_HOST", "0.0.0.0"),
            port or app.config.get("COLLAB_PORT", 1234),
            server,
        ))

    # ── Error handlers ───────────────────────────────────────────────────
    @app.errorhandler(404)
    def not_found(e):
        return {"error": "Not found", "code": "ERR_NOT_FOUND", "path": request.path}, 404

    @app.errorhandler(405)
    def method_not_allowed(e):
        return {"error": "Method not allowed"}, 405

    @app.errorhandler(413)
    def too_large(e):
        return {"error": "Request body too large"}, 413

    @app.errorhandler(415)
    def unsupported_media(e):
        return {"error": e.description, "code": "ERR_VALIDATION_INVALID"}, 415

    @app.errorhandler(429)
    def rate_limited(e):
        return {"error": "Too many requests", "retry_after": e.description}, 429

    @app.errorhandler(500)
    def server_error(e):
        logger.error("500 error: %s", e, exc_info=True)
        return {"error": "Internal server error", "code": "ERR_INTERNAL"}, 500

    # ── Rate limiting (after blueprints registered) ──────────────────────
    init_rate_limits(app, limiter)

    return app
