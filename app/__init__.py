"""
DJT Quest Platform
Flask Application Factory.

Usage:
    from app import create_app
    app = create_app()           # defaults to "development"
    app = create_app("testing")  # explicit config
"""

import importlib
import logging
import os

from flask import Flask, request
from flask_cors import CORS
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from flask_migrate import Migrate
from sqlalchemy import engine as _sa_engine
from sqlalchemy import event as _sa_event

from app.config import config
from app.middleware.jwt_auth import init_jwt_middleware
from app.middleware.logging_config import configure_logging
from app.middleware.rate_limiter import init_rate_limits
from app.middleware.timing import init_request_timing
from app.models import db

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
        config_name: Configuration environment name.
                     One of: "development", "testing", "production".
                     Defaults to APP_ENV env var, or "development" if unset.

    Returns:
        Configured Flask application instance.
    """
    if config_name is None:
        config_name = os.getenv("APP_ENV", "development")

    app = Flask(__name__, instance_relative_config=True)
    cfg = config[config_name]
    app.config.from_object(cfg() if config_name == "production" else cfg)

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

    # ── Request timing + JWT identity ────────────────────────────────────
    init_request_timing(app)
    init_jwt_middleware(app)

    # ── Request guards (input length + Content-Type) ─────────────────────
    app.config.setdefault("MAX_CONTENT_LENGTH", 256 * 1024)

    @app.before_request
    def _guard_request():
        if request.method in ("POST", "PUT", "PATCH") and request.path.startswith("/api/"):
            ct = request.content_type or ""
            if request.data and "json" not in ct:
                return {"error": "Content-Type must be application/json", "code": "ERR_VALIDATION_INVALID"}, 415
        return None

    # ── Import all models so Alembic can detect them ─────────────────────
    from app.models import auth as _auth_models                  # noqa: F401
    from app.models import evaluation as _evaluation_models      # noqa: F401
    from app.models import notification as _notification_models  # noqa: F401
    from app.models import org as _org_models                    # noqa: F401
    from app.models import registration as _registration_models  # noqa: F401
    from app.models import scheduling as _scheduling_models      # noqa: F401

    # ── Blueprints ───────────────────────────────────────────────────────
    from app.blueprints.evaluation_bp import evaluation_bp
    from app.blueprints.health_bp import health_bp
    from app.blueprints.registration_bp import registration_bp
    from app.blueprints.scope_bp import scope_bp

    app.register_blueprint(health_bp)
    app.register_blueprint(scope_bp)
    app.register_blueprint(registration_bp)
    app.register_blueprint(evaluation_bp)

    # ── CLI commands ─────────────────────────────────────────────────────
    @app.cli.command("assign-evaluators")
    def assign_evaluators_cmd():
        """Run one evaluator assignment batch (for external schedulers)."""
        from app.services.scheduler_service import SchedulerService
        run = SchedulerService.run_job("evaluator_assignment")
        logger.info("evaluator_assignment finished: %s", run["status"])

    # ── Error handlers ───────────────────────────────────────────────────
    @app.errorhandler(404)
    def not_found(e):
        return {"error": "Not found", "code": "ERR_NOT_FOUND"}, 404

    @app.errorhandler(405)
    def method_not_allowed(e):
        return {"error": "Method not allowed"}, 405

    @app.errorhandler(429)
    def rate_limited(e):
        return {"error": "Too many requests", "retry_after": e.description}, 429

    @app.errorhandler(500)
    def server_error(e):
        logger.error("500 error: %s", e, exc_info=True)
        return {"error": "Internal server error", "code": "ERR_INTERNAL"}, 500

    # ── Rate limiting (after blueprints registered) ──────────────────────
    init_rate_limits(app, limiter)

    # ── Batch jobs (import to register them) ─────────────────────────────
    importlib.import_module("app.services.scheduled_jobs")
    from app.services.scheduler_service import SchedulerService
    SchedulerService.init_app(app)

    return app
