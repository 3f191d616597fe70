"""
Pacy Training Content Generator
Flask Application Factory.

Usage:
    from pacy import create_app
    app = create_app()           # defaults to APP_ENV or "development"
    app = create_app("testing")  # explicit config
"""

import logging
import os

from flask import Flask
from flask_cors import CORS
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from flask_migrate import Migrate

from pacy.config import config
from pacy.models import db
from pacy.middleware.logging_config import configure_logging
from pacy.middleware.timing import init_request_timing
from pacy.utils.errors import register_error_handlers

# ── SQLite FK enforcement (global engine event) ─────────────────────────
from sqlalchemy import event as _sa_event, engine as _sa_engine

logger = logging.getLogger(__name__)


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
    default_limits=[],                     # generation endpoints opt in via shared limits
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
    config_cls = config[config_name]
    # ProductionConfig validates its environment on instantiation
    app.config.from_object(config_cls() if config_name == "production" else config_cls)

    # ── Structured logging (must be first) ───────────────────────────────
    configure_logging(app)
    init_request_timing(app)

    # ── Extensions ───────────────────────────────────────────────────────
    db.init_app(app)
    migrate.init_app(app, db)
    limiter.init_app(app)
    cors_origins = app.config.get("CORS_ORIGINS", "*")
    if cors_origins and cors_origins != "*":
        CORS(app, origins=[o.strip() for o in cors_origins.split(",") if o.strip()])
    else:
        CORS(app)

    # Register models with the metadata before create_all
    from pacy.models import content as _content_models    # noqa: F401
    from pacy.models import project as _project_models    # noqa: F401
    from pacy.models import workflow as _workflow_models  # noqa: F401

    if app.config["SQLALCHEMY_DATABASE_URI"].startswith("sqlite:///") and ":memory:" not in app.config["SQLALCHEMY_DATABASE_URI"]:
        os.makedirs(app.instance_path, exist_ok=True)

    # ── Auto-create tables (CREATE IF NOT EXISTS) ────────────────────────
    with app.app_context():
        try:
            db.create_all()
            app.logger.info("db.create_all() completed successfully")
        except Exception as e:
            app.logger.warning("db.create_all() failed: %s", e)

    # ── Blueprints ───────────────────────────────────────────────────────
    from pacy.blueprints.content_bp import content_bp
    from pacy.blueprints.debrief_bp import debrief_bp
    from pacy.blueprints.health_bp import health_bp
    from pacy.blueprints.interview_bp import interview_bp
    from pacy.blueprints.onboarding_bp import onboarding_bp
    from pacy.blueprints.projects_bp import projects_bp
    from pacy.blueprints.workflow_bp import workflow_bp

    app.register_blueprint(health_bp)
    app.register_blueprint(projects_bp)
    app.register_blueprint(content_bp)
    app.register_blueprint(workflow_bp)
    app.register_blueprint(debrief_bp)
    app.register_blueprint(interview_bp)
    app.register_blueprint(onboarding_bp)

    # ── Error handlers ───────────────────────────────────────────────────
    register_error_handlers(app)

    if app.config.get("TESTING"):
        app.logger.info("Rate limiter disabled (TESTING=True)")

    return app
