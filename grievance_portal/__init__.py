"""
Grievance Portal
Flask Application Factory.

Usage:
    from grievance_portal import create_app
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

from grievance_portal.config import config
from grievance_portal.models import db
from grievance_portal.middleware.logging_config import configure_logging
from grievance_portal.middleware.timing import init_request_timing

logger = logging.getLogger(__name__)

migrate = Migrate()
limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[],                     # no global limit; applied per route
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

    # ── Request timing middleware ────────────────────────────────────────
    init_request_timing(app)

    # ── Grievance classifier (keyword fallback without GEMINI_API_KEY) ───
    from grievance_portal.ai.classifier import GrievanceClassifier
    from grievance_portal.ai.gateway import LLMGateway

    gateway = LLMGateway(
        gemini_api_key=app.config.get("GEMINI_API_KEY") or None,
        default_model=app.config.get("CLASSIFIER_MODEL"),
    )
    app.extensions["grievance_classifier"] = GrievanceClassifier(
        gateway, model=app.config.get("CLASSIFIER_MODEL"),
    )

    # ── Import models so create_all / Alembic can detect them ────────────
    from grievance_portal.models import records as _record_models  # noqa: F401

    # ── Auto-create tables outside testing (CREATE IF NOT EXISTS) ────────
    if not app.config.get("TESTING"):
        with app.app_context():
            if app.config["SQLALCHEMY_DATABASE_URI"].startswith("sqlite:///"):
                os.makedirs(app.instance_path, exist_ok=True)
            try:
                db.create_all()
                app.logger.info("db.create_all() completed successfully")
            except Exception as e:
                app.logger.warning("db.create_all() failed: %s", e)

    # ── Blueprints ───────────────────────────────────────────────────────
    from grievance_portal.blueprints.analytics_bp import analytics_bp
    from grievance_portal.blueprints.grievance_bp import grievance_bp
    from grievance_portal.blueprints.health_bp import health_bp
    from grievance_portal.blueprints.workflow_bp import workflow_bp

    app.register_blueprint(health_bp)
    app.register_blueprint(grievance_bp)
    app.register_blueprint(workflow_bp)
    app.register_blueprint(analytics_bp)

    limiter.exempt(health_bp)

    # ── Error handlers ───────────────────────────────────────────────────
    from grievance_portal.utils.errors import register_error_handlers
    register_error_handlers(app)

    # ── CLI commands ─────────────────────────────────────────────────────
    @app.cli.command("seed-rules")
    def seed_rules_cmd():
        """Seed the default workflow rule set (existing rule ids are kept)."""
        from grievance_portal.services.record_store import RecordStore
        store = RecordStore()
        count = store.seed_default_rules()
        store.commit()
        logger.info("Seeded %s new workflow rules.", count)

    return app
