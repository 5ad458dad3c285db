"""
Chantier Tracker
Flask Application Factory.

Usage:
    from chantier import create_app
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
from sqlalchemy import engine as _sa_engine
from sqlalchemy import event as _sa_event

from chantier.config import config
from chantier.middleware.jwt_auth import init_jwt_middleware
from chantier.middleware.logging_config import configure_logging
from chantier.middleware.rate_limiter import init_rate_limits
from chantier.middleware.timing import init_request_timing
from chantier.models import db
from chantier.utils.errors import register_error_handlers

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
    default_limits=[],                     # no global limit, applied per blueprint
    storage_uri=os.getenv("REDIS_URL", "memory://"),
)


def _register_cli(app):
    @app.cli.command("seed-demo")
    def seed_demo_cmd():
        """Seed one user per role, two projects, tasks and attachments."""
        from chantier.services.seed_service import seed_demo

        summary = seed_demo()
        db.session.commit()
        logger.info("Seeded demo data: %s", summary)


def create_app(config_name=None):
    """
    Create and configure the Flask application.

    Args:
        config_name: One of "development", "testing", "production".
                     Defaults to APP_ENV env var, or "development" if unset.

    Returns:
        Configured Flask application instance.
    """
    if config_name is None:
        config_name = os.getenv("APP_ENV", "development")

    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(config[config_name]())

    configure_logging(app)

    db.init_app(app)
    migrate.init_app(app, db)
    limiter.init_app(app)
    cors_origins = app.config.get("CORS_ORIGINS", "*")
    if cors_origins and cors_origins != "*":
        CORS(app, origins=[o.strip() for o in cors_origins.split(",") if o.strip()])
    else:
        CORS(app)

    init_request_timing(app)
    init_jwt_middleware(app)

    # Register every model on the metadata before create_all / migrations
    from chantier.models import audit as _audit_models      # noqa: F401
    from chantier.models import auth as _auth_models        # noqa: F401
    from chantier.models import project as _project_models  # noqa: F401
    from chantier.models import task as _task_models        # noqa: F401

    if app.config.get("AUTO_CREATE_SCHEMA"):
        uri = app.config.get("SQLALCHEMY_DATABASE_URI") or ""
        if uri.startswith("sqlite:///") and ":memory:" not in uri:
            os.makedirs(os.path.dirname(uri[len("sqlite:///"):]) or ".", exist_ok=True)
        with app.app_context():
            db.create_all()

    from chantier.blueprints.audit_bp import audit_bp
    from chantier.blueprints.dashboard_bp import dashboard_bp
    from chantier.blueprints.health_bp import health_bp
    from chantier.blueprints.project_bp import project_bp
    from chantier.blueprints.task_bp import task_bp
    from chantier.blueprints.user_bp import user_bp

    app.register_blueprint(health_bp)
    app.register_blueprint(project_bp)
    app.register_blueprint(task_bp)
    app.register_blueprint(user_bp)
    app.register_blueprint(audit_bp)
    app.register_blueprint(dashboard_bp)

    register_error_handlers(app)
    _register_cli(app)

    # Rate limiting (after blueprints registered)
    init_rate_limits(app, limiter)

    return app
