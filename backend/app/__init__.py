import logging
import os
from datetime import datetime, timezone

from flask import Flask, jsonify
from sqlalchemy import text

from app.config import Config
from app.extensions import db, migrate, cors, login_manager
from app.errors import register_error_handlers


def _check_production_config(app: Flask) -> None:
    secret = (app.config.get("SECRET_KEY") or "").strip()
    if not secret or len(secret) < 16:
        raise RuntimeError("SECRET_KEY must be set and at least 16 chars in production")
    if not app.config.get("DATABASE_URL_PROVIDED"):
        raise RuntimeError("DATABASE_URL (or SQLALCHEMY_DATABASE_URI) must be set in production")


def create_app(config_object=None, **overrides):
    app = Flask(__name__)
    app.config.from_object(config_object or Config)
    app.config.update(overrides)

    env = (app.config.get("ENV_NAME") or "dev").strip().lower()

    # Production safety checks
    if env in ("prod", "production"):
        _check_production_config(app)
    elif not app.config.get("SECRET_KEY"):
        app.config["SECRET_KEY"] = "dev-secret-change-me"

    # Ensure instance dir exists for SQLite paths
    os.makedirs(app.config["INSTANCE_DIR"], exist_ok=True)

    app.logger.setLevel(getattr(logging, app.config.get("LOG_LEVEL", "INFO"), logging.INFO))

    # CORS configuration
    cors_origins = (app.config.get("CORS_ORIGINS") or "").strip()
    origins = [o.strip() for o in cors_origins.split(",") if o.strip()]
    if not origins and env not in ("prod", "production"):
        origins = ["*"]
    cors.init_app(app, resources={r"/api/*": {"origins": origins}})

    # Init extensions
    db.init_app(app)
    migrate.init_app(app, db, directory=os.path.join(app.config["BACKEND_DIR"], "migrations"))
    login_manager.init_app(app)

    # Registers the user/request loaders on login_manager.
    from app import auth  # noqa: F401

    from app.segments.segment_auth import auth_bp
    from app.segments.segment_employees import employees_bp
    from app.segments.segment_inventory import inventory_bp
    from app.segments.segment_kpis import kpi_bp
    from app.segments.segment_receipts import receipts_bp

    app.register_blueprint(auth_bp)
    app.register_blueprint(employees_bp)
    app.register_blueprint(inventory_bp)
    app.register_blueprint(kpi_bp)
    app.register_blueprint(receipts_bp)

    register_error_handlers(app)

    # Health check
    @app.get("/api/health")
    def health():
        db_state = "ok"
        try:
            db.session.execute(text("SELECT 1"))
        except Exception:
            app.logger.exception("Health check database probe failed")
            db_state = "fail"
        return jsonify({
            "ok": True,
            "status": "OK",
            "service": "inventory-backend",
            "env": env,
            "db": db_state,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        })

    from app.devtools import register_commands
    register_commands(app)

    return app
