import os
import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path

import json_log_formatter
from flask import Flask, jsonify

from .extensions import db, migrate, login_manager, mail
from .config import Config
from .models.user import User
from .services.cache import EntityCache
from .services.events import init_event_publisher

# Blueprints
from .blueprints.errors import errors_bp
from .blueprints.auth import auth_bp
from .blueprints.tasks import tasks_bp
from .blueprints.proposals import proposals_bp
from .blueprints.solutions import solutions_bp
from .blueprints.users import users_bp
from .blueprints.feedback import feedback_bp


# Optional: Sentry
def _init_sentry(app):
    dsn = app.config.get("SENTRY_DSN")
    if not dsn:
        return
    try:
        import sentry_sdk
        from sentry_sdk.integrations.flask import FlaskIntegration
        from sentry_sdk.integrations.sqlalchemy import SqlalchemyIntegration

        sentry_sdk.init(
            dsn=dsn,
            integrations=[FlaskIntegration(), SqlalchemyIntegration()],
            traces_sample_rate=app.config.get("SENTRY_TRACES_SAMPLE_RATE", 0.0),
            environment=os.getenv("ENV", "development"),
            release=app.config.get("APP_VERSION"),
            send_default_pii=False,
        )
        app.logger.info("Sentry initialized.")
    except Exception as e:
        app.logger.warning(f"Sentry init failed: {e}")


def _init_logging(app):
    level_name = app.config.get("LOG_LEVEL", "INFO").upper()
    level = getattr(logging, level_name, logging.INFO)
    # app.logger is the "marketplace" logger, so module loggers below it share these handlers
    app.logger.setLevel(level)
    if app.testing:
        return

    log_dir = Path(app.config.get("LOG_DIR", "logs"))
    log_dir.mkdir(parents=True, exist_ok=True)
    log_path = log_dir / app.config.get("LOG_FILENAME", "marketplace.log")

    # Formatter: text or JSON
    if app.config.get("LOG_JSON", False):
        formatter = json_log_formatter.JSONFormatter()
    else:
        formatter = logging.Formatter("[%(asctime)s] %(levelname)s in %(module)s: %(message)s")

    # Rotating file handler (5MB x 5)
    file_handler = RotatingFileHandler(
        log_path, maxBytes=5_000_000, backupCount=5, encoding="utf-8"
    )
    file_handler.setLevel(level)
    file_handler.setFormatter(formatter)
    app.logger.addHandler(file_handler)

    # Stream to stdout as well (useful on dev/docker)
    stream_handler = logging.StreamHandler()
    stream_handler.setLevel(level)
    stream_handler.setFormatter(formatter)
    app.logger.addHandler(stream_handler)

    app.logger.info("Logging initialized.")


def create_app(config_object=None):
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(config_object or Config)
    app.config.setdefault("SQLALCHEMY_TRACK_MODIFICATIONS", False)

    uri = app.config["SQLALCHEMY_DATABASE_URI"]
    if not uri.startswith("sqlite"):
        engine_options = app.config.setdefault("SQLALCHEMY_ENGINE_OPTIONS", {})
        engine_options.setdefault("pool_timeout", app.config.get("DB_POOL_TIMEOUT", 10))
        engine_options.setdefault("pool_pre_ping", True)

    # Logging must come before blueprints so errors during register are captured
    _init_logging(app)
    _init_sentry(app)

    # Extensions
    db.init_app(app)
    migrate.init_app(app, db)
    login_manager.init_app(app)
    mail.init_app(app)

    app.extensions["entity_cache"] = EntityCache(
        ttl=app.config.get("ENTITY_CACHE_TTL", 300),
        max_entries=app.config.get("ENTITY_CACHE_MAX_ENTRIES", 1024),
    )
    init_event_publisher(app)

    @login_manager.user_loader
    def load_user(user_id):
        return db.session.get(User, int(user_id))

    @login_manager.unauthorized_handler
    def unauthorized():
        return jsonify(error="unauthorized", message="Login required"), 401

    # Blueprints
    app.register_blueprint(errors_bp)  # error handlers
    app.register_blueprint(auth_bp, url_prefix="/auth")
    app.register_blueprint(tasks_bp, url_prefix="/rest/tasks")
    app.register_blueprint(proposals_bp, url_prefix="/rest/proposals")
    app.register_blueprint(solutions_bp, url_prefix="/rest/solutions")
    app.register_blueprint(users_bp, url_prefix="/rest/users")
    app.register_blueprint(feedback_bp, url_prefix="/rest/feedback")

    @app.route("/health")
    def health():
        return jsonify(status="ok", version=app.config.get("APP_VERSION"))

    return app
