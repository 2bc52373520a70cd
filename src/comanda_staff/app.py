"""
Factory for the staff-facing Flask API (PDV, waiter app, kitchen display).
"""

from __future__ import annotations

import logging
import os

from flask import Flask, jsonify
from flask_cors import CORS
from werkzeug.middleware.proxy_fix import ProxyFix

from comanda.config import AppConfig, load_config, validate_required_env_vars
from comanda.db import init_db, init_engine
from comanda.error_handlers import register_error_handlers
from comanda.logging_config import configure_logging
from comanda.models import Base
from comanda.realtime import purge_events

logger = logging.getLogger(__name__)

DEV_ORIGINS = [
    "http://localhost:5173",
    "http://localhost:8080",
    "http://127.0.0.1:5173",
    "http://127.0.0.1:8080",
]


def create_app(config: AppConfig | None = None) -> Flask:
    """
    Build the Flask application that powers the staff screens.

    Args:
        config: Settings to use; loaded from the environment when omitted
    """
    if config is None:
        # Validate all required environment variables (fail-fast)
        validate_required_env_vars(skip_in_debug=True)
        config = load_config("comanda-staff")

    configure_logging(config.app_name, config.log_level)

    app = Flask(__name__)

    # Initialize database engine first (before any DB queries)
    init_engine(config)
    init_db(Base.metadata)

    removed = purge_events(config.realtime_retention_hours)
    if removed:
        logger.info(f"Startup purge removed {removed} realtime events")

    app.config["SECRET_KEY"] = config.secret_key
    app.config["APP_NAME"] = config.app_name
    app.config["DEBUG_MODE"] = config.debug_mode
    app.config["RESTAURANT_NAME"] = config.restaurant_name
    app.config["COMANDA_CONFIG"] = config

    register_error_handlers(app)

    # ProxyFix: Trust X-Forwarded-* headers from reverse proxy
    num_proxies = int(os.getenv("NUM_PROXIES", "0"))
    if num_proxies > 0:
        app.wsgi_app = ProxyFix(
            app.wsgi_app,
            x_for=num_proxies,
            x_proto=num_proxies,
            x_host=num_proxies,
            x_port=num_proxies,
        )

    from comanda_staff.routes.api import api_bp

    app.register_blueprint(api_bp, url_prefix="/api")

    # Configure CORS with secure defaults
    allowed_origins = config.cors_allowed_origins
    if config.debug_mode or not allowed_origins:
        allowed_origins = DEV_ORIGINS
    CORS(
        app,
        resources={r"/api/*": {"origins": allowed_origins}},
        allow_headers=["Content-Type", "X-Restaurant-Id"],
    )

    @app.get("/health")
    def health():
        return jsonify({"status": "ok", "app": config.app_name})

    logger.info(f"{config.app_name} started for {config.restaurant_name}")
    return app
