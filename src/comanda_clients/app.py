"""
Factory for the customer-facing Flask application (delivery menu).
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

logger = logging.getLogger(__name__)

DEV_ORIGINS = [
    "http://localhost:5173",
    "http://localhost:8080",
    "http://127.0.0.1:5173",
    "http://127.0.0.1:8080",
]


def create_app(config: AppConfig | None = None) -> Flask:
    """
    Build and configure the Flask app for customers.

    Args:
        config: Settings to use; loaded from the environment when omitted
    """
    if config is None:
        validate_required_env_vars(skip_in_debug=True)
        config = load_config("comanda-clients")

    configure_logging(config.app_name, config.log_level)

    app = Flask(__name__)

    init_engine(config)
    init_db(Base.metadata)

    app.config["SECRET_KEY"] = config.secret_key
    app.config["APP_NAME"] = config.app_name
    app.config["DEBUG_MODE"] = config.debug_mode
    app.config["COMANDA_CONFIG"] = config

    register_error_handlers(app)

    num_proxies = int(os.getenv("NUM_PROXIES", "0"))
    if num_proxies > 0:
        app.wsgi_app = ProxyFix(
            app.wsgi_app,
            x_for=num_proxies,
            x_proto=num_proxies,
            x_host=num_proxies,
            x_port=num_proxies,
        )

    from comanda_clients.routes.api import api_bp

    app.register_blueprint(api_bp, url_prefix="/api")

    allowed_origins = config.cors_allowed_origins
    if config.debug_mode or not allowed_origins:
        allowed_origins = DEV_ORIGINS
    CORS(app, resources={r"/api/*": {"origins": allowed_origins}}, allow_headers=["Content-Type"])

    @app.get("/health")
    def health():
        return jsonify({"status": "ok", "app": config.app_name})

    logger.info(f"{config.app_name} started")
    return app
