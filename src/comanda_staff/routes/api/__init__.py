"""
Staff API - Modular Blueprint Structure

This package organizes the staff API endpoints into logical sub-blueprints.
Each module handles a specific resource or screen.
"""

import logging

from flask import Blueprint

logger = logging.getLogger(__name__)

# Create main API blueprint
api_bp = Blueprint("api", __name__)

# Import and register sub-blueprints
from .access import access_bp  # noqa: E402
from .delivery_orders import delivery_orders_bp  # noqa: E402
from .kitchen import kitchen_bp  # noqa: E402
from .realtime import realtime_bp  # noqa: E402
from .table_orders import table_orders_bp  # noqa: E402
from .tables import tables_bp  # noqa: E402

# Register sub-blueprints
api_bp.register_blueprint(tables_bp)
api_bp.register_blueprint(table_orders_bp)
api_bp.register_blueprint(kitchen_bp)
api_bp.register_blueprint(delivery_orders_bp)
api_bp.register_blueprint(access_bp)
api_bp.register_blueprint(realtime_bp)

__all__ = ["api_bp"]
