"""
Clients API - Modular Blueprint Structure

All endpoints are registered under the main api_bp blueprint.
"""

from flask import Blueprint

# Create main API blueprint
api_bp = Blueprint("client_api", __name__)

from comanda_clients.routes.api.orders import orders_bp  # noqa: E402

api_bp.register_blueprint(orders_bp)

__all__ = ["api_bp"]
