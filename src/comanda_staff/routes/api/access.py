"""
Access API - PIN de cocina y de meseros
"""

from flask import Blueprint, jsonify, request

from comanda.logging_config import get_logger
from comanda.schemas import KitchenPinRequest, WaiterPinRequest
from comanda.serializers import success_response
from comanda.services import pin_service
from comanda_staff.decorators import get_restaurant_id, restaurant_required

access_bp = Blueprint("access", __name__)
logger = get_logger(__name__)


@access_bp.post("/access/kitchen-pin")
@restaurant_required
def post_verify_kitchen_pin():
    """
    Verifica el PIN de la pantalla de cocina.

    Body: {"pin": "1234"} (omitir para saber si se requiere PIN)
    """
    payload = KitchenPinRequest(**(request.get_json(silent=True) or {}))
    return jsonify(success_response(pin_service.verify_kitchen_pin(get_restaurant_id(), payload.pin)))


@access_bp.post("/access/waiter-pin")
@restaurant_required
def post_verify_waiter_pin():
    """
    Verifica el PIN de un mesero.

    Body: {"waiter_id": int, "pin": "1234"}
    """
    payload = WaiterPinRequest(**(request.get_json(silent=True) or {}))
    result = pin_service.verify_waiter_pin(get_restaurant_id(), payload.waiter_id, payload.pin)
    return jsonify(success_response(result))


@access_bp.get("/access/waiters")
@restaurant_required
def get_waiters():
    """Meseros activos para la pantalla de acceso."""
    return jsonify(success_response({"waiters": pin_service.list_active_waiters(get_restaurant_id())}))
