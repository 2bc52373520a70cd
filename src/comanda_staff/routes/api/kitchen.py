"""
Kitchen API - Pantalla de cocina y ítems listos para el mesero
"""

from flask import Blueprint, jsonify, request

from comanda.logging_config import get_logger
from comanda.schemas import KitchenItemStatusRequest
from comanda.serializers import success_response
from comanda.services import kitchen_queue_service
from comanda_staff.decorators import get_app_config, get_restaurant_id, restaurant_required

kitchen_bp = Blueprint("kitchen", __name__)
logger = get_logger(__name__)


def _requested_statuses() -> list[str]:
    statuses = []
    for raw in request.args.getlist("status"):
        statuses.extend(part.strip() for part in raw.split(",") if part.strip())
    return statuses


def _serialize_items(items) -> list[dict]:
    config = get_app_config()
    return [
        item.to_dict(
            attention_minutes=config.kitchen_attention_minutes,
            late_minutes=config.kitchen_late_minutes,
        )
        for item in items
    ]


@kitchen_bp.get("/kitchen/items")
@restaurant_required
def get_kitchen_items():
    """
    Cola de cocina de mesas y delivery, el más antiguo primero.

    Query params:
    - status: pending, preparing y/o ready (repetible o separado por comas)
    """
    items = kitchen_queue_service.list_kitchen_items(get_restaurant_id(), _requested_statuses())
    return jsonify(success_response({"items": _serialize_items(items)}))


@kitchen_bp.patch("/kitchen/items/<int:item_id>/status")
@restaurant_required
def patch_kitchen_item_status(item_id: int):
    """
    Cambia el estado desde la cocina.

    Body: {"order_type": "table"|"delivery", "status": ..., "order_id": int (delivery)}
    """
    payload = KitchenItemStatusRequest(**(request.get_json(silent=True) or {}))
    result = kitchen_queue_service.update_kitchen_item_status(
        get_restaurant_id(),
        payload.order_type,
        item_id,
        payload.status.value,
        order_id=payload.order_id,
    )
    return jsonify(success_response(result))


@kitchen_bp.get("/waiter/ready-items")
@restaurant_required
def get_ready_items():
    """Ítems de mesa listos para llevar."""
    items = kitchen_queue_service.list_ready_items(get_restaurant_id())
    return jsonify(success_response({"items": _serialize_items(items)}))
