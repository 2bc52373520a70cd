"""
Delivery Orders API - Pedidos de delivery
"""

from http import HTTPStatus

from flask import Blueprint, jsonify, request

from comanda.logging_config import get_logger
from comanda.schemas import CreateDeliveryOrderRequest, UpdateDeliveryStatusRequest
from comanda.serializers import success_response
from comanda.services import delivery_order_service
from comanda_staff.decorators import get_restaurant_id, restaurant_required

delivery_orders_bp = Blueprint("delivery_orders", __name__)
logger = get_logger(__name__)


@delivery_orders_bp.get("/delivery-orders")
@restaurant_required
def get_delivery_orders():
    """
    Lista los pedidos de delivery.

    Query params:
    - status: filtrar por estado (repetible)
    - limit: máximo de pedidos (por defecto 100)
    """
    orders = delivery_order_service.list_delivery_orders(
        get_restaurant_id(),
        statuses=request.args.getlist("status") or None,
        limit=request.args.get("limit", 100, type=int),
    )
    return jsonify(success_response({"orders": orders}))


@delivery_orders_bp.post("/delivery-orders")
@restaurant_required
def post_create_delivery_order():
    """
    Registra un pedido de delivery.

    Body: Ver CreateDeliveryOrderRequest schema
    """
    payload = CreateDeliveryOrderRequest(**(request.get_json(silent=True) or {}))
    data = payload.model_dump(exclude={"items"})
    data["payment_method"] = payload.payment_method.value
    order = delivery_order_service.create_delivery_order(
        get_restaurant_id(), data, [item.model_dump() for item in payload.items]
    )
    return jsonify(success_response(order, "Pedido registrado")), HTTPStatus.CREATED


@delivery_orders_bp.get("/delivery-orders/<int:order_id>")
@restaurant_required
def get_delivery_order(order_id: int):
    order = delivery_order_service.get_delivery_order(get_restaurant_id(), order_id)
    return jsonify(success_response(order))


@delivery_orders_bp.patch("/delivery-orders/<int:order_id>/status")
@restaurant_required
def patch_delivery_status(order_id: int):
    """
    Avanza o cancela el pedido.

    Body: {"status": "preparing" | "delivery" | "completed" | "cancelled"}
    """
    payload = UpdateDeliveryStatusRequest(**(request.get_json(silent=True) or {}))
    order = delivery_order_service.update_delivery_status(
        get_restaurant_id(), order_id, payload.status
    )
    return jsonify(success_response(order))
