"""
Orders endpoints for clients API.

Checkout from the saved cart, the order status page and "mis pedidos".
"""

from http import HTTPStatus

from flask import Blueprint, jsonify, request

from comanda.cart import Cart
from comanda.errors import ValidationError
from comanda.logging_config import get_logger
from comanda.schemas import CheckoutRequest
from comanda.serializers import success_response
from comanda.services import delivery_order_service
from comanda_clients.decorators import get_restaurant_id, restaurant_from_slug

orders_bp = Blueprint("client_orders", __name__)
logger = get_logger(__name__)


@orders_bp.post("/restaurants/<slug>/orders")
@restaurant_from_slug
def post_checkout():
    """
    Crea el pedido a partir del carrito del cliente.

    Body: Ver CheckoutRequest schema. La tarifa de entrega es la del restaurante.
    """
    payload = CheckoutRequest(**(request.get_json(silent=True) or {}))
    cart = (
        Cart.from_json(payload.cart)
        if isinstance(payload.cart, str)
        else Cart.from_data(payload.cart)
    )
    order = delivery_order_service.checkout_cart(get_restaurant_id(), cart, payload.customer_data())
    logger.info(f"Customer checkout created order {order['id']} with {cart.total_items} items")
    return jsonify(success_response(order, "Pedido recibido")), HTTPStatus.CREATED


@orders_bp.get("/restaurants/<slug>/orders")
@restaurant_from_slug
def get_orders_by_phone():
    """
    Pedidos del cliente, más recientes primero (máximo 50).

    Query params:
    - phone: teléfono usado en el checkout
    """
    phone = request.args.get("phone")
    if not phone:
        raise ValidationError("El teléfono es requerido")
    orders = delivery_order_service.list_orders_by_phone(get_restaurant_id(), phone)
    return jsonify(success_response({"orders": orders}))


@orders_bp.get("/restaurants/<slug>/orders/<int:order_id>")
@restaurant_from_slug
def get_order(order_id: int):
    order = delivery_order_service.get_delivery_order(get_restaurant_id(), order_id)
    return jsonify(success_response(order))


@orders_bp.get("/restaurants/<slug>/orders/<int:order_id>/status")
@restaurant_from_slug
def get_order_status(order_id: int):
    """Consulta liviana para el botón flotante de seguimiento."""
    status = delivery_order_service.get_delivery_order_status(get_restaurant_id(), order_id)
    return jsonify(success_response(status))
