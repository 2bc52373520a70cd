"""
Table Orders API - Cuentas de mesa y ventas rápidas

Apertura, ítems, cuenta, cierre, cancelación y transferencia de mesa.
"""

from datetime import date
from http import HTTPStatus

from flask import Blueprint, jsonify, request

from comanda.errors import ValidationError
from comanda.logging_config import get_logger
from comanda.schemas import (
    AddItemRequest,
    CloseTableRequest,
    OpenTableRequest,
    TransferTableRequest,
    UpdateItemStatusRequest,
)
from comanda.serializers import success_response
from comanda.services import table_order_service
from comanda_staff.decorators import get_app_config, get_restaurant_id, restaurant_required

table_orders_bp = Blueprint("table_orders", __name__)
logger = get_logger(__name__)


def _parse_date(name: str) -> date | None:
    raw = request.args.get(name)
    if not raw:
        return None
    try:
        return date.fromisoformat(raw)
    except ValueError as exc:
        raise ValidationError(f"Fecha inválida en '{name}': {raw}") from exc


@table_orders_bp.post("/table-orders")
@restaurant_required
def post_open_table():
    """
    Abre una cuenta en una mesa libre (o venta rápida sin mesa).

    Body: Ver OpenTableRequest schema
    """
    payload = OpenTableRequest(**(request.get_json(silent=True) or {}))
    order = table_order_service.open_table(
        get_restaurant_id(),
        payload.table_id,
        customer_count=payload.customer_count,
        waiter_name=payload.waiter_name,
        waiter_id=payload.waiter_id,
        service_fee_percentage=get_app_config().default_service_fee_percentage,
    )
    return jsonify(success_response(order, "Mesa abierta")), HTTPStatus.CREATED


@table_orders_bp.get("/table-orders/history")
@restaurant_required
def get_order_history():
    """
    Historial de cuentas cerradas.

    Query params:
    - start_date, end_date: YYYY-MM-DD (por defecto hoy, en la zona del restaurante)
    """
    orders = table_order_service.list_closed_orders(
        get_restaurant_id(), _parse_date("start_date"), _parse_date("end_date")
    )
    return jsonify(success_response({"orders": orders}))


@table_orders_bp.get("/table-orders/<int:order_id>")
@restaurant_required
def get_table_order(order_id: int):
    return jsonify(success_response(table_order_service.get_order(get_restaurant_id(), order_id)))


@table_orders_bp.get("/table-orders/<int:order_id>/totals")
@restaurant_required
def get_order_totals(order_id: int):
    """
    Vista previa de totales para la pantalla de cobro.

    Query params: discount, discount_type, service_fee_enabled, service_fee_percentage
    """
    fee_enabled = request.args.get("service_fee_enabled")
    totals = table_order_service.preview_totals(
        get_restaurant_id(),
        order_id,
        discount=request.args.get("discount", "0"),
        discount_type=request.args.get("discount_type", "value"),
        service_fee_enabled=None
        if fee_enabled is None
        else fee_enabled.strip().lower() in {"1", "true", "yes", "on"},
        service_fee_percentage=request.args.get("service_fee_percentage"),
    )
    return jsonify(success_response(totals))


@table_orders_bp.post("/table-orders/<int:order_id>/items")
@restaurant_required
def post_add_item(order_id: int):
    """
    Agrega un ítem a la cuenta.

    Body: Ver AddItemRequest schema
    """
    payload = AddItemRequest(**(request.get_json(silent=True) or {}))
    item = table_order_service.add_item(
        get_restaurant_id(),
        order_id,
        payload.product_name,
        payload.quantity,
        payload.unit_price,
        product_id=payload.product_id,
        observation=payload.observation,
    )
    return jsonify(success_response(item, "Ítem agregado")), HTTPStatus.CREATED


@table_orders_bp.delete("/table-order-items/<int:item_id>")
@restaurant_required
def delete_item(item_id: int):
    order = table_order_service.remove_item(get_restaurant_id(), item_id)
    return jsonify(success_response(order, "Ítem eliminado"))


@table_orders_bp.patch("/table-order-items/<int:item_id>/status")
@restaurant_required
def patch_item_status(item_id: int):
    """
    Cambia el estado de un ítem.

    Body: {"status": "preparing" | "ready" | "delivered" | "cancelled"}
    """
    payload = UpdateItemStatusRequest(**(request.get_json(silent=True) or {}))
    item = table_order_service.update_item_status(get_restaurant_id(), item_id, payload.status)
    return jsonify(success_response(item))


@table_orders_bp.post("/table-orders/<int:order_id>/request-bill")
@restaurant_required
def post_request_bill(order_id: int):
    order = table_order_service.request_bill(get_restaurant_id(), order_id)
    return jsonify(success_response(order, "Cuenta solicitada"))


@table_orders_bp.post("/table-orders/<int:order_id>/close")
@restaurant_required
def post_close_table(order_id: int):
    """
    Cobra la cuenta y libera la mesa.

    Body: Ver CloseTableRequest schema. total_amount is advisory; the response
    carries the total computed by the server.
    """
    payload = CloseTableRequest(**(request.get_json(silent=True) or {}))
    order = table_order_service.close_table(
        get_restaurant_id(),
        order_id,
        payload.payment_method,
        table_id=payload.table_id,
        discount=payload.discount,
        discount_type=payload.discount_type,
        service_fee_enabled=payload.service_fee_enabled,
        service_fee_percentage=payload.service_fee_percentage,
        total_amount=payload.total_amount,
        tolerance=get_app_config().total_tolerance,
    )
    message = "Mesa cerrada" if order["table_id"] is not None else "Venta finalizada"
    return jsonify(success_response(order, message))


@table_orders_bp.post("/table-orders/<int:order_id>/cancel")
@restaurant_required
def post_cancel_order(order_id: int):
    order = table_order_service.cancel_order(get_restaurant_id(), order_id)
    return jsonify(success_response(order, "Cuenta cancelada"))


@table_orders_bp.post("/table-orders/<int:order_id>/transfer")
@restaurant_required
def post_transfer_table(order_id: int):
    """
    Transfiere la cuenta a otra mesa libre.

    Body: {"to_table_id": int}
    """
    payload = TransferTableRequest(**(request.get_json(silent=True) or {}))
    order = table_order_service.transfer_table(get_restaurant_id(), order_id, payload.to_table_id)
    return jsonify(success_response(order, "Mesa transferida"))
