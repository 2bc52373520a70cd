"""
Serializers for consistent API responses.
"""

from __future__ import annotations

from typing import Any

from comanda.constants import ITEM_STATUS_LABELS
from comanda.datetime_utils import isoformat_or_none
from comanda.models import (
    DeliveryOrder,
    DeliveryOrderItem,
    Table,
    TableOrder,
    TableOrderItem,
)


def _safe_float(value) -> float:
    try:
        return float(value) if value is not None else 0.0
    except (TypeError, ValueError):
        return 0.0


def _optional_float(value) -> float | None:
    return None if value is None else _safe_float(value)


def serialize_table(
    table: Table, current_order: TableOrder | None = None, include_order: bool = False
) -> dict[str, Any]:
    """
    Serialize a table; with include_order the open tab (if any) is embedded
    for the table map.
    """
    data = {
        "id": table.id,
        "restaurant_id": table.restaurant_id,
        "number": table.number,
        "name": table.name,
        "capacity": table.capacity,
        "status": table.status,
        "current_order_id": table.current_order_id,
        "created_at": isoformat_or_none(table.created_at),
        "updated_at": isoformat_or_none(table.updated_at),
    }
    if include_order:
        data["current_order"] = (
            serialize_table_order(current_order) if current_order is not None else None
        )
    return data


def serialize_table_order_item(item: TableOrderItem) -> dict[str, Any]:
    return {
        "id": item.id,
        "table_order_id": item.table_order_id,
        "product_id": item.product_id,
        "product_name": item.product_name,
        "quantity": item.quantity,
        "unit_price": _safe_float(item.unit_price),
        "line_total": _safe_float(item.unit_price) * item.quantity,
        "observation": item.observation,
        "status": item.status,
        "status_label": ITEM_STATUS_LABELS.get(item.status, item.status),
        "ordered_at": isoformat_or_none(item.ordered_at),
        "delivered_at": isoformat_or_none(item.delivered_at),
    }


def serialize_table_order(order: TableOrder, include_items: bool = False) -> dict[str, Any]:
    data = {
        "id": order.id,
        "restaurant_id": order.restaurant_id,
        "table_id": order.table_id,
        "waiter_id": order.waiter_id,
        "waiter_name": order.waiter_name,
        "customer_count": order.customer_count,
        "status": order.status,
        "subtotal": _safe_float(order.subtotal),
        "discount": _safe_float(order.discount),
        "discount_type": order.discount_type,
        "service_fee_enabled": order.service_fee_enabled,
        "service_fee_percentage": _safe_float(order.service_fee_percentage),
        "total_amount": _safe_float(order.total_amount),
        "payment_method": order.payment_method,
        "notes": order.notes,
        "opened_at": isoformat_or_none(order.opened_at),
        "closed_at": isoformat_or_none(order.closed_at),
    }
    if include_items:
        data["items"] = [serialize_table_order_item(item) for item in order.items]
    return data


def serialize_delivery_order_item(item: DeliveryOrderItem) -> dict[str, Any]:
    return {
        "id": item.id,
        "order_id": item.order_id,
        "product_name": item.product_name,
        "quantity": item.quantity,
        "unit_price": _safe_float(item.unit_price),
        "observation": item.observation,
    }


def serialize_delivery_order(order: DeliveryOrder, include_items: bool = True) -> dict[str, Any]:
    data = {
        "id": order.id,
        "restaurant_id": order.restaurant_id,
        "customer_name": order.customer_name,
        "customer_phone": order.customer_phone,
        "address": {
            "street": order.address_street,
            "number": order.address_number,
            "neighborhood": order.address_neighborhood,
            "complement": order.address_complement,
            "reference": order.address_reference,
        },
        "payment_method": order.payment_method,
        "change_for": _optional_float(order.change_for),
        "delivery_fee": _safe_float(order.delivery_fee),
        "total_amount": _safe_float(order.total_amount),
        "status": order.status,
        "created_at": isoformat_or_none(order.created_at),
    }
    if include_items:
        data["items"] = [serialize_delivery_order_item(item) for item in order.items]
    return data


def success_response(data: Any, message: str | None = None) -> dict[str, Any]:
    """Create a standardized success response."""
    response = {"status": "success", "data": data, "error": None}
    if message:
        response["message"] = message
    return response


def error_response(error: str, details: dict[str, Any] | None = None) -> dict[str, Any]:
    """Create a standardized error response."""
    response = {"status": "error", "data": None, "error": error}
    if details:
        response["details"] = details
    return response
