"""
Pedidos de delivery: creación desde el checkout del cliente y flujo de estados.

pending → preparing → delivery → completed, cancellable until completed. The
kitchen display drives the first two steps through `advance_from_kitchen`
using its own status vocabulary (ready means "out for delivery").
"""

from __future__ import annotations

from typing import Any

from sqlalchemy import select, update
from sqlalchemy.orm import selectinload

from comanda.cart import Cart
from comanda.constants import (
    KITCHEN_TO_DELIVERY_STATUS,
    DeliveryOrderStatus,
    DeliveryPaymentMethod,
    KitchenStatus,
    RealtimeEntity,
)
from comanda.datetime_utils import utcnow
from comanda.db import get_session
from comanda.errors import IllegalTransitionError, NotFoundError, ValidationError
from comanda.logging_config import get_logger
from comanda.models import DeliveryOrder, DeliveryOrderItem, StoreConfig
from comanda.realtime import emit_change
from comanda.serializers import serialize_delivery_order
from comanda.services.pricing import ZERO, to_money
from comanda.services.state_machine import delivery_state_machine
from comanda.validation import (
    normalize_phone,
    validate_product_name,
    validate_quantity,
    validate_unit_price,
)

logger = get_logger(__name__)

CUSTOMER_ORDERS_LIMIT = 50

REQUIRED_CUSTOMER_FIELDS = (
    "customer_name",
    "customer_phone",
    "address_street",
    "address_number",
    "address_neighborhood",
)


def _get_delivery_order(
    db_session, restaurant_id: int, order_id: int, lock: bool = False
) -> DeliveryOrder:
    query = select(DeliveryOrder).where(
        DeliveryOrder.id == order_id, DeliveryOrder.restaurant_id == restaurant_id
    )
    if lock:
        query = query.with_for_update()
    order = db_session.execute(query).scalars().one_or_none()
    if order is None:
        raise NotFoundError("Pedido no encontrado", order_id=order_id)
    return order


def _normalize_items(items: list[dict[str, Any]]) -> list[dict[str, Any]]:
    if not items:
        raise ValidationError("El pedido debe tener al menos un ítem")
    return [
        {
            "product_name": validate_product_name(entry.get("product_name", "")),
            "quantity": validate_quantity(entry.get("quantity", 1)),
            "unit_price": to_money(validate_unit_price(entry.get("unit_price"))),
            "observation": (entry.get("observation") or "").strip() or None,
        }
        for entry in items
    ]


def create_delivery_order(
    restaurant_id: int, customer: dict[str, Any], items: list[dict[str, Any]]
) -> dict[str, Any]:
    """
    Registra un pedido de delivery.

    Args:
        restaurant_id: Tenant receiving the order
        customer: customer_name, customer_phone, address_* fields,
            payment_method, change_for (cash only) and delivery_fee
        items: product_name, quantity, unit_price and observation per line

    Returns:
        Serialized order with its items

    Raises:
        ValidationError: Missing customer data, invalid payment method or a
            change amount below the total
    """
    missing = [name for name in REQUIRED_CUSTOMER_FIELDS if not (customer.get(name) or "").strip()]
    if missing:
        raise ValidationError("Datos de entrega incompletos", fields=missing)
    phone = normalize_phone(customer["customer_phone"])

    try:
        payment_method = DeliveryPaymentMethod(customer.get("payment_method"))
    except ValueError as exc:
        raise ValidationError(
            f"Método de pago inválido: {customer.get('payment_method')}"
        ) from exc

    lines = _normalize_items(items)
    delivery_fee = to_money(customer.get("delivery_fee") or 0)
    if delivery_fee < 0:
        raise ValidationError("La tarifa de entrega no puede ser negativa")

    items_total = sum((line["unit_price"] * line["quantity"] for line in lines), ZERO)
    total = to_money(items_total + delivery_fee)

    change_for = customer.get("change_for")
    if change_for is not None:
        if payment_method != DeliveryPaymentMethod.MONEY:
            raise ValidationError("El cambio solo aplica para pagos en efectivo")
        change_for = to_money(change_for)
        if change_for < total:
            raise ValidationError(
                "El monto para cambio debe ser mayor o igual al total",
                total=float(total),
            )

    with get_session() as db_session:
        order = DeliveryOrder(
            restaurant_id=restaurant_id,
            customer_name=customer["customer_name"].strip(),
            customer_phone=phone,
            address_street=customer["address_street"].strip(),
            address_number=customer["address_number"].strip(),
            address_neighborhood=customer["address_neighborhood"].strip(),
            address_complement=(customer.get("address_complement") or "").strip() or None,
            address_reference=(customer.get("address_reference") or "").strip() or None,
            payment_method=payment_method.value,
            change_for=change_for,
            delivery_fee=delivery_fee,
            total_amount=total,
            status=DeliveryOrderStatus.PENDING.value,
            created_at=utcnow(),
            items=[DeliveryOrderItem(**line) for line in lines],
        )
        db_session.add(order)
        db_session.flush()
        data = serialize_delivery_order(order)

    logger.info(f"Delivery order {data['id']} created, total {total}")
    emit_change(
        RealtimeEntity.DELIVERY_ORDER,
        data["id"],
        restaurant_id,
        "created",
        status=DeliveryOrderStatus.PENDING.value,
    )
    return data


def _store_delivery_fee(restaurant_id: int):
    with get_session() as db_session:
        fee = db_session.execute(
            select(StoreConfig.delivery_fee).where(StoreConfig.restaurant_id == restaurant_id)
        ).scalar_one_or_none()
    return fee if fee is not None else ZERO


def checkout_cart(restaurant_id: int, cart: Cart, customer: dict[str, Any]) -> dict[str, Any]:
    """
    Convierte el carrito del cliente en un pedido de delivery.

    The restaurant's configured delivery fee applies unless the caller
    supplies one (the staff screen can register phone orders with any fee).
    """
    if cart.is_empty:
        raise ValidationError("El carrito está vacío")
    if customer.get("delivery_fee") is None:
        customer = {**customer, "delivery_fee": _store_delivery_fee(restaurant_id)}

    items = []
    for item in cart.items:
        observation = item.observation
        if item.selected_addons:
            addons = ", ".join(
                name for names in item.selected_addons.values() for name in names
            )
            observation = f"{observation} ({addons})" if observation else addons
        items.append(
            {
                "product_name": item.product_name,
                "quantity": item.quantity,
                "unit_price": item.unit_price,
                "observation": observation,
            }
        )
    return create_delivery_order(restaurant_id, customer, items)


def update_delivery_status(restaurant_id: int, order_id: int, new_status) -> dict[str, Any]:
    """
    Avanza o cancela un pedido de delivery.

    A repeated request for the current status is an idempotent success.

    Raises:
        IllegalTransitionError: For an edge outside the delivery flow
    """
    target = delivery_state_machine.coerce(new_status)

    with get_session() as db_session:
        order = _get_delivery_order(db_session, restaurant_id, order_id, lock=True)
        current = delivery_state_machine.coerce(order.status)
        if current == target:
            return serialize_delivery_order(order)

        delivery_state_machine.ensure(current, target)
        result = db_session.execute(
            update(DeliveryOrder)
            .where(DeliveryOrder.id == order.id, DeliveryOrder.status == current.value)
            .values(status=target.value)
            .execution_options(synchronize_session=False)
        )
        db_session.refresh(order)
        if result.rowcount == 0 and order.status != target.value:
            raise IllegalTransitionError(
                "El pedido cambió de estado mientras se actualizaba",
                delivery_state_machine.coerce(order.status),
                target,
            )
        data = serialize_delivery_order(order)

    logger.info(f"Delivery order {order_id} {current.value} -> {target.value}")
    emit_change(
        RealtimeEntity.DELIVERY_ORDER, order_id, restaurant_id, "updated", status=target.value
    )
    return data


def advance_from_kitchen(restaurant_id: int, order_id: int, kitchen_status) -> dict[str, Any]:
    """Aplica un estado de la pantalla de cocina (pending/preparing/ready) al pedido."""
    try:
        status = KitchenStatus(kitchen_status)
    except ValueError as exc:
        raise IllegalTransitionError(
            f"Estado de cocina desconocido: {kitchen_status}", None, kitchen_status
        ) from exc
    return update_delivery_status(restaurant_id, order_id, KITCHEN_TO_DELIVERY_STATUS[status])


def get_delivery_order(restaurant_id: int, order_id: int) -> dict[str, Any]:
    with get_session() as db_session:
        return serialize_delivery_order(_get_delivery_order(db_session, restaurant_id, order_id))


def list_delivery_orders(
    restaurant_id: int, statuses: list[str] | None = None, limit: int = 100
) -> list[dict[str, Any]]:
    """Pedidos del restaurante, más recientes primero."""
    with get_session() as db_session:
        query = (
            select(DeliveryOrder)
            .options(selectinload(DeliveryOrder.items))
            .where(DeliveryOrder.restaurant_id == restaurant_id)
        )
        if statuses:
            try:
                values = [DeliveryOrderStatus(s).value for s in statuses]
            except ValueError as exc:
                raise ValidationError(f"Estado de pedido inválido: {statuses}") from exc
            query = query.where(DeliveryOrder.status.in_(values))
        orders = (
            db_session.execute(
                query.order_by(DeliveryOrder.created_at.desc(), DeliveryOrder.id.desc()).limit(
                    max(1, min(limit, 500))
                )
            )
            .scalars()
            .all()
        )
        return [serialize_delivery_order(order) for order in orders]


def get_delivery_order_status(restaurant_id: int, order_id: int) -> dict[str, Any]:
    """Estado del pedido para el botón flotante del cliente."""
    with get_session() as db_session:
        order = _get_delivery_order(db_session, restaurant_id, order_id)
        return {"id": order.id, "status": order.status}


def list_orders_by_phone(
    restaurant_id: int, customer_phone: str, limit: int = CUSTOMER_ORDERS_LIMIT
) -> list[dict[str, Any]]:
    """
    "Mis pedidos": pedidos de un teléfono en el restaurante, más recientes primero.

    Raises:
        ValidationError: Phone with fewer than 8 digits
    """
    phone = normalize_phone(customer_phone)
    with get_session() as db_session:
        orders = (
            db_session.execute(
                select(DeliveryOrder)
                .where(
                    DeliveryOrder.restaurant_id == restaurant_id,
                    DeliveryOrder.customer_phone == phone,
                )
                .order_by(DeliveryOrder.created_at.desc(), DeliveryOrder.id.desc())
                .limit(max(1, min(limit, CUSTOMER_ORDERS_LIMIT)))
            )
            .scalars()
            .all()
        )
        return [serialize_delivery_order(order, include_items=False) for order in orders]
