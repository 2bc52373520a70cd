"""
Cola de cocina: ítems de mesas y de delivery en una sola lista.

The queue is a read-only projection recomputed from the entity store. Table
items come from orders that still own their table; delivery items take the
kitchen status derived from their order (pending, preparing, or ready while
out for delivery) and the order's creation time as ordered_at.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Iterator
from dataclasses import dataclass
from datetime import datetime
from threading import Lock
from typing import Any

from sqlalchemy import select

from comanda.constants import (
    DEFAULT_KITCHEN_STATUSES,
    DELIVERY_TO_KITCHEN_STATUS,
    KITCHEN_ATTENTION_MINUTES,
    KITCHEN_LATE_MINUTES,
    OPEN_TABLE_ORDER_STATUSES,
    DeliveryOrderStatus,
    KitchenStatus,
    OrderType,
    RealtimeEntity,
    Urgency,
)
from comanda.datetime_utils import isoformat_or_none, utcnow
from comanda.db import get_session
from comanda.errors import NotFoundError, ValidationError
from comanda.logging_config import get_logger
from comanda.models import DeliveryOrder, DeliveryOrderItem, Table, TableOrder, TableOrderItem
from comanda.realtime import subscribe
from comanda.services import delivery_order_service, table_order_service

logger = get_logger(__name__)

# Tables before deliveries when two items were ordered at the same instant
_ORDER_TYPE_RANK = {OrderType.TABLE: 0, OrderType.DELIVERY: 1}

_WATCHED_ENTITIES = (
    RealtimeEntity.TABLE_ORDER_ITEM,
    RealtimeEntity.TABLE_ORDER,
    RealtimeEntity.DELIVERY_ORDER,
)


@dataclass(frozen=True)
class KitchenItem:
    id: int
    order_type: OrderType
    order_id: int
    product_name: str
    quantity: int
    status: KitchenStatus
    ordered_at: datetime
    observation: str | None = None
    table_number: int | None = None
    table_name: str | None = None
    waiter_name: str | None = None
    customer_name: str | None = None

    @property
    def sort_key(self) -> tuple:
        return (self.ordered_at, _ORDER_TYPE_RANK[self.order_type], self.id)

    def waiting_minutes(self, now: datetime | None = None) -> int:
        elapsed = (now or utcnow()) - self.ordered_at
        return max(0, int(elapsed.total_seconds() // 60))

    def urgency(
        self,
        now: datetime | None = None,
        attention_minutes: int = KITCHEN_ATTENTION_MINUTES,
        late_minutes: int = KITCHEN_LATE_MINUTES,
    ) -> Urgency:
        """Etiqueta visual según el tiempo de espera; no cambia el orden de la cola."""
        minutes = self.waiting_minutes(now)
        if minutes >= late_minutes:
            return Urgency.LATE
        if minutes >= attention_minutes:
            return Urgency.ATTENTION
        return Urgency.NORMAL

    def to_dict(
        self,
        now: datetime | None = None,
        attention_minutes: int = KITCHEN_ATTENTION_MINUTES,
        late_minutes: int = KITCHEN_LATE_MINUTES,
    ) -> dict[str, Any]:
        now = now or utcnow()
        return {
            "id": self.id,
            "order_type": self.order_type.value,
            "order_id": self.order_id,
            "product_name": self.product_name,
            "quantity": self.quantity,
            "observation": self.observation,
            "status": self.status.value,
            "ordered_at": isoformat_or_none(self.ordered_at),
            "table_number": self.table_number,
            "table_name": self.table_name,
            "waiter_name": self.waiter_name,
            "customer_name": self.customer_name,
            "waiting_minutes": self.waiting_minutes(now),
            "urgency": self.urgency(now, attention_minutes, late_minutes).value,
        }


def normalize_statuses(statuses: Iterable | None) -> frozenset[KitchenStatus]:
    if not statuses:
        return DEFAULT_KITCHEN_STATUSES
    try:
        return frozenset(KitchenStatus(status) for status in statuses)
    except ValueError as exc:
        raise ValidationError(f"Estado de cocina inválido: {list(statuses)}") from exc


def _table_items(db_session, restaurant_id: int, statuses: frozenset[KitchenStatus]):
    rows = db_session.execute(
        select(TableOrderItem, TableOrder, Table)
        .join(TableOrder, TableOrder.id == TableOrderItem.table_order_id)
        .outerjoin(Table, Table.id == TableOrder.table_id)
        .where(
            TableOrder.restaurant_id == restaurant_id,
            TableOrder.status.in_([status.value for status in OPEN_TABLE_ORDER_STATUSES]),
            TableOrderItem.status.in_([status.value for status in statuses]),
        )
    ).all()
    for item, order, table in rows:
        yield KitchenItem(
            id=item.id,
            order_type=OrderType.TABLE,
            order_id=order.id,
            product_name=item.product_name,
            quantity=item.quantity,
            status=KitchenStatus(item.status),
            ordered_at=item.ordered_at,
            observation=item.observation,
            table_number=table.number if table else None,
            table_name=table.name if table else None,
            waiter_name=order.waiter_name,
        )


def _delivery_items(db_session, restaurant_id: int, statuses: frozenset[KitchenStatus]):
    order_statuses = [
        delivery_status.value
        for delivery_status, kitchen_status in DELIVERY_TO_KITCHEN_STATUS.items()
        if kitchen_status in statuses
    ]
    if not order_statuses:
        return
    rows = db_session.execute(
        select(DeliveryOrderItem, DeliveryOrder)
        .join(DeliveryOrder, DeliveryOrder.id == DeliveryOrderItem.order_id)
        .where(
            DeliveryOrder.restaurant_id == restaurant_id,
            DeliveryOrder.status.in_(order_statuses),
        )
    ).all()
    for item, order in rows:
        yield KitchenItem(
            id=item.id,
            order_type=OrderType.DELIVERY,
            order_id=order.id,
            product_name=item.product_name,
            quantity=item.quantity,
            status=DELIVERY_TO_KITCHEN_STATUS[DeliveryOrderStatus(order.status)],
            ordered_at=order.created_at,
            observation=item.observation,
            customer_name=order.customer_name,
        )


def list_kitchen_items(restaurant_id: int, statuses: Iterable | None = None) -> list[KitchenItem]:
    """
    Lista unificada para la pantalla de cocina, la más antigua primero.

    Args:
        restaurant_id: Tenant whose kitchen is displayed
        statuses: Kitchen statuses to include (default pending and preparing)
    """
    wanted = normalize_statuses(statuses)
    with get_session() as db_session:
        items = list(_table_items(db_session, restaurant_id, wanted))
        items.extend(_delivery_items(db_session, restaurant_id, wanted))
    items.sort(key=lambda item: item.sort_key)
    return items


class KitchenQueueProjector:
    """
    Proyección de la cola de cocina de un restaurante.

    Iterating always queries the store again, so a projector can be iterated
    any number of times. `snapshot()` keeps the last computed list until a
    realtime change for items or orders invalidates it (after `attach()`).
    """

    def __init__(self, restaurant_id: int, statuses: Iterable | None = None):
        self.restaurant_id = restaurant_id
        self.statuses = normalize_statuses(statuses)
        self._snapshot: list[KitchenItem] | None = None
        self._lock = Lock()
        self._unsubscribers: list[Callable[[], None]] = []

    def __iter__(self) -> Iterator[KitchenItem]:
        return iter(list_kitchen_items(self.restaurant_id, self.statuses))

    def snapshot(self) -> list[KitchenItem]:
        with self._lock:
            if self._snapshot is None:
                self._snapshot = list_kitchen_items(self.restaurant_id, self.statuses)
            return list(self._snapshot)

    def invalidate(self, event: dict[str, Any] | None = None) -> None:
        with self._lock:
            self._snapshot = None
        if event:
            logger.debug(f"Kitchen snapshot invalidated by {event.get('type')}")

    @property
    def is_attached(self) -> bool:
        return bool(self._unsubscribers)

    def attach(self) -> KitchenQueueProjector:
        if not self._unsubscribers:
            self._unsubscribers = [
                subscribe(self.restaurant_id, entity, self.invalidate)
                for entity in _WATCHED_ENTITIES
            ]
        return self

    def detach(self) -> None:
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers = []

    def __enter__(self) -> KitchenQueueProjector:
        return self.attach()

    def __exit__(self, exc_type, exc, tb) -> None:
        self.detach()


def update_kitchen_item_status(
    restaurant_id: int,
    order_type,
    item_id: int,
    new_status,
    order_id: int | None = None,
) -> dict[str, Any]:
    """
    Cambia el estado de un ítem desde la pantalla de cocina.

    Table items follow their own state machine. Delivery items share the
    status of their order, so the whole delivery order is advanced.
    """
    try:
        kind = OrderType(order_type)
    except ValueError as exc:
        raise ValidationError(f"Tipo de pedido inválido: {order_type}") from exc

    if kind == OrderType.TABLE:
        return table_order_service.update_item_status(restaurant_id, item_id, new_status)

    if order_id is None:
        with get_session() as db_session:
            order_id = db_session.execute(
                select(DeliveryOrderItem.order_id)
                .join(DeliveryOrder, DeliveryOrder.id == DeliveryOrderItem.order_id)
                .where(
                    DeliveryOrderItem.id == item_id,
                    DeliveryOrder.restaurant_id == restaurant_id,
                )
            ).scalar_one_or_none()
        if order_id is None:
            raise NotFoundError("Ítem de delivery no encontrado", item_id=item_id)

    return delivery_order_service.advance_from_kitchen(restaurant_id, order_id, new_status)


def list_ready_items(restaurant_id: int) -> list[KitchenItem]:
    """Ítems de mesa listos para que el mesero los lleve."""
    return [
        item
        for item in list_kitchen_items(restaurant_id, {KitchenStatus.READY})
        if item.order_type == OrderType.TABLE
    ]
