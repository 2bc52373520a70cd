"""
Ciclo de vida de las cuentas de mesa (PDV y app del mesero).

Every status write on tables, table orders and their items goes through this
module. Each operation runs in one `get_session()` transaction: preconditions
are checked, the change is written with a conditional UPDATE on the status
that was read, and the realtime event is emitted only after the commit.
"""

from __future__ import annotations

from datetime import date
from typing import Any

from sqlalchemy import delete, select, update
from sqlalchemy.orm import selectinload

from comanda.constants import (
    CLOSED_TABLE_ORDER_STATUSES,
    DEFAULT_SERVICE_FEE_PERCENTAGE,
    OPEN_TABLE_ORDER_STATUSES,
    TOTAL_TOLERANCE,
    DiscountType,
    OrderItemStatus,
    PaymentMethod,
    RealtimeEntity,
    TableOrderStatus,
    TableStatus,
)
from comanda.datetime_utils import local_day_bounds, local_today, resolve_timezone, utcnow
from comanda.db import get_session
from comanda.errors import (
    ConflictError,
    IllegalTransitionError,
    InvalidStateError,
    NotFoundError,
    PreconditionError,
    ValidationError,
)
from comanda.logging_config import get_logger, restaurant_logger
from comanda.models import StoreConfig, Table, TableOrder, TableOrderItem, Waiter
from comanda.realtime import emit_change
from comanda.serializers import serialize_table_order, serialize_table_order_item
from comanda.services.pricing import (
    OrderTotals,
    calculate_totals,
    items_subtotal,
    to_money,
    totals_match,
)
from comanda.services.state_machine import item_state_machine, table_order_state_machine
from comanda.validation import (
    to_decimal,
    validate_customer_count,
    validate_percentage,
    validate_product_name,
    validate_quantity,
    validate_unit_price,
)

logger = get_logger(__name__)

_OPEN_VALUES = [status.value for status in OPEN_TABLE_ORDER_STATUSES]


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _get_order(db_session, restaurant_id: int, order_id: int, lock: bool = False) -> TableOrder:
    query = select(TableOrder).where(
        TableOrder.id == order_id, TableOrder.restaurant_id == restaurant_id
    )
    if lock:
        query = query.with_for_update()
    order = db_session.execute(query).scalars().one_or_none()
    if order is None:
        raise NotFoundError("Cuenta no encontrada", order_id=order_id)
    return order


def _get_item(db_session, restaurant_id: int, item_id: int) -> TableOrderItem:
    item = (
        db_session.execute(
            select(TableOrderItem)
            .join(TableOrder, TableOrder.id == TableOrderItem.table_order_id)
            .where(TableOrderItem.id == item_id, TableOrder.restaurant_id == restaurant_id)
        )
        .scalars()
        .one_or_none()
    )
    if item is None:
        raise NotFoundError("Ítem no encontrado", item_id=item_id)
    return item


def _stored_items(db_session, order_id: int) -> list[TableOrderItem]:
    return list(
        db_session.execute(
            select(TableOrderItem).where(TableOrderItem.table_order_id == order_id)
        ).scalars()
    )


def _recalculate_order_totals(db_session, order: TableOrder) -> OrderTotals:
    """
    Recompute subtotal and total from the items table.

    The caller must hold the order row lock so concurrent additions are summed
    from the same committed set of rows.
    """
    db_session.flush()
    totals = calculate_totals(
        items_subtotal(_stored_items(db_session, order.id)),
        order.discount,
        order.discount_type,
        order.service_fee_enabled,
        order.service_fee_percentage,
    )
    order.subtotal = totals.subtotal
    order.total_amount = totals.total
    db_session.flush()
    return totals


def _free_table(db_session, order: TableOrder) -> None:
    """Libera la mesa de la cuenta; falla si la mesa ya no apunta a ella."""
    if order.table_id is None:
        return
    result = db_session.execute(
        update(Table)
        .where(Table.id == order.table_id, Table.current_order_id == order.id)
        .values(status=TableStatus.AVAILABLE.value, current_order_id=None)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        raise ConflictError(
            "La mesa ya no está asociada a esta cuenta",
            table_id=order.table_id,
            order_id=order.id,
        )


def _close_order(db_session, order: TableOrder, target: TableOrderStatus, **values) -> None:
    result = db_session.execute(
        update(TableOrder)
        .where(TableOrder.id == order.id, TableOrder.status.in_(_OPEN_VALUES))
        .values(status=target.value, closed_at=utcnow(), **values)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        raise InvalidStateError(
            "La cuenta ya fue cerrada", order_id=order.id, current_status=order.status
        )


def _ensure_order_open_for_items(order: TableOrder) -> None:
    if not order.is_open:
        raise InvalidStateError(
            "La cuenta está cerrada y no admite cambios",
            order_id=order.id,
            current_status=order.status,
        )


# ---------------------------------------------------------------------------
# Opening
# ---------------------------------------------------------------------------


def open_table(
    restaurant_id: int,
    table_id: int | None,
    customer_count: int = 1,
    waiter_name: str | None = None,
    waiter_id: int | None = None,
    service_fee_percentage=DEFAULT_SERVICE_FEE_PERCENTAGE,
) -> dict[str, Any]:
    """
    Abre una cuenta en una mesa libre, o una venta rápida si table_id es None.

    Raises:
        NotFoundError: If the table or waiter does not belong to the restaurant
        ConflictError: If the table is not available, including losing a race
            against another waiter opening the same table
    """
    customer_count = validate_customer_count(customer_count)
    fee_percentage = validate_percentage(service_fee_percentage, "porcentaje de servicio")

    with get_session() as db_session:
        if waiter_id is not None:
            waiter = db_session.execute(
                select(Waiter).where(
                    Waiter.id == waiter_id,
                    Waiter.restaurant_id == restaurant_id,
                    Waiter.is_active.is_(True),
                )
            ).scalar_one_or_none()
            if waiter is None:
                raise NotFoundError("Mesero no encontrado", waiter_id=waiter_id)
            waiter_name = waiter_name or waiter.name

        table = None
        if table_id is not None:
            table = db_session.execute(
                select(Table).where(Table.id == table_id, Table.restaurant_id == restaurant_id)
            ).scalar_one_or_none()
            if table is None:
                raise NotFoundError("Mesa no encontrada", table_id=table_id)
            if table.status != TableStatus.AVAILABLE.value:
                logger.warning(f"Rejected open of table {table.number} in status {table.status}")
                raise ConflictError(
                    "La mesa no está disponible", table_id=table_id, status=table.status
                )

        order = TableOrder(
            restaurant_id=restaurant_id,
            table_id=table_id,
            waiter_id=waiter_id,
            waiter_name=waiter_name,
            customer_count=customer_count,
            status=TableOrderStatus.OPEN.value,
            subtotal=to_money(0),
            discount=to_money(0),
            discount_type=DiscountType.VALUE.value,
            service_fee_enabled=True,
            service_fee_percentage=fee_percentage,
            total_amount=to_money(0),
            opened_at=utcnow(),
        )
        db_session.add(order)
        db_session.flush()

        if table is not None:
            # Only one concurrent opener matches status='available'
            result = db_session.execute(
                update(Table)
                .where(
                    Table.id == table_id,
                    Table.status == TableStatus.AVAILABLE.value,
                    Table.current_order_id.is_(None),
                )
                .values(status=TableStatus.OCCUPIED.value, current_order_id=order.id)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                logger.warning(f"Table {table_id} was opened concurrently, rolling back")
                raise ConflictError("La mesa acaba de ser abierta por otro usuario", table_id=table_id)

        result_data = serialize_table_order(order, include_items=True)

    if table_id is not None:
        logger.info(f"Table {table_id} opened by {waiter_name or 'staff'} (order {order.id})")
    else:
        logger.info(f"Quick sale {order.id} opened by {waiter_name or 'staff'}")
    emit_change(
        RealtimeEntity.TABLE_ORDER,
        result_data["id"],
        restaurant_id,
        "created",
        table_id=table_id,
        status=TableOrderStatus.OPEN.value,
    )
    if table_id is not None:
        emit_change(
            RealtimeEntity.TABLE,
            table_id,
            restaurant_id,
            "updated",
            status=TableStatus.OCCUPIED.value,
            current_order_id=result_data["id"],
        )
    return result_data


# ---------------------------------------------------------------------------
# Items
# ---------------------------------------------------------------------------


def add_item(
    restaurant_id: int,
    order_id: int,
    product_name: str,
    quantity: int,
    unit_price,
    product_id: str | None = None,
    observation: str | None = None,
) -> dict[str, Any]:
    """
    Agrega un ítem pendiente a una cuenta abierta y recalcula los totales.

    Raises:
        ValidationError: Quantity below 1, negative price or empty name
        InvalidStateError: If the order is not open
    """
    product_name = validate_product_name(product_name)
    quantity = validate_quantity(quantity)
    price = to_money(validate_unit_price(unit_price))

    with get_session() as db_session:
        order = _get_order(db_session, restaurant_id, order_id, lock=True)
        if order.status != TableOrderStatus.OPEN.value:
            logger.warning(f"Rejected item for order {order_id} in status {order.status}")
            raise InvalidStateError(
                "Solo se pueden agregar ítems a cuentas abiertas",
                order_id=order_id,
                current_status=order.status,
            )

        item = TableOrderItem(
            table_order_id=order.id,
            product_id=str(product_id) if product_id is not None else None,
            product_name=product_name,
            quantity=quantity,
            unit_price=price,
            observation=(observation or "").strip() or None,
            status=OrderItemStatus.PENDING.value,
            ordered_at=utcnow(),
        )
        db_session.add(item)
        totals = _recalculate_order_totals(db_session, order)
        result = serialize_table_order_item(item)

    logger.info(
        f"Item {product_name} x{quantity} added to order {order_id}, subtotal {totals.subtotal}"
    )
    emit_change(
        RealtimeEntity.TABLE_ORDER_ITEM,
        result["id"],
        restaurant_id,
        "created",
        order_id=order_id,
        status=OrderItemStatus.PENDING.value,
    )
    emit_change(
        RealtimeEntity.TABLE_ORDER,
        order_id,
        restaurant_id,
        "updated",
        subtotal=totals.subtotal,
        total_amount=totals.total,
    )
    return result


def update_item_status(restaurant_id: int, item_id: int, new_status) -> dict[str, Any]:
    """
    Cambia el estado de un ítem siguiendo pendiente → preparando → listo → entregado.

    Requesting the status the item already has is an idempotent success. The
    write is conditioned on the status read in this transaction; if another
    screen moved the item in between, the request succeeds only when the item
    already reached the requested status.

    Raises:
        IllegalTransitionError: For an edge outside the allowed graph
        InvalidStateError: If the item belongs to a closed order
    """
    target = item_state_machine.coerce(new_status)

    with get_session() as db_session:
        item = _get_item(db_session, restaurant_id, item_id)
        order_id = item.table_order_id
        order = _get_order(
            db_session, restaurant_id, order_id, lock=target == OrderItemStatus.CANCELLED
        )
        _ensure_order_open_for_items(order)

        current = item_state_machine.coerce(item.status)
        if current == target:
            return serialize_table_order_item(item)

        policy = item_state_machine.ensure(current, target)
        values: dict[str, Any] = {"status": target.value}
        if target == OrderItemStatus.DELIVERED:
            values["delivered_at"] = utcnow()

        result = db_session.execute(
            update(TableOrderItem)
            .where(TableOrderItem.id == item.id, TableOrderItem.status == current.value)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        db_session.refresh(item)
        if result.rowcount == 0:
            if item.status == target.value:
                return serialize_table_order_item(item)
            raise IllegalTransitionError(
                "El ítem cambió de estado mientras se actualizaba",
                item_state_machine.coerce(item.status),
                target,
            )

        totals = None
        if target == OrderItemStatus.CANCELLED:
            totals = _recalculate_order_totals(db_session, order)
        data = serialize_table_order_item(item)

    logger.info(f"Item {item_id} {current.value} -> {target.value} ({policy['action']})")
    emit_change(
        RealtimeEntity.TABLE_ORDER_ITEM,
        item_id,
        restaurant_id,
        "updated",
        order_id=order_id,
        status=target.value,
    )
    if totals is not None:
        emit_change(
            RealtimeEntity.TABLE_ORDER,
            order_id,
            restaurant_id,
            "updated",
            subtotal=totals.subtotal,
            total_amount=totals.total,
        )
    return data


def remove_item(restaurant_id: int, item_id: int) -> dict[str, Any]:
    """
    Elimina un ítem que la cocina todavía no empezó.

    Raises:
        PreconditionError: If the item is no longer pending
        InvalidStateError: If the order is closed
    """
    with get_session() as db_session:
        item = _get_item(db_session, restaurant_id, item_id)
        order = _get_order(db_session, restaurant_id, item.table_order_id, lock=True)
        _ensure_order_open_for_items(order)

        result = db_session.execute(
            delete(TableOrderItem)
            .where(
                TableOrderItem.id == item_id,
                TableOrderItem.status == OrderItemStatus.PENDING.value,
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            raise PreconditionError(
                "Solo se pueden quitar ítems pendientes; cancele el ítem en su lugar",
                item_id=item_id,
                status=item.status,
            )
        db_session.expunge(item)
        totals = _recalculate_order_totals(db_session, order)
        data = serialize_table_order(order)

    logger.info(f"Item {item_id} removed from order {data['id']}")
    emit_change(
        RealtimeEntity.TABLE_ORDER_ITEM, item_id, restaurant_id, "deleted", order_id=data["id"]
    )
    emit_change(
        RealtimeEntity.TABLE_ORDER,
        data["id"],
        restaurant_id,
        "updated",
        subtotal=totals.subtotal,
        total_amount=totals.total,
    )
    return data


# ---------------------------------------------------------------------------
# Bill and closing
# ---------------------------------------------------------------------------


def request_bill(restaurant_id: int, order_id: int) -> dict[str, Any]:
    """Pasa la cuenta y su mesa a 'requesting_bill'."""
    with get_session() as db_session:
        order = _get_order(db_session, restaurant_id, order_id, lock=True)
        table_order_state_machine.ensure(order.status, TableOrderStatus.REQUESTING_BILL)

        result = db_session.execute(
            update(TableOrder)
            .where(TableOrder.id == order.id, TableOrder.status == TableOrderStatus.OPEN.value)
            .values(status=TableOrderStatus.REQUESTING_BILL.value)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            raise InvalidStateError("La cuenta ya no está abierta", order_id=order_id)

        if order.table_id is not None:
            result = db_session.execute(
                update(Table)
                .where(Table.id == order.table_id, Table.current_order_id == order.id)
                .values(status=TableStatus.REQUESTING_BILL.value)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                raise ConflictError(
                    "La mesa ya no está asociada a esta cuenta", table_id=order.table_id
                )

        db_session.refresh(order)
        data = serialize_table_order(order)

    logger.info(f"Bill requested for order {order_id}")
    emit_change(
        RealtimeEntity.TABLE_ORDER,
        order_id,
        restaurant_id,
        "updated",
        status=TableOrderStatus.REQUESTING_BILL.value,
    )
    if data["table_id"] is not None:
        emit_change(
            RealtimeEntity.TABLE,
            data["table_id"],
            restaurant_id,
            "updated",
            status=TableStatus.REQUESTING_BILL.value,
        )
    return data


def close_table(
    restaurant_id: int,
    order_id: int,
    payment_method,
    table_id: int | None = None,
    discount=0,
    discount_type=DiscountType.VALUE,
    service_fee_enabled: bool = False,
    service_fee_percentage=None,
    total_amount=None,
    tolerance=TOTAL_TOLERANCE,
) -> dict[str, Any]:
    """
    Cierra la cuenta como pagada y libera la mesa.

    The total is recomputed here from the stored items; total_amount sent by
    the checkout screen is only compared against it and the server value is
    kept. The order is marked paid and the table freed in the same
    transaction, so a table that cannot be freed leaves the order open.

    Raises:
        InvalidStateError: If the order is already paid or cancelled
        PreconditionError: If table_id does not match the order's table
        ConflictError: If the table no longer points at this order
    """
    try:
        method = PaymentMethod(payment_method)
    except ValueError as exc:
        raise ValidationError(f"Método de pago inválido: {payment_method}") from exc

    log = restaurant_logger(__name__, restaurant_id)

    with get_session() as db_session:
        order = _get_order(db_session, restaurant_id, order_id, lock=True)
        table_order_state_machine.ensure(order.status, TableOrderStatus.PAID)
        if table_id is not None and order.table_id != table_id:
            raise PreconditionError(
                "La cuenta no pertenece a la mesa indicada",
                order_id=order_id,
                table_id=table_id,
            )

        fee_percentage = (
            order.service_fee_percentage if service_fee_percentage is None else service_fee_percentage
        )
        totals = calculate_totals(
            items_subtotal(_stored_items(db_session, order.id)),
            discount,
            discount_type,
            service_fee_enabled,
            fee_percentage,
        )
        if total_amount is not None and not totals_match(totals.total, total_amount, tolerance):
            log.warning(
                f"Client total {to_decimal(total_amount)} for order {order_id} differs from "
                f"server total {totals.total}; using server total"
            )

        _close_order(
            db_session,
            order,
            TableOrderStatus.PAID,
            payment_method=method.value,
            discount=to_money(discount),
            discount_type=DiscountType(discount_type).value,
            service_fee_enabled=service_fee_enabled,
            service_fee_percentage=to_money(fee_percentage),
            subtotal=totals.subtotal,
            total_amount=totals.total,
        )
        _free_table(db_session, order)

        db_session.refresh(order)
        data = serialize_table_order(order, include_items=True)

    log.info(f"Order {order_id} paid with {method.value}, total {totals.total}")
    emit_change(
        RealtimeEntity.TABLE_ORDER,
        order_id,
        restaurant_id,
        "closed",
        status=TableOrderStatus.PAID.value,
        total_amount=totals.total,
    )
    if data["table_id"] is not None:
        emit_change(
            RealtimeEntity.TABLE,
            data["table_id"],
            restaurant_id,
            "updated",
            status=TableStatus.AVAILABLE.value,
            current_order_id=None,
        )
    return data


def cancel_order(restaurant_id: int, order_id: int) -> dict[str, Any]:
    """
    Cancela una cuenta abierta y libera la mesa.

    Raises:
        InvalidStateError: Unless the order is open
    """
    with get_session() as db_session:
        order = _get_order(db_session, restaurant_id, order_id, lock=True)
        table_order_state_machine.ensure(order.status, TableOrderStatus.CANCELLED)
        _close_order(db_session, order, TableOrderStatus.CANCELLED)
        _free_table(db_session, order)
        db_session.refresh(order)
        data = serialize_table_order(order)

    logger.info(f"Order {order_id} cancelled")
    emit_change(
        RealtimeEntity.TABLE_ORDER,
        order_id,
        restaurant_id,
        "closed",
        status=TableOrderStatus.CANCELLED.value,
    )
    if data["table_id"] is not None:
        emit_change(
            RealtimeEntity.TABLE,
            data["table_id"],
            restaurant_id,
            "updated",
            status=TableStatus.AVAILABLE.value,
            current_order_id=None,
        )
    return data


def transfer_table(restaurant_id: int, order_id: int, to_table_id: int) -> dict[str, Any]:
    """
    Mueve una cuenta abierta a otra mesa libre.

    The destination takes the occupancy status of the origin (occupied or
    requesting_bill) and the origin is freed.

    Raises:
        InvalidStateError: If the order is closed
        ConflictError: If the destination is not available
    """
    with get_session() as db_session:
        order = _get_order(db_session, restaurant_id, order_id, lock=True)
        if not order.is_open:
            raise InvalidStateError(
                "Solo cuentas abiertas pueden transferirse",
                order_id=order_id,
                current_status=order.status,
            )
        if order.table_id == to_table_id:
            raise ValidationError("La cuenta ya está en esa mesa")

        destination = db_session.execute(
            select(Table).where(Table.id == to_table_id, Table.restaurant_id == restaurant_id)
        ).scalar_one_or_none()
        if destination is None:
            raise NotFoundError("Mesa destino no encontrada", table_id=to_table_id)

        from_table_id = order.table_id
        occupancy = (
            TableStatus.REQUESTING_BILL
            if order.status == TableOrderStatus.REQUESTING_BILL.value
            else TableStatus.OCCUPIED
        )
        result = db_session.execute(
            update(Table)
            .where(
                Table.id == to_table_id,
                Table.status == TableStatus.AVAILABLE.value,
                Table.current_order_id.is_(None),
            )
            .values(status=occupancy.value, current_order_id=order.id)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            raise ConflictError(
                "La mesa destino no está disponible",
                table_id=to_table_id,
                status=destination.status,
            )

        _free_table(db_session, order)
        order.table_id = to_table_id
        db_session.flush()
        data = serialize_table_order(order)

    logger.info(f"Order {order_id} transferred from table {from_table_id} to {to_table_id}")
    emit_change(
        RealtimeEntity.TABLE_ORDER,
        order_id,
        restaurant_id,
        "updated",
        table_id=to_table_id,
        from_table_id=from_table_id,
    )
    if from_table_id is not None:
        emit_change(
            RealtimeEntity.TABLE,
            from_table_id,
            restaurant_id,
            "updated",
            status=TableStatus.AVAILABLE.value,
            current_order_id=None,
        )
    emit_change(
        RealtimeEntity.TABLE,
        to_table_id,
        restaurant_id,
        "updated",
        status=occupancy.value,
        current_order_id=order_id,
    )
    return data


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------


def get_order(restaurant_id: int, order_id: int) -> dict[str, Any]:
    with get_session() as db_session:
        order = _get_order(db_session, restaurant_id, order_id)
        return serialize_table_order(order, include_items=True)


def preview_totals(
    restaurant_id: int,
    order_id: int,
    discount=0,
    discount_type=DiscountType.VALUE,
    service_fee_enabled: bool | None = None,
    service_fee_percentage=None,
) -> dict[str, float]:
    """Totales que mostraría el cierre con los parámetros dados; no escribe nada."""
    with get_session() as db_session:
        order = _get_order(db_session, restaurant_id, order_id)
        totals = calculate_totals(
            items_subtotal(_stored_items(db_session, order.id)),
            discount,
            discount_type,
            order.service_fee_enabled if service_fee_enabled is None else service_fee_enabled,
            order.service_fee_percentage
            if service_fee_percentage is None
            else service_fee_percentage,
        )
    return totals.to_dict()


def _restaurant_timezone(db_session, restaurant_id: int):
    tz_name = db_session.execute(
        select(StoreConfig.timezone).where(StoreConfig.restaurant_id == restaurant_id)
    ).scalar_one_or_none()
    return resolve_timezone(tz_name)


def list_closed_orders(
    restaurant_id: int, start_date: date | None = None, end_date: date | None = None
) -> list[dict[str, Any]]:
    """
    Historial de cuentas pagadas o canceladas, más recientes primero.

    Both dates are inclusive whole days in the restaurant's timezone
    (UTC when none is configured). Missing dates default to the local today.
    """
    with get_session() as db_session:
        tz = _restaurant_timezone(db_session, restaurant_id)
        today = local_today(tz)
        start_date = start_date or today
        end_date = end_date or today
        if end_date < start_date:
            raise ValidationError("La fecha final es anterior a la inicial")

        start, end = local_day_bounds(start_date, end_date, tz)
        orders = (
            db_session.execute(
                select(TableOrder)
                .options(selectinload(TableOrder.items))
                .where(
                    TableOrder.restaurant_id == restaurant_id,
                    TableOrder.status.in_([s.value for s in CLOSED_TABLE_ORDER_STATUSES]),
                    TableOrder.closed_at >= start,
                    TableOrder.closed_at < end,
                )
                .order_by(TableOrder.closed_at.desc(), TableOrder.id.desc())
            )
            .scalars()
            .all()
        )
        return [serialize_table_order(order, include_items=True) for order in orders]
