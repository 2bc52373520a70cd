"""
Table Service - Administración de mesas del restaurante

Creación, edición, eliminación y reserva de mesas, y el mapa de mesas del PDV.
Only available tables can be edited or removed; occupancy itself is changed
exclusively by the table order service.
"""

from typing import Any

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError

from comanda.constants import DEFAULT_TABLE_CAPACITY, RealtimeEntity, TableStatus
from comanda.db import get_session
from comanda.errors import ConflictError, NotFoundError, PreconditionError, ValidationError
from comanda.logging_config import get_logger
from comanda.models import Table, TableOrder
from comanda.realtime import emit_change
from comanda.serializers import serialize_table
from comanda.validation import validate_capacity, validate_table_number

logger = get_logger(__name__)


def _get_table_for_update(db_session, restaurant_id: int, table_id: int) -> Table:
    table = (
        db_session.execute(
            select(Table)
            .where(Table.id == table_id, Table.restaurant_id == restaurant_id)
            .with_for_update()
        )
        .scalars()
        .one_or_none()
    )
    if table is None:
        raise NotFoundError("Mesa no encontrada", table_id=table_id)
    return table


def _ensure_number_free(
    db_session, restaurant_id: int, number: int, exclude_id: int | None = None
) -> None:
    query = select(Table.id).where(Table.restaurant_id == restaurant_id, Table.number == number)
    if exclude_id is not None:
        query = query.where(Table.id != exclude_id)
    if db_session.execute(query).first() is not None:
        raise ConflictError(f"Ya existe una mesa con el número {number}", number=number)


class TableService:
    """Service for managing restaurant tables."""

    @staticmethod
    def list_tables(restaurant_id: int, status: str | None = None) -> list[dict[str, Any]]:
        """
        List the tables of a restaurant ordered by number.

        Args:
            restaurant_id: Tenant whose tables are listed
            status: Optional TableStatus filter

        Returns:
            List of table dictionaries
        """
        with get_session() as db_session:
            query = select(Table).where(Table.restaurant_id == restaurant_id)
            if status:
                try:
                    query = query.where(Table.status == TableStatus(status).value)
                except ValueError as exc:
                    raise ValidationError(f"Estado de mesa inválido: {status}") from exc
            tables = db_session.execute(query.order_by(Table.number)).scalars().all()
            return [serialize_table(table) for table in tables]

    @staticmethod
    def list_tables_with_orders(restaurant_id: int) -> list[dict[str, Any]]:
        """
        Mapa de mesas: cada mesa con su cuenta abierta (si existe).

        Open orders are loaded with one query and matched through
        current_order_id, so a table whose pointer went stale shows no order.
        """
        with get_session() as db_session:
            tables = (
                db_session.execute(
                    select(Table)
                    .where(Table.restaurant_id == restaurant_id)
                    .order_by(Table.number)
                )
                .scalars()
                .all()
            )
            order_ids = [table.current_order_id for table in tables if table.current_order_id]
            orders: dict[int, TableOrder] = {}
            if order_ids:
                rows = (
                    db_session.execute(
                        select(TableOrder).where(
                            TableOrder.id.in_(order_ids),
                            TableOrder.restaurant_id == restaurant_id,
                        )
                    )
                    .scalars()
                    .all()
                )
                orders = {order.id: order for order in rows if order.is_open}

            return [
                serialize_table(
                    table, orders.get(table.current_order_id), include_order=True
                )
                for table in tables
            ]

    @staticmethod
    def get_table(restaurant_id: int, table_id: int) -> dict[str, Any]:
        with get_session() as db_session:
            table = db_session.execute(
                select(Table).where(Table.id == table_id, Table.restaurant_id == restaurant_id)
            ).scalar_one_or_none()
            if table is None:
                raise NotFoundError("Mesa no encontrada", table_id=table_id)
            return serialize_table(table)

    @staticmethod
    def create_table(
        restaurant_id: int,
        number: int,
        name: str | None = None,
        capacity: int = DEFAULT_TABLE_CAPACITY,
    ) -> dict[str, Any]:
        """
        Create a new table.

        Raises:
            ValidationError: If number or capacity are not positive integers
            ConflictError: If the number is already used in the restaurant
        """
        number = validate_table_number(number)
        capacity = validate_capacity(capacity)

        try:
            with get_session() as db_session:
                _ensure_number_free(db_session, restaurant_id, number)
                table = Table(
                    restaurant_id=restaurant_id,
                    number=number,
                    name=(name or "").strip() or None,
                    capacity=capacity,
                    status=TableStatus.AVAILABLE.value,
                )
                db_session.add(table)
                db_session.flush()
                result = serialize_table(table)
        except IntegrityError as exc:
            # Two admins creating the same number at once
            raise ConflictError(
                f"Ya existe una mesa con el número {number}", number=number
            ) from exc

        logger.info(f"Table {number} created for restaurant {restaurant_id}")
        emit_change(RealtimeEntity.TABLE, result["id"], restaurant_id, "created")
        return result

    @staticmethod
    def update_table(restaurant_id: int, table_id: int, data: dict[str, Any]) -> dict[str, Any]:
        """
        Update number, name or capacity of an available table.

        Args:
            restaurant_id: Tenant owning the table
            table_id: ID of the table
            data: Fields to change (number, name, capacity)

        Raises:
            NotFoundError: If the table does not exist in the restaurant
            PreconditionError: If the table is occupied, reserved or requesting the bill
            ConflictError: If the new number is already used
        """
        with get_session() as db_session:
            table = _get_table_for_update(db_session, restaurant_id, table_id)
            if table.status != TableStatus.AVAILABLE.value:
                logger.warning(f"Rejected edit of table {table.number} in status {table.status}")
                raise PreconditionError(
                    "La mesa está en uso y no puede editarse",
                    table_id=table_id,
                    status=table.status,
                )

            if data.get("number") is not None:
                number = validate_table_number(data["number"])
                if number != table.number:
                    _ensure_number_free(db_session, restaurant_id, number, exclude_id=table.id)
                    table.number = number
            if "name" in data:
                table.name = (data["name"] or "").strip() or None
            if data.get("capacity") is not None:
                table.capacity = validate_capacity(data["capacity"])

            db_session.flush()
            result = serialize_table(table)

        logger.info(f"Table {table_id} updated")
        emit_change(RealtimeEntity.TABLE, table_id, restaurant_id, "updated")
        return result

    @staticmethod
    def delete_table(restaurant_id: int, table_id: int) -> None:
        """
        Delete an available table.

        Closed orders keep their history with table_id set to null.
        """
        with get_session() as db_session:
            table = _get_table_for_update(db_session, restaurant_id, table_id)
            if table.status != TableStatus.AVAILABLE.value or table.current_order_id:
                logger.warning(
                    f"Rejected delete of table {table.number} in status {table.status}"
                )
                raise PreconditionError(
                    "La mesa está en uso y no puede eliminarse",
                    table_id=table_id,
                    status=table.status,
                )
            db_session.execute(
                update(TableOrder).where(TableOrder.table_id == table.id).values(table_id=None)
            )
            db_session.delete(table)

        logger.info(f"Table {table_id} deleted from restaurant {restaurant_id}")
        emit_change(RealtimeEntity.TABLE, table_id, restaurant_id, "deleted")

    @staticmethod
    def set_table_reserved(restaurant_id: int, table_id: int, reserved: bool) -> dict[str, Any]:
        """
        Marca o libera la reserva de una mesa (available <-> reserved).

        Reserving an already reserved table, or releasing an available one, is
        a no-op. Tables in service cannot be reserved.
        """
        source = TableStatus.AVAILABLE if reserved else TableStatus.RESERVED
        target = TableStatus.RESERVED if reserved else TableStatus.AVAILABLE

        with get_session() as db_session:
            table = _get_table_for_update(db_session, restaurant_id, table_id)
            if table.status == target.value:
                return serialize_table(table)

            result = db_session.execute(
                update(Table)
                .where(
                    Table.id == table_id,
                    Table.restaurant_id == restaurant_id,
                    Table.status == source.value,
                )
                .values(status=target.value)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                raise PreconditionError(
                    "Solo mesas libres pueden reservarse",
                    table_id=table_id,
                    status=table.status,
                )
            db_session.refresh(table)
            data = serialize_table(table)

        logger.info(f"Table {table_id} {'reserved' if reserved else 'released'}")
        emit_change(RealtimeEntity.TABLE, table_id, restaurant_id, "updated", status=target.value)
        return data


list_tables = TableService.list_tables
list_tables_with_orders = TableService.list_tables_with_orders
get_table = TableService.get_table
create_table = TableService.create_table
update_table = TableService.update_table
delete_table = TableService.delete_table
set_table_reserved = TableService.set_table_reserved
