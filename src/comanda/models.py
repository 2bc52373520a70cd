"""
SQLAlchemy ORM models shared by the comanda services.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

from .constants import (
    DEFAULT_SERVICE_FEE_PERCENTAGE,
    DeliveryOrderStatus,
    DiscountType,
    OrderItemStatus,
    TableOrderStatus,
    TableStatus,
)


class Base(DeclarativeBase):
    """Declarative base for all ORM models."""


class Restaurant(Base):
    __tablename__ = "comanda_restaurants"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(120), nullable=False)
    slug: Mapped[str] = mapped_column(String(120), nullable=False, unique=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, server_default=func.now(), nullable=False
    )


class StoreConfig(Base):
    """Per-restaurant settings: kitchen access, business timezone and delivery fee."""

    __tablename__ = "comanda_store_config"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    restaurant_id: Mapped[int] = mapped_column(
        ForeignKey("comanda_restaurants.id"), nullable=False, unique=True
    )
    kitchen_pin: Mapped[str | None] = mapped_column(String(12), nullable=True)
    kitchen_pin_enabled: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    timezone: Mapped[str | None] = mapped_column(String(64), nullable=True)  # IANA name
    delivery_fee: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False, default=0)


class Waiter(Base):
    __tablename__ = "comanda_waiters"
    __table_args__ = (Index("ix_waiter_restaurant", "restaurant_id"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    restaurant_id: Mapped[int] = mapped_column(
        ForeignKey("comanda_restaurants.id"), nullable=False
    )
    name: Mapped[str] = mapped_column(String(120), nullable=False)
    pin: Mapped[str | None] = mapped_column(String(12), nullable=True)  # plaintext
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)


class Table(Base):
    """
    Physical seating unit tracked for occupancy.

    status is occupied/requesting_bill exactly when current_order_id points
    at an open TableOrder.
    """

    __tablename__ = "comanda_tables"
    __table_args__ = (
        UniqueConstraint("restaurant_id", "number", name="uq_table_restaurant_number"),
        Index("ix_table_restaurant_status", "restaurant_id", "status"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    restaurant_id: Mapped[int] = mapped_column(
        ForeignKey("comanda_restaurants.id"), nullable=False
    )
    number: Mapped[int] = mapped_column(Integer, nullable=False)
    name: Mapped[str | None] = mapped_column(String(80), nullable=True)
    capacity: Mapped[int] = mapped_column(Integer, nullable=False, default=4)
    status: Mapped[str] = mapped_column(
        String(32), nullable=False, default=TableStatus.AVAILABLE.value
    )
    # References comanda_table_orders.id; no FK so tables and orders don't form a cycle
    current_order_id: Mapped[int | None] = mapped_column(Integer, nullable=True, index=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, server_default=func.now(), onupdate=func.now(), nullable=False
    )


class TableOrder(Base):
    """The tab of one seating, or a counter sale when table_id is null."""

    __tablename__ = "comanda_table_orders"
    __table_args__ = (
        Index("ix_table_order_restaurant_status", "restaurant_id", "status"),
        Index("ix_table_order_closed_at", "closed_at"),
        Index("ix_table_order_table_id", "table_id"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    restaurant_id: Mapped[int] = mapped_column(
        ForeignKey("comanda_restaurants.id"), nullable=False
    )
    table_id: Mapped[int | None] = mapped_column(
        ForeignKey("comanda_tables.id", ondelete="SET NULL"), nullable=True
    )
    waiter_id: Mapped[int | None] = mapped_column(ForeignKey("comanda_waiters.id"), nullable=True)
    waiter_name: Mapped[str | None] = mapped_column(String(120), nullable=True)
    customer_count: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    status: Mapped[str] = mapped_column(
        String(32), nullable=False, default=TableOrderStatus.OPEN.value
    )
    subtotal: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False, default=0)
    discount: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False, default=0)
    discount_type: Mapped[str] = mapped_column(
        String(16), nullable=False, default=DiscountType.VALUE.value
    )
    service_fee_enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    service_fee_percentage: Mapped[Decimal] = mapped_column(
        Numeric(5, 2), nullable=False, default=DEFAULT_SERVICE_FEE_PERCENTAGE
    )
    total_amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False, default=0)
    payment_method: Mapped[str | None] = mapped_column(String(32), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    opened_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    closed_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, server_default=func.now(), onupdate=func.now(), nullable=False
    )

    table: Mapped[Table | None] = relationship("Table", foreign_keys=[table_id])
    items: Mapped[list[TableOrderItem]] = relationship(
        "TableOrderItem",
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="TableOrderItem.ordered_at",
    )

    @property
    def is_open(self) -> bool:
        return self.status in {TableOrderStatus.OPEN.value, TableOrderStatus.REQUESTING_BILL.value}


class TableOrderItem(Base):
    __tablename__ = "comanda_table_order_items"
    __table_args__ = (
        CheckConstraint("quantity >= 1", name="ck_table_order_item_quantity"),
        Index("ix_table_order_item_order_id", "table_order_id"),
        Index("ix_table_order_item_status", "status"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    table_order_id: Mapped[int] = mapped_column(
        ForeignKey("comanda_table_orders.id"), nullable=False
    )
    product_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    product_name: Mapped[str] = mapped_column(String(200), nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    unit_price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    observation: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(
        String(32), nullable=False, default=OrderItemStatus.PENDING.value
    )
    ordered_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    delivered_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, server_default=func.now(), nullable=False
    )

    order: Mapped[TableOrder] = relationship("TableOrder", back_populates="items")


class DeliveryOrder(Base):
    __tablename__ = "comanda_delivery_orders"
    __table_args__ = (
        Index("ix_delivery_order_restaurant_status", "restaurant_id", "status"),
        Index("ix_delivery_order_created_at", "created_at"),
        Index("ix_delivery_order_restaurant_phone", "restaurant_id", "customer_phone"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    restaurant_id: Mapped[int] = mapped_column(
        ForeignKey("comanda_restaurants.id"), nullable=False
    )
    customer_name: Mapped[str] = mapped_column(String(120), nullable=False)
    customer_phone: Mapped[str] = mapped_column(String(32), nullable=False)
    address_street: Mapped[str] = mapped_column(String(200), nullable=False)
    address_number: Mapped[str] = mapped_column(String(20), nullable=False)
    address_neighborhood: Mapped[str] = mapped_column(String(120), nullable=False)
    address_complement: Mapped[str | None] = mapped_column(String(120), nullable=True)
    address_reference: Mapped[str | None] = mapped_column(String(200), nullable=True)
    payment_method: Mapped[str] = mapped_column(String(16), nullable=False)
    change_for: Mapped[Decimal | None] = mapped_column(Numeric(10, 2), nullable=True)
    delivery_fee: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False, default=0)
    total_amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False, default=0)
    status: Mapped[str] = mapped_column(
        String(32), nullable=False, default=DeliveryOrderStatus.PENDING.value
    )
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, server_default=func.now(), onupdate=func.now(), nullable=False
    )

    items: Mapped[list[DeliveryOrderItem]] = relationship(
        "DeliveryOrderItem",
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="DeliveryOrderItem.id",
    )


class DeliveryOrderItem(Base):
    __tablename__ = "comanda_delivery_order_items"
    __table_args__ = (
        CheckConstraint("quantity >= 1", name="ck_delivery_order_item_quantity"),
        Index("ix_delivery_order_item_order_id", "order_id"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    order_id: Mapped[int] = mapped_column(ForeignKey("comanda_delivery_orders.id"), nullable=False)
    product_name: Mapped[str] = mapped_column(String(200), nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    unit_price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    observation: Mapped[str | None] = mapped_column(Text, nullable=True)

    order: Mapped[DeliveryOrder] = relationship("DeliveryOrder", back_populates="items")


class RealtimeEvent(Base):
    """
    Persisted change feed consumed by kitchen, waiter and table-map screens.
    """

    __tablename__ = "comanda_realtime_events"
    __table_args__ = (
        Index("ix_realtime_event_restaurant", "restaurant_id", "id"),
        Index("ix_realtime_event_created_at", "created_at"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    restaurant_id: Mapped[int] = mapped_column(Integer, nullable=False)
    entity: Mapped[str] = mapped_column(String(40), nullable=False)
    entity_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    event_type: Mapped[str] = mapped_column(String(100), nullable=False)
    payload: Mapped[str | None] = mapped_column(Text, nullable=True)  # JSON string
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
