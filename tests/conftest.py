"""
Shared fixtures: in-memory SQLite store, seed data and a Flask test client.
"""

from datetime import datetime
from decimal import Decimal

import pytest
from sqlalchemy import select, update

from comanda.config import load_config
from comanda.db import dispose_engine, get_session, init_db, init_engine
from comanda.models import (
    Base,
    DeliveryOrder,
    Restaurant,
    StoreConfig,
    Table,
    TableOrderItem,
    Waiter,
)
from comanda.realtime import RealtimeManager


@pytest.fixture
def config(monkeypatch):
    monkeypatch.setenv("DATABASE_URL", "sqlite://")
    monkeypatch.setenv("DEBUG_MODE", "true")
    monkeypatch.setenv("SECRET_KEY", "test-secret")
    monkeypatch.setenv("LOG_LEVEL", "WARNING")
    return load_config("comanda-test")


@pytest.fixture
def db(config):
    dispose_engine()
    init_engine(config)
    init_db(Base.metadata)
    yield
    RealtimeManager.clear_subscribers()
    dispose_engine()


def create_restaurant(slug: str, name: str | None = None, is_active: bool = True) -> int:
    with get_session() as session:
        restaurant = Restaurant(name=name or slug.title(), slug=slug, is_active=is_active)
        session.add(restaurant)
        session.flush()
        return restaurant.id


def create_table_row(restaurant_id: int, number: int, capacity: int = 4, name=None) -> int:
    with get_session() as session:
        table = Table(restaurant_id=restaurant_id, number=number, capacity=capacity, name=name)
        session.add(table)
        session.flush()
        return table.id


def create_waiter(restaurant_id: int, name: str, pin: str | None = None, is_active=True) -> int:
    with get_session() as session:
        waiter = Waiter(restaurant_id=restaurant_id, name=name, pin=pin, is_active=is_active)
        session.add(waiter)
        session.flush()
        return waiter.id


def set_store_config(
    restaurant_id: int, pin: str | None, enabled: bool, timezone: str | None = None
) -> None:
    with get_session() as session:
        config = session.execute(
            select(StoreConfig).where(StoreConfig.restaurant_id == restaurant_id)
        ).scalar_one_or_none()
        if config is None:
            config = StoreConfig(restaurant_id=restaurant_id)
            session.add(config)
        config.kitchen_pin = pin
        config.kitchen_pin_enabled = enabled
        config.timezone = timezone


def set_item_ordered_at(item_id: int, ordered_at: datetime) -> None:
    with get_session() as session:
        session.execute(
            update(TableOrderItem).where(TableOrderItem.id == item_id).values(ordered_at=ordered_at)
        )


def set_delivery_created_at(order_id: int, created_at: datetime) -> None:
    with get_session() as session:
        session.execute(
            update(DeliveryOrder).where(DeliveryOrder.id == order_id).values(created_at=created_at)
        )


def get_table_row(table_id: int) -> dict:
    with get_session() as session:
        table = session.get(Table, table_id)
        return {
            "status": table.status,
            "current_order_id": table.current_order_id,
            "number": table.number,
        }


@pytest.fixture
def restaurant_id(db):
    return create_restaurant("la-esquina", "La Esquina")


@pytest.fixture
def other_restaurant_id(db):
    return create_restaurant("otro-lugar", "Otro Lugar")


@pytest.fixture
def tables(restaurant_id):
    """Tables #1 to #6 keyed by number."""
    return {number: create_table_row(restaurant_id, number) for number in range(1, 7)}


@pytest.fixture
def waiters(restaurant_id):
    return {
        "ana": create_waiter(restaurant_id, "Ana", pin="1234"),
        "bruno": create_waiter(restaurant_id, "Bruno"),
        "carla": create_waiter(restaurant_id, "Carla", pin="9999", is_active=False),
    }


@pytest.fixture
def delivery_customer():
    return {
        "customer_name": "Marta Souza",
        "customer_phone": "11987654321",
        "address_street": "Rua das Flores",
        "address_number": "120",
        "address_neighborhood": "Centro",
        "payment_method": "pix",
        "delivery_fee": "5.00",
    }


@pytest.fixture
def app(config, db):
    from comanda_staff.app import create_app

    application = create_app(config)
    application.config["TESTING"] = True
    return application


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def api_headers(restaurant_id):
    return {"X-Restaurant-Id": str(restaurant_id)}


@pytest.fixture
def clients_app(config, db):
    from comanda_clients.app import create_app

    application = create_app(config)
    application.config["TESTING"] = True
    return application


@pytest.fixture
def customer_client(clients_app):
    return clients_app.test_client()


def set_delivery_fee(restaurant_id: int, fee: str) -> None:
    with get_session() as session:
        config = session.execute(
            select(StoreConfig).where(StoreConfig.restaurant_id == restaurant_id)
        ).scalar_one_or_none()
        if config is None:
            config = StoreConfig(restaurant_id=restaurant_id)
            session.add(config)
        config.delivery_fee = Decimal(fee)
