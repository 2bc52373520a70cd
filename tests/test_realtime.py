"""
Realtime change feed: persisted events, cursors and in-process subscribers.
"""

from datetime import timedelta

from sqlalchemy import update

from comanda.constants import RealtimeEntity
from comanda.datetime_utils import utcnow
from comanda.db import get_session
from comanda.models import RealtimeEvent
from comanda.realtime import (
    RealtimeManager,
    emit_change,
    purge_events,
    read_events_from_stream,
    subscribe,
)
from comanda.services import table_order_service


class TestEmitAndRead:
    def test_event_shape(self, restaurant_id):
        event = emit_change(RealtimeEntity.TABLE, 7, restaurant_id, "updated", status="occupied")

        assert event["type"] == "tables.updated"
        assert event["entity"] == "tables"
        assert event["id"] == 7
        assert event["restaurant_id"] == restaurant_id
        assert event["action"] == "updated"
        assert event["status"] == "occupied"
        assert event["event_id"] > 0

    def test_reading_does_not_consume(self, restaurant_id):
        emit_change(RealtimeEntity.TABLE, 1, restaurant_id, "created")
        emit_change(RealtimeEntity.TABLE, 2, restaurant_id, "created")

        last_id, events = read_events_from_stream(restaurant_id)
        again_last_id, again = read_events_from_stream(restaurant_id)

        assert len(events) == 2
        assert [event["id"] for event in again] == [event["id"] for event in events]
        assert last_id == again_last_id == events[-1]["id"]

    def test_cursor_returns_only_newer_events(self, restaurant_id):
        first = emit_change(RealtimeEntity.TABLE, 1, restaurant_id, "created")
        emit_change(RealtimeEntity.TABLE, 2, restaurant_id, "created")

        last_id, events = read_events_from_stream(restaurant_id, after_id=first["event_id"])

        assert [event["entity_id"] for event in events] == [2]
        assert read_events_from_stream(restaurant_id, after_id=last_id) == (last_id, [])

    def test_entity_filter_and_tenant_scope(self, restaurant_id, other_restaurant_id):
        emit_change(RealtimeEntity.TABLE, 1, restaurant_id, "created")
        emit_change(RealtimeEntity.DELIVERY_ORDER, 3, restaurant_id, "created")
        emit_change(RealtimeEntity.DELIVERY_ORDER, 4, other_restaurant_id, "created")

        _, events = read_events_from_stream(restaurant_id, entities=["delivery_orders"])

        assert [(event["entity"], event["entity_id"]) for event in events] == [("delivery_orders", 3)]
        assert events[0]["payload"]["action"] == "created"

    def test_services_emit_after_commit(self, restaurant_id, tables):
        order = table_order_service.open_table(restaurant_id, tables[1])

        _, events = read_events_from_stream(restaurant_id)

        assert [event["type"] for event in events] == ["table_orders.created", "tables.updated"]
        assert events[1]["payload"]["current_order_id"] == order["id"]


class TestSubscribers:
    def test_subscriber_receives_matching_events(self, restaurant_id, other_restaurant_id):
        received = []
        subscribe(restaurant_id, RealtimeEntity.TABLE, received.append)

        emit_change(RealtimeEntity.TABLE, 1, restaurant_id, "created")
        emit_change(RealtimeEntity.TABLE_ORDER, 2, restaurant_id, "created")
        emit_change(RealtimeEntity.TABLE, 3, other_restaurant_id, "created")

        assert [event["id"] for event in received] == [1]

    def test_wildcard_subscription_and_unsubscribe(self, restaurant_id):
        received = []
        unsubscribe = subscribe(restaurant_id, None, received.append)

        emit_change(RealtimeEntity.TABLE, 1, restaurant_id, "created")
        emit_change(RealtimeEntity.DELIVERY_ORDER, 2, restaurant_id, "created")
        unsubscribe()
        emit_change(RealtimeEntity.TABLE, 3, restaurant_id, "created")

        assert [event["id"] for event in received] == [1, 2]

    def test_failing_handler_does_not_break_emit(self, restaurant_id):
        received = []

        def broken(event):
            raise RuntimeError("boom")

        subscribe(restaurant_id, RealtimeEntity.TABLE, broken)
        subscribe(restaurant_id, RealtimeEntity.TABLE, received.append)

        emit_change(RealtimeEntity.TABLE, 1, restaurant_id, "created")

        assert len(received) == 1
        RealtimeManager.clear_subscribers()


def test_purge_removes_old_events(restaurant_id):
    old = emit_change(RealtimeEntity.TABLE, 1, restaurant_id, "created")
    emit_change(RealtimeEntity.TABLE, 2, restaurant_id, "created")
    with get_session() as session:
        session.execute(
            update(RealtimeEvent)
            .where(RealtimeEvent.id == old["event_id"])
            .values(created_at=utcnow() - timedelta(hours=48))
        )

    assert purge_events(24) == 1
    _, events = read_events_from_stream(restaurant_id)
    assert [event["entity_id"] for event in events] == [2]
