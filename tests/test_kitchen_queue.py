"""
Kitchen queue: unified table and delivery items, oldest first.
"""

from datetime import timedelta

import pytest

from comanda.constants import KitchenStatus, OrderType, Urgency
from comanda.datetime_utils import utcnow
from comanda.errors import IllegalTransitionError, NotFoundError, ValidationError
from comanda.services import delivery_order_service, kitchen_queue_service, table_order_service
from comanda.services.kitchen_queue_service import KitchenItem, KitchenQueueProjector

from conftest import set_delivery_created_at, set_item_ordered_at


@pytest.fixture
def base_time():
    return utcnow().replace(microsecond=0) - timedelta(minutes=30)


@pytest.fixture
def table_order(restaurant_id, tables):
    return table_order_service.open_table(restaurant_id, tables[1], waiter_name="Ana")


def _add(restaurant_id, order_id, name, ordered_at):
    item = table_order_service.add_item(restaurant_id, order_id, name, 1, "10")
    set_item_ordered_at(item["id"], ordered_at)
    return item


def _delivery(restaurant_id, customer, name, created_at):
    order = delivery_order_service.create_delivery_order(
        restaurant_id, customer, [{"product_name": name, "quantity": 1, "unit_price": "12"}]
    )
    set_delivery_created_at(order["id"], created_at)
    return order


class TestQueueOrdering:
    def test_oldest_first(self, restaurant_id, table_order, base_time):
        """Items ordered at T, T+5 and T+1 come out as T, T+1, T+5."""
        first = _add(restaurant_id, table_order["id"], "A", base_time)
        third = _add(restaurant_id, table_order["id"], "B", base_time + timedelta(minutes=5))
        second = _add(restaurant_id, table_order["id"], "C", base_time + timedelta(minutes=1))

        queue = kitchen_queue_service.list_kitchen_items(restaurant_id)

        assert [item.id for item in queue] == [first["id"], second["id"], third["id"]]

    def test_delivery_item_takes_its_place_in_time(
        self, restaurant_id, table_order, delivery_customer, base_time
    ):
        """Table at T, table at T+5 and delivery at T+1 come out as T, T+1, T+5."""
        first = _add(restaurant_id, table_order["id"], "A", base_time)
        third = _add(restaurant_id, table_order["id"], "B", base_time + timedelta(minutes=5))
        delivery = _delivery(restaurant_id, delivery_customer, "Pizza", base_time + timedelta(minutes=1))

        queue = kitchen_queue_service.list_kitchen_items(restaurant_id)

        assert [(item.order_type, item.id) for item in queue] == [
            (OrderType.TABLE, first["id"]),
            (OrderType.DELIVERY, delivery["items"][0]["id"]),
            (OrderType.TABLE, third["id"]),
        ]

    def test_table_and_delivery_items_are_interleaved_by_time(
        self, restaurant_id, table_order, delivery_customer, base_time
    ):
        early = _add(restaurant_id, table_order["id"], "A", base_time)
        late = _add(restaurant_id, table_order["id"], "B", base_time + timedelta(minutes=10))
        delivery = _delivery(restaurant_id, delivery_customer, "Pizza", base_time + timedelta(minutes=3))

        queue = kitchen_queue_service.list_kitchen_items(restaurant_id)

        assert [(item.order_type, item.order_id) for item in queue] == [
            (OrderType.TABLE, table_order["id"]),
            (OrderType.DELIVERY, delivery["id"]),
            (OrderType.TABLE, table_order["id"]),
        ]
        assert queue[0].id == early["id"]
        assert queue[2].id == late["id"]
        assert queue[1].customer_name == "Marta Souza"
        assert queue[0].table_number == 1
        assert queue[0].waiter_name == "Ana"

    def test_table_item_before_delivery_at_same_instant(
        self, restaurant_id, table_order, delivery_customer, base_time
    ):
        delivery = _delivery(restaurant_id, delivery_customer, "Pizza", base_time)
        item = _add(restaurant_id, table_order["id"], "A", base_time)

        queue = kitchen_queue_service.list_kitchen_items(restaurant_id)

        assert [item.order_type for item in queue] == [OrderType.TABLE, OrderType.DELIVERY]
        assert queue[0].id == item["id"]
        assert queue[1].order_id == delivery["id"]


class TestQueueFilters:
    def test_default_excludes_ready_items(self, restaurant_id, table_order, base_time):
        item = _add(restaurant_id, table_order["id"], "A", base_time)
        table_order_service.update_item_status(restaurant_id, item["id"], "preparing")
        table_order_service.update_item_status(restaurant_id, item["id"], "ready")

        assert kitchen_queue_service.list_kitchen_items(restaurant_id) == []
        ready = kitchen_queue_service.list_kitchen_items(restaurant_id, ["ready"])
        assert [entry.status for entry in ready] == [KitchenStatus.READY]

    def test_items_of_closed_orders_leave_the_queue(self, restaurant_id, table_order, base_time):
        _add(restaurant_id, table_order["id"], "A", base_time)
        table_order_service.close_table(restaurant_id, table_order["id"], "pix")

        assert kitchen_queue_service.list_kitchen_items(restaurant_id) == []

    def test_delivery_status_is_mapped(self, restaurant_id, delivery_customer, base_time):
        order = _delivery(restaurant_id, delivery_customer, "Pizza", base_time)
        delivery_order_service.update_delivery_status(restaurant_id, order["id"], "preparing")
        delivery_order_service.update_delivery_status(restaurant_id, order["id"], "delivery")

        ready = kitchen_queue_service.list_kitchen_items(restaurant_id, [KitchenStatus.READY])

        assert [(item.order_type, item.status) for item in ready] == [
            (OrderType.DELIVERY, KitchenStatus.READY)
        ]

    def test_other_restaurant_sees_nothing(self, table_order, restaurant_id, other_restaurant_id, base_time):
        _add(restaurant_id, table_order["id"], "A", base_time)
        assert kitchen_queue_service.list_kitchen_items(other_restaurant_id) == []

    def test_invalid_status_filter(self, restaurant_id):
        with pytest.raises(ValidationError):
            kitchen_queue_service.list_kitchen_items(restaurant_id, ["delivered"])

    def test_ready_items_for_waiter_only_include_tables(
        self, restaurant_id, table_order, delivery_customer, base_time
    ):
        item = _add(restaurant_id, table_order["id"], "A", base_time)
        table_order_service.update_item_status(restaurant_id, item["id"], "preparing")
        table_order_service.update_item_status(restaurant_id, item["id"], "ready")
        order = _delivery(restaurant_id, delivery_customer, "Pizza", base_time)
        delivery_order_service.update_delivery_status(restaurant_id, order["id"], "preparing")
        delivery_order_service.update_delivery_status(restaurant_id, order["id"], "delivery")

        ready = kitchen_queue_service.list_ready_items(restaurant_id)

        assert [entry.id for entry in ready] == [item["id"]]


class TestUrgency:
    def _item(self, ordered_at):
        return KitchenItem(
            id=1,
            order_type=OrderType.TABLE,
            order_id=1,
            product_name="Burger",
            quantity=1,
            status=KitchenStatus.PENDING,
            ordered_at=ordered_at,
        )

    def test_thresholds(self, base_time):
        item = self._item(base_time)
        assert item.urgency(base_time + timedelta(minutes=4)) == Urgency.NORMAL
        assert item.urgency(base_time + timedelta(minutes=5)) == Urgency.ATTENTION
        assert item.urgency(base_time + timedelta(minutes=10)) == Urgency.LATE

    def test_custom_thresholds(self, base_time):
        item = self._item(base_time)
        now = base_time + timedelta(minutes=8)
        assert item.urgency(now, attention_minutes=10, late_minutes=20) == Urgency.NORMAL

    def test_to_dict(self, base_time):
        data = self._item(base_time).to_dict(base_time + timedelta(minutes=12))
        assert data["waiting_minutes"] == 12
        assert data["urgency"] == "late"
        assert data["order_type"] == "table"
        assert data["status"] == "pending"

    def test_future_timestamp_counts_as_zero(self, base_time):
        assert self._item(base_time).waiting_minutes(base_time - timedelta(minutes=3)) == 0


class TestKitchenQueueProjector:
    def test_iteration_always_reads_fresh(self, restaurant_id, table_order, base_time):
        projector = KitchenQueueProjector(restaurant_id)
        assert list(projector) == []

        _add(restaurant_id, table_order["id"], "A", base_time)

        assert len(list(projector)) == 1
        assert len(list(projector)) == 1

    def test_snapshot_is_cached_until_invalidated(self, restaurant_id, table_order, base_time):
        projector = KitchenQueueProjector(restaurant_id)
        assert projector.snapshot() == []

        _add(restaurant_id, table_order["id"], "A", base_time)
        assert projector.snapshot() == []

        projector.invalidate()
        assert len(projector.snapshot()) == 1

    def test_attached_projector_follows_realtime_changes(self, restaurant_id, table_order, base_time):
        with KitchenQueueProjector(restaurant_id) as projector:
            assert projector.is_attached
            assert projector.snapshot() == []

            item = _add(restaurant_id, table_order["id"], "A", base_time)
            assert [entry.id for entry in projector.snapshot()] == [item["id"]]

            table_order_service.update_item_status(restaurant_id, item["id"], "cancelled")
            assert projector.snapshot() == []

        assert not projector.is_attached


class TestKitchenStatusUpdates:
    def test_table_item_follows_item_state_machine(self, restaurant_id, table_order, base_time):
        item = _add(restaurant_id, table_order["id"], "A", base_time)

        result = kitchen_queue_service.update_kitchen_item_status(
            restaurant_id, "table", item["id"], "preparing"
        )
        assert result["status"] == "preparing"

        with pytest.raises(IllegalTransitionError):
            kitchen_queue_service.update_kitchen_item_status(
                restaurant_id, "table", item["id"], "pending"
            )

    def test_delivery_item_advances_whole_order(self, restaurant_id, delivery_customer, base_time):
        order = _delivery(restaurant_id, delivery_customer, "Pizza", base_time)
        item_id = order["items"][0]["id"]

        kitchen_queue_service.update_kitchen_item_status(restaurant_id, "delivery", item_id, "preparing")
        result = kitchen_queue_service.update_kitchen_item_status(
            restaurant_id, "delivery", item_id, "ready", order_id=order["id"]
        )

        assert result["status"] == "delivery"

    def test_unknown_delivery_item(self, restaurant_id):
        with pytest.raises(NotFoundError):
            kitchen_queue_service.update_kitchen_item_status(restaurant_id, "delivery", 999, "preparing")

    def test_unknown_order_type(self, restaurant_id):
        with pytest.raises(ValidationError):
            kitchen_queue_service.update_kitchen_item_status(restaurant_id, "drive-thru", 1, "preparing")
