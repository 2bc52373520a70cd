"""
Delivery orders: checkout, validation and the delivery status flow.
"""

import pytest

from comanda.cart import Cart
from comanda.errors import IllegalTransitionError, NotFoundError, ValidationError
from comanda.services import delivery_order_service

from conftest import set_delivery_fee

ITEMS = [
    {"product_name": "Pizza", "quantity": 2, "unit_price": "30.00"},
    {"product_name": "Soda", "quantity": 1, "unit_price": "8.00", "observation": " gelada "},
]


class TestCreateDeliveryOrder:
    def test_total_includes_delivery_fee(self, restaurant_id, delivery_customer):
        order = delivery_order_service.create_delivery_order(
            restaurant_id, delivery_customer, ITEMS
        )

        assert order["status"] == "pending"
        assert order["total_amount"] == 73.0
        assert order["delivery_fee"] == 5.0
        assert order["address"]["street"] == "Rua das Flores"
        assert [item["product_name"] for item in order["items"]] == ["Pizza", "Soda"]
        assert order["items"][1]["observation"] == "gelada"

    @pytest.mark.parametrize(
        "field",
        ["customer_name", "customer_phone", "address_street", "address_number", "address_neighborhood"],
    )
    def test_required_customer_fields(self, restaurant_id, delivery_customer, field):
        delivery_customer[field] = "  "
        with pytest.raises(ValidationError) as exc_info:
            delivery_order_service.create_delivery_order(restaurant_id, delivery_customer, ITEMS)
        assert field in exc_info.value.details["fields"]

    def test_empty_order_rejected(self, restaurant_id, delivery_customer):
        with pytest.raises(ValidationError):
            delivery_order_service.create_delivery_order(restaurant_id, delivery_customer, [])

    def test_invalid_payment_method(self, restaurant_id, delivery_customer):
        delivery_customer["payment_method"] = "debit"
        with pytest.raises(ValidationError):
            delivery_order_service.create_delivery_order(restaurant_id, delivery_customer, ITEMS)

    def test_change_only_for_cash(self, restaurant_id, delivery_customer):
        delivery_customer["change_for"] = "100"
        with pytest.raises(ValidationError):
            delivery_order_service.create_delivery_order(restaurant_id, delivery_customer, ITEMS)

    def test_change_must_cover_total(self, restaurant_id, delivery_customer):
        delivery_customer.update(payment_method="money", change_for="50")
        with pytest.raises(ValidationError):
            delivery_order_service.create_delivery_order(restaurant_id, delivery_customer, ITEMS)

    def test_cash_with_change(self, restaurant_id, delivery_customer):
        delivery_customer.update(payment_method="money", change_for="100")
        order = delivery_order_service.create_delivery_order(
            restaurant_id, delivery_customer, ITEMS
        )
        assert order["change_for"] == 100.0


class TestCheckoutCart:
    def test_cart_becomes_delivery_order(self, restaurant_id, delivery_customer):
        cart = Cart(restaurant_slug="la-esquina")
        cart.add_item("p1", "Burger", "25.00", 2, selected_addons={"extras": ["bacon", "queso"]})
        cart.add_item("p2", "Soda", "8.00", observation="sin hielo")

        order = delivery_order_service.checkout_cart(restaurant_id, cart, delivery_customer)

        assert order["total_amount"] == 63.0
        assert order["items"][0]["observation"] == "bacon, queso"
        assert order["items"][1]["observation"] == "sin hielo"

    def test_empty_cart_rejected(self, restaurant_id, delivery_customer):
        with pytest.raises(ValidationError):
            delivery_order_service.checkout_cart(restaurant_id, Cart(), delivery_customer)

    def test_store_fee_applies_when_none_is_given(self, restaurant_id, delivery_customer):
        set_delivery_fee(restaurant_id, "6.50")
        del delivery_customer["delivery_fee"]
        cart = Cart()
        cart.add_item("p1", "Burger", "25.00")

        order = delivery_order_service.checkout_cart(restaurant_id, cart, delivery_customer)

        assert order["delivery_fee"] == 6.5
        assert order["total_amount"] == 31.5

    def test_no_store_config_means_free_delivery(self, restaurant_id, delivery_customer):
        del delivery_customer["delivery_fee"]
        cart = Cart()
        cart.add_item("p1", "Burger", "25.00")

        order = delivery_order_service.checkout_cart(restaurant_id, cart, delivery_customer)

        assert order["total_amount"] == 25.0


class TestDeliveryStatus:
    @pytest.fixture
    def order(self, restaurant_id, delivery_customer):
        return delivery_order_service.create_delivery_order(restaurant_id, delivery_customer, ITEMS)

    def test_full_flow(self, restaurant_id, order):
        for status in ("preparing", "delivery", "completed"):
            result = delivery_order_service.update_delivery_status(restaurant_id, order["id"], status)
        assert result["status"] == "completed"

    def test_repeated_status_is_idempotent(self, restaurant_id, order):
        delivery_order_service.update_delivery_status(restaurant_id, order["id"], "preparing")
        result = delivery_order_service.update_delivery_status(restaurant_id, order["id"], "preparing")
        assert result["status"] == "preparing"

    def test_skip_is_illegal(self, restaurant_id, order):
        with pytest.raises(IllegalTransitionError):
            delivery_order_service.update_delivery_status(restaurant_id, order["id"], "completed")

    def test_completed_cannot_be_cancelled(self, restaurant_id, order):
        for status in ("preparing", "delivery", "completed"):
            delivery_order_service.update_delivery_status(restaurant_id, order["id"], status)

        with pytest.raises(IllegalTransitionError):
            delivery_order_service.update_delivery_status(restaurant_id, order["id"], "cancelled")

    def test_kitchen_ready_means_out_for_delivery(self, restaurant_id, order):
        delivery_order_service.advance_from_kitchen(restaurant_id, order["id"], "preparing")
        result = delivery_order_service.advance_from_kitchen(restaurant_id, order["id"], "ready")
        assert result["status"] == "delivery"

    def test_other_restaurant_cannot_see_order(self, order, other_restaurant_id):
        with pytest.raises(NotFoundError):
            delivery_order_service.get_delivery_order(other_restaurant_id, order["id"])


class TestListDeliveryOrders:
    def test_filter_by_status(self, restaurant_id, delivery_customer):
        first = delivery_order_service.create_delivery_order(restaurant_id, delivery_customer, ITEMS)
        second = delivery_order_service.create_delivery_order(restaurant_id, delivery_customer, ITEMS)
        delivery_order_service.update_delivery_status(restaurant_id, first["id"], "cancelled")

        pending = delivery_order_service.list_delivery_orders(restaurant_id, ["pending"])
        everything = delivery_order_service.list_delivery_orders(restaurant_id)

        assert [order["id"] for order in pending] == [second["id"]]
        assert {order["id"] for order in everything} == {first["id"], second["id"]}

    def test_invalid_status_filter(self, restaurant_id):
        with pytest.raises(ValidationError):
            delivery_order_service.list_delivery_orders(restaurant_id, ["lost"])


class TestCustomerLookups:
    def test_status_only(self, restaurant_id, delivery_customer):
        order = delivery_order_service.create_delivery_order(restaurant_id, delivery_customer, ITEMS)
        delivery_order_service.update_delivery_status(restaurant_id, order["id"], "preparing")

        assert delivery_order_service.get_delivery_order_status(restaurant_id, order["id"]) == {
            "id": order["id"],
            "status": "preparing",
        }

    def test_status_of_other_restaurant_not_found(
        self, restaurant_id, other_restaurant_id, delivery_customer
    ):
        order = delivery_order_service.create_delivery_order(restaurant_id, delivery_customer, ITEMS)

        with pytest.raises(NotFoundError):
            delivery_order_service.get_delivery_order_status(other_restaurant_id, order["id"])

    def test_phone_is_stored_as_digits(self, restaurant_id, delivery_customer):
        delivery_customer["customer_phone"] = "(11) 98765-4321"

        order = delivery_order_service.create_delivery_order(restaurant_id, delivery_customer, ITEMS)

        assert order["customer_phone"] == "11987654321"

    def test_by_phone_is_capped_at_fifty_newest(self, restaurant_id, delivery_customer):
        created = [
            delivery_order_service.create_delivery_order(restaurant_id, delivery_customer, ITEMS)["id"]
            for _ in range(52)
        ]

        orders = delivery_order_service.list_orders_by_phone(restaurant_id, "11 98765-4321", limit=500)

        assert len(orders) == 50
        assert [order["id"] for order in orders] == sorted(created, reverse=True)[:50]

    def test_by_phone_requires_a_real_phone(self, restaurant_id):
        with pytest.raises(ValidationError):
            delivery_order_service.list_orders_by_phone(restaurant_id, "12-34")
