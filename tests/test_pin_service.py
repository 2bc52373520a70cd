"""
Kitchen and waiter PIN access.
"""

import pytest

from comanda.errors import AuthError, ForbiddenError, NotFoundError
from comanda.services import pin_service

from conftest import set_store_config


class TestKitchenPin:
    def test_missing_store_config(self, restaurant_id):
        with pytest.raises(NotFoundError):
            pin_service.verify_kitchen_pin(restaurant_id, "1234")

    def test_disabled_pin_lets_everyone_in(self, restaurant_id):
        set_store_config(restaurant_id, "4321", enabled=False)
        assert pin_service.verify_kitchen_pin(restaurant_id) == {
            "success": True,
            "pin_required": False,
        }

    def test_enabled_without_configured_pin(self, restaurant_id):
        set_store_config(restaurant_id, None, enabled=True)
        with pytest.raises(ForbiddenError):
            pin_service.verify_kitchen_pin(restaurant_id, "1234")

    def test_no_pin_sent_asks_for_it(self, restaurant_id):
        set_store_config(restaurant_id, "4321", enabled=True)
        assert pin_service.verify_kitchen_pin(restaurant_id) == {
            "success": False,
            "pin_required": True,
        }

    def test_wrong_pin(self, restaurant_id):
        set_store_config(restaurant_id, "4321", enabled=True)
        with pytest.raises(AuthError):
            pin_service.verify_kitchen_pin(restaurant_id, "0000")

    def test_correct_pin(self, restaurant_id):
        set_store_config(restaurant_id, "4321", enabled=True)
        assert pin_service.verify_kitchen_pin(restaurant_id, "4321") == {
            "success": True,
            "pin_required": True,
        }


class TestWaiterPin:
    def test_correct_pin(self, restaurant_id, waiters):
        result = pin_service.verify_waiter_pin(restaurant_id, waiters["ana"], "1234")
        assert result == {"success": True, "waiter_id": waiters["ana"], "waiter_name": "Ana"}

    def test_wrong_or_missing_pin(self, restaurant_id, waiters):
        with pytest.raises(AuthError):
            pin_service.verify_waiter_pin(restaurant_id, waiters["ana"], "9999")
        with pytest.raises(AuthError):
            pin_service.verify_waiter_pin(restaurant_id, waiters["ana"])

    def test_waiter_without_pin_enters_directly(self, restaurant_id, waiters):
        assert pin_service.verify_waiter_pin(restaurant_id, waiters["bruno"])["success"] is True

    def test_inactive_waiter(self, restaurant_id, waiters):
        with pytest.raises(NotFoundError):
            pin_service.verify_waiter_pin(restaurant_id, waiters["carla"], "9999")

    def test_waiter_of_other_restaurant(self, waiters, other_restaurant_id):
        with pytest.raises(NotFoundError):
            pin_service.verify_waiter_pin(other_restaurant_id, waiters["ana"], "1234")

    def test_active_waiters_never_expose_pin(self, restaurant_id, waiters):
        listed = pin_service.list_active_waiters(restaurant_id)
        assert listed == [
            {"id": waiters["ana"], "name": "Ana", "has_pin": True},
            {"id": waiters["bruno"], "name": "Bruno", "has_pin": False},
        ]
