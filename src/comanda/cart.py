"""
Carrito del cliente (menú de delivery).

The cart lives in the customer's browser; this module is its explicit
aggregate and the JSON boundary used to store it and to hand it to
checkout. Serialized carts are either the current object format
``{"items": [...], "restaurant_slug": ...}`` or the legacy bare list of items.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any

from comanda.errors import ValidationError
from comanda.services.pricing import ZERO, to_money
from comanda.validation import validate_product_name, validate_quantity, validate_unit_price

logger = logging.getLogger(__name__)


@dataclass
class CartItem:
    """Línea del carrito."""

    product_id: str
    product_name: str
    unit_price: Decimal
    quantity: int = 1
    observation: str | None = None
    selected_addons: dict[str, list[str]] = field(default_factory=dict)

    @property
    def line_total(self) -> Decimal:
        return to_money(self.unit_price * self.quantity)

    def to_dict(self) -> dict[str, Any]:
        return {
            "product": {
                "id": self.product_id,
                "name": self.product_name,
                "price": float(self.unit_price),
            },
            "quantity": self.quantity,
            "observation": self.observation,
            "selected_addons": self.selected_addons,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> CartItem:
        product = data.get("product") or {}
        product_id = product.get("id")
        if product_id is None:
            raise ValidationError("Ítem del carrito sin producto")
        return cls(
            product_id=str(product_id),
            product_name=validate_product_name(product.get("name", "")),
            unit_price=validate_unit_price(product.get("price", 0)),
            quantity=validate_quantity(data.get("quantity", 1)),
            observation=data.get("observation") or None,
            selected_addons=data.get("selected_addons") or data.get("selectedAddons") or {},
        )


@dataclass
class Cart:
    items: list[CartItem] = field(default_factory=list)
    restaurant_slug: str | None = None

    def _find(self, product_id: str) -> CartItem | None:
        for item in self.items:
            if item.product_id == product_id:
                return item
        return None

    def add_item(
        self,
        product_id: str,
        product_name: str,
        unit_price,
        quantity: int = 1,
        observation: str | None = None,
        selected_addons: dict[str, list[str]] | None = None,
    ) -> CartItem:
        """
        Agrega un producto; si ya está en el carrito suma la cantidad.

        A new observation or addon selection replaces the previous one, an
        empty one keeps it.
        """
        quantity = validate_quantity(quantity)
        product_id = str(product_id)
        existing = self._find(product_id)
        if existing is not None:
            existing.quantity += quantity
            existing.observation = observation or existing.observation
            existing.selected_addons = selected_addons or existing.selected_addons
            return existing

        item = CartItem(
            product_id=product_id,
            product_name=validate_product_name(product_name),
            unit_price=validate_unit_price(unit_price),
            quantity=quantity,
            observation=observation,
            selected_addons=selected_addons or {},
        )
        self.items.append(item)
        return item

    def remove_item(self, product_id: str) -> None:
        self.items = [item for item in self.items if item.product_id != str(product_id)]

    def update_quantity(self, product_id: str, quantity: int) -> None:
        """Cambia la cantidad; cero o menos elimina el producto."""
        if quantity <= 0:
            self.remove_item(product_id)
            return
        item = self._find(str(product_id))
        if item is not None:
            item.quantity = validate_quantity(quantity)

    def clear(self) -> None:
        self.items = []
        self.restaurant_slug = None

    @property
    def total_items(self) -> int:
        return sum(item.quantity for item in self.items)

    @property
    def total_price(self) -> Decimal:
        return to_money(sum((item.line_total for item in self.items), ZERO))

    @property
    def is_empty(self) -> bool:
        return not self.items

    def to_json(self) -> str:
        return json.dumps(
            {
                "items": [item.to_dict() for item in self.items],
                "restaurant_slug": self.restaurant_slug,
            }
        )

    @classmethod
    def from_json(cls, raw: str | None) -> Cart:
        """
        Reconstruye el carrito guardado.

        Unreadable payloads give an empty cart, the same as a customer who
        never added anything.
        """
        if not raw:
            return cls()
        try:
            parsed = json.loads(raw)
        except json.JSONDecodeError as exc:
            logger.warning(f"Discarding unreadable cart payload: {exc}")
            return cls()
        return cls.from_data(parsed)

    @classmethod
    def from_data(cls, parsed: Any) -> Cart:
        """Same as from_json for a payload that was already decoded."""
        if isinstance(parsed, list):
            entries, restaurant_slug = parsed, None
        elif isinstance(parsed, dict):
            entries = parsed.get("items") or []
            restaurant_slug = parsed.get("restaurant_slug") or parsed.get("restaurantSlug")
        else:
            logger.warning("Discarding cart payload with unexpected shape")
            return cls()

        if not isinstance(entries, list) or not all(isinstance(entry, dict) for entry in entries):
            logger.warning("Discarding cart payload with unexpected items")
            return cls()

        try:
            items = [CartItem.from_dict(entry) for entry in entries]
        except (AttributeError, TypeError, ValidationError) as exc:
            logger.warning(f"Discarding cart payload with invalid items: {exc}")
            return cls()
        return cls(items=items, restaurant_slug=restaurant_slug)
