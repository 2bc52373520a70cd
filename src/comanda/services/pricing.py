"""
Order totals: subtotal, discount and service fee.

total = subtotal - discount + service_fee, where a percentage discount is
taken from the subtotal and the service fee is charged on the discounted
amount. Amounts are Decimals rounded half-up to cents.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal

from comanda.constants import TOTAL_TOLERANCE, DiscountType, OrderItemStatus
from comanda.errors import ValidationError
from comanda.validation import to_decimal, validate_percentage

CENT = Decimal("0.01")
ZERO = Decimal("0.00")


def to_money(value) -> Decimal:
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class OrderTotals:
    subtotal: Decimal
    discount_amount: Decimal
    service_fee: Decimal
    total: Decimal

    def to_dict(self) -> dict[str, float]:
        return {
            "subtotal": float(self.subtotal),
            "discount_amount": float(self.discount_amount),
            "service_fee": float(self.service_fee),
            "total_amount": float(self.total),
        }


def items_subtotal(items: Iterable) -> Decimal:
    """Sum of quantity * unit_price over the items that were not cancelled."""
    subtotal = Decimal("0")
    for item in items:
        if item.status == OrderItemStatus.CANCELLED.value:
            continue
        subtotal += to_decimal(item.unit_price) * item.quantity
    return to_money(subtotal)


def calculate_totals(
    subtotal,
    discount=0,
    discount_type: DiscountType | str = DiscountType.VALUE,
    service_fee_enabled: bool = False,
    service_fee_percentage=0,
) -> OrderTotals:
    subtotal_value = to_money(subtotal)
    discount_value = to_decimal(discount, "descuento")
    if discount_value < 0:
        raise ValidationError("El descuento no puede ser negativo")

    try:
        discount_kind = DiscountType(discount_type)
    except ValueError as exc:
        raise ValidationError(f"Tipo de descuento inválido: {discount_type}") from exc

    if discount_kind == DiscountType.PERCENTAGE:
        percentage = validate_percentage(discount_value, "descuento")
        discount_amount = to_money(subtotal_value * percentage / 100)
    else:
        discount_amount = to_money(discount_value)

    # A value discount larger than the bill zeroes it instead of going negative
    discount_amount = min(discount_amount, subtotal_value)
    after_discount = subtotal_value - discount_amount

    service_fee = ZERO
    if service_fee_enabled:
        fee_percentage = validate_percentage(service_fee_percentage, "porcentaje de servicio")
        service_fee = to_money(after_discount * fee_percentage / 100)

    return OrderTotals(
        subtotal=subtotal_value,
        discount_amount=discount_amount,
        service_fee=service_fee,
        total=to_money(after_discount + service_fee),
    )


def totals_match(server_total, client_total, tolerance=TOTAL_TOLERANCE) -> bool:
    return abs(to_decimal(server_total) - to_decimal(client_total)) <= to_decimal(tolerance)
