"""
Input validation utilities.
"""

from __future__ import annotations

from decimal import Decimal, InvalidOperation

from comanda.errors import ValidationError


def to_decimal(value, field: str = "valor") -> Decimal:
    """Convert numbers and numeric strings to Decimal without float noise."""
    if isinstance(value, Decimal) and value.is_finite():
        return value
    try:
        result = Decimal(str(value))
    except (InvalidOperation, ValueError, TypeError) as exc:
        raise ValidationError(f"El {field} debe ser numérico") from exc
    if not result.is_finite():
        raise ValidationError(f"El {field} debe ser un número finito")
    return result


def validate_quantity(quantity: int) -> int:
    if isinstance(quantity, bool) or not isinstance(quantity, int):
        raise ValidationError("La cantidad debe ser un número entero")
    if quantity < 1:
        raise ValidationError("La cantidad debe ser al menos 1")
    return quantity


def validate_unit_price(unit_price) -> Decimal:
    price = to_decimal(unit_price, "precio")
    if price < 0:
        raise ValidationError("El precio no puede ser negativo")
    return price


def validate_percentage(value, field: str = "porcentaje") -> Decimal:
    percentage = to_decimal(value, field)
    if percentage < 0 or percentage > 100:
        raise ValidationError(f"El {field} debe estar entre 0 y 100")
    return percentage


def validate_customer_count(customer_count: int) -> int:
    if isinstance(customer_count, bool) or not isinstance(customer_count, int):
        raise ValidationError("El número de personas debe ser un entero")
    if customer_count < 1:
        raise ValidationError("La mesa debe tener al menos 1 persona")
    return customer_count


def validate_table_number(number: int) -> int:
    if isinstance(number, bool) or not isinstance(number, int) or number < 1:
        raise ValidationError("El número de mesa debe ser un entero positivo")
    return number


def validate_capacity(capacity: int) -> int:
    if isinstance(capacity, bool) or not isinstance(capacity, int) or capacity < 1:
        raise ValidationError("La capacidad debe ser un entero positivo")
    return capacity


def validate_product_name(name: str) -> str:
    cleaned = (name or "").strip()
    if not cleaned:
        raise ValidationError("El nombre del producto es requerido")
    return cleaned


def normalize_phone(phone: str | None) -> str:
    """Solo dígitos: "(11) 98765-4321" y "11987654321" son el mismo cliente."""
    digits = "".join(ch for ch in (phone or "") if ch.isascii() and ch.isdigit())
    if len(digits) < 8:
        raise ValidationError("Teléfono inválido")
    return digits
