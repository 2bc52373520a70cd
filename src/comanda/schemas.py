"""
Pydantic schemas for request validation.
"""

from decimal import Decimal

from pydantic import BaseModel, Field, field_validator, model_validator

from comanda.constants import (
    DeliveryOrderStatus,
    DeliveryPaymentMethod,
    DiscountType,
    KitchenStatus,
    OrderItemStatus,
    OrderType,
    PaymentMethod,
)


def _strip_optional(value: str | None) -> str | None:
    if value is None:
        return None
    value = value.strip()
    return value or None


class CreateTableRequest(BaseModel):
    number: int = Field(..., ge=1)
    name: str | None = Field(None, max_length=80)
    capacity: int = Field(default=4, ge=1)


class UpdateTableRequest(BaseModel):
    number: int | None = Field(None, ge=1)
    name: str | None = Field(None, max_length=80)
    capacity: int | None = Field(None, ge=1)


class ReserveTableRequest(BaseModel):
    reserved: bool = True


class OpenTableRequest(BaseModel):
    table_id: int | None = None
    customer_count: int = Field(default=1, ge=1)
    waiter_id: int | None = None
    waiter_name: str | None = Field(None, max_length=120)

    @field_validator("waiter_name")
    @classmethod
    def normalize_waiter_name(cls, v):
        return _strip_optional(v)


class AddItemRequest(BaseModel):
    product_name: str = Field(..., min_length=1, max_length=200)
    quantity: int = Field(default=1, ge=1)
    unit_price: Decimal = Field(..., ge=0)
    product_id: str | None = Field(None, max_length=64)
    observation: str | None = None

    @field_validator("product_name")
    @classmethod
    def normalize_product_name(cls, v):
        v = v.strip()
        if not v:
            raise ValueError("El nombre del producto es requerido")
        return v

    @field_validator("observation")
    @classmethod
    def normalize_observation(cls, v):
        return _strip_optional(v)


class UpdateItemStatusRequest(BaseModel):
    status: OrderItemStatus


class CloseTableRequest(BaseModel):
    payment_method: PaymentMethod
    table_id: int | None = None
    discount: Decimal = Field(default=Decimal("0"), ge=0)
    discount_type: DiscountType = DiscountType.VALUE
    service_fee_enabled: bool = False
    service_fee_percentage: Decimal | None = Field(None, ge=0, le=100)
    total_amount: Decimal | None = Field(None, ge=0)

    @model_validator(mode="after")
    def validate_percentage_discount(self):
        if self.discount_type == DiscountType.PERCENTAGE and self.discount > 100:
            raise ValueError("El descuento porcentual debe estar entre 0 y 100")
        return self


class TransferTableRequest(BaseModel):
    to_table_id: int


class DeliveryItemRequest(BaseModel):
    product_name: str = Field(..., min_length=1, max_length=200)
    quantity: int = Field(default=1, ge=1)
    unit_price: Decimal = Field(..., ge=0)
    observation: str | None = None


class DeliveryCustomerRequest(BaseModel):
    customer_name: str = Field(..., min_length=1, max_length=120)
    customer_phone: str = Field(..., min_length=8, max_length=32)
    address_street: str = Field(..., min_length=1, max_length=200)
    address_number: str = Field(..., min_length=1, max_length=20)
    address_neighborhood: str = Field(..., min_length=1, max_length=120)
    address_complement: str | None = Field(None, max_length=120)
    address_reference: str | None = Field(None, max_length=200)
    payment_method: DeliveryPaymentMethod
    change_for: Decimal | None = Field(None, ge=0)

    @field_validator("customer_phone")
    @classmethod
    def normalize_phone(cls, v):
        digits = "".join(ch for ch in v if ch.isascii() and ch.isdigit())
        if len(digits) < 8:
            raise ValueError("Teléfono inválido")
        return digits

    @field_validator("address_complement", "address_reference")
    @classmethod
    def normalize_optional(cls, v):
        return _strip_optional(v)

    def customer_data(self) -> dict:
        data = self.model_dump(include=set(DeliveryCustomerRequest.model_fields))
        data["payment_method"] = self.payment_method.value
        return data


class CreateDeliveryOrderRequest(DeliveryCustomerRequest):
    delivery_fee: Decimal = Field(default=Decimal("0"), ge=0)
    items: list[DeliveryItemRequest] = Field(..., min_length=1)


class CheckoutRequest(DeliveryCustomerRequest):
    """Checkout del cliente: datos de entrega más el carrito guardado (objeto, lista o JSON)."""

    cart: dict | list | str


class UpdateDeliveryStatusRequest(BaseModel):
    status: DeliveryOrderStatus


class KitchenItemStatusRequest(BaseModel):
    order_type: OrderType = OrderType.TABLE
    status: KitchenStatus | OrderItemStatus
    order_id: int | None = None


class KitchenPinRequest(BaseModel):
    pin: str | None = Field(None, max_length=12)


class WaiterPinRequest(BaseModel):
    waiter_id: int
    pin: str | None = Field(None, max_length=12)
