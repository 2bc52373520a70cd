"""
Application constants and enums.
"""

from decimal import Decimal
from enum import Enum


class TableStatus(str, Enum):
    AVAILABLE = "available"
    OCCUPIED = "occupied"
    RESERVED = "reserved"
    REQUESTING_BILL = "requesting_bill"


class TableOrderStatus(str, Enum):
    OPEN = "open"
    REQUESTING_BILL = "requesting_bill"
    PAID = "paid"
    CANCELLED = "cancelled"


class OrderItemStatus(str, Enum):
    PENDING = "pending"
    PREPARING = "preparing"
    READY = "ready"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


class DeliveryOrderStatus(str, Enum):
    PENDING = "pending"
    PREPARING = "preparing"
    DELIVERY = "delivery"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class KitchenStatus(str, Enum):
    """Status vocabulary shown on the kitchen display for any order type."""

    PENDING = "pending"
    PREPARING = "preparing"
    READY = "ready"


class OrderType(str, Enum):
    TABLE = "table"
    DELIVERY = "delivery"


class DiscountType(str, Enum):
    VALUE = "value"
    PERCENTAGE = "percentage"


class PaymentMethod(str, Enum):
    MONEY = "money"
    CARD = "card"
    PIX = "pix"
    DEBIT = "debit"
    CREDIT = "credit"


class DeliveryPaymentMethod(str, Enum):
    MONEY = "money"
    CARD = "card"
    PIX = "pix"


class RealtimeEntity(str, Enum):
    TABLE = "tables"
    TABLE_ORDER = "table_orders"
    TABLE_ORDER_ITEM = "table_order_items"
    DELIVERY_ORDER = "delivery_orders"


class Urgency(str, Enum):
    NORMAL = "normal"
    ATTENTION = "attention"
    LATE = "late"


# Orders that still own their table
OPEN_TABLE_ORDER_STATUSES = {
    TableOrderStatus.OPEN,
    TableOrderStatus.REQUESTING_BILL,
}

CLOSED_TABLE_ORDER_STATUSES = {
    TableOrderStatus.PAID,
    TableOrderStatus.CANCELLED,
}

DEFAULT_KITCHEN_STATUSES = frozenset({KitchenStatus.PENDING, KitchenStatus.PREPARING})


ITEM_TRANSITIONS = {
    (OrderItemStatus.PENDING, OrderItemStatus.PREPARING): {"action": "kitchen_start"},
    (OrderItemStatus.PREPARING, OrderItemStatus.READY): {"action": "kitchen_complete"},
    (OrderItemStatus.READY, OrderItemStatus.DELIVERED): {"action": "deliver"},
    (OrderItemStatus.PENDING, OrderItemStatus.CANCELLED): {"action": "cancel"},
    (OrderItemStatus.PREPARING, OrderItemStatus.CANCELLED): {"action": "cancel"},
}

TABLE_ORDER_TRANSITIONS = {
    (TableOrderStatus.OPEN, TableOrderStatus.REQUESTING_BILL): {"action": "request_bill"},
    (TableOrderStatus.OPEN, TableOrderStatus.PAID): {"action": "pay_direct"},
    (TableOrderStatus.REQUESTING_BILL, TableOrderStatus.PAID): {"action": "pay"},
    (TableOrderStatus.OPEN, TableOrderStatus.CANCELLED): {"action": "cancel"},
}

DELIVERY_TRANSITIONS = {
    (DeliveryOrderStatus.PENDING, DeliveryOrderStatus.PREPARING): {"action": "kitchen_start"},
    (DeliveryOrderStatus.PREPARING, DeliveryOrderStatus.DELIVERY): {"action": "dispatch"},
    (DeliveryOrderStatus.DELIVERY, DeliveryOrderStatus.COMPLETED): {"action": "complete"},
    (DeliveryOrderStatus.PENDING, DeliveryOrderStatus.CANCELLED): {"action": "cancel"},
    (DeliveryOrderStatus.PREPARING, DeliveryOrderStatus.CANCELLED): {"action": "cancel"},
    (DeliveryOrderStatus.DELIVERY, DeliveryOrderStatus.CANCELLED): {"action": "cancel"},
}

# Kitchen display status derived from a delivery order status, and back
DELIVERY_TO_KITCHEN_STATUS = {
    DeliveryOrderStatus.PENDING: KitchenStatus.PENDING,
    DeliveryOrderStatus.PREPARING: KitchenStatus.PREPARING,
    DeliveryOrderStatus.DELIVERY: KitchenStatus.READY,
}

KITCHEN_TO_DELIVERY_STATUS = {
    KitchenStatus.PENDING: DeliveryOrderStatus.PENDING,
    KitchenStatus.PREPARING: DeliveryOrderStatus.PREPARING,
    KitchenStatus.READY: DeliveryOrderStatus.DELIVERY,
}


DEFAULT_SERVICE_FEE_PERCENTAGE = Decimal("10")
TOTAL_TOLERANCE = Decimal("0.01")
DEFAULT_TABLE_CAPACITY = 4
KITCHEN_ATTENTION_MINUTES = 5
KITCHEN_LATE_MINUTES = 10


ITEM_STATUS_LABELS = {
    OrderItemStatus.PENDING.value: "Pendiente",
    OrderItemStatus.PREPARING.value: "Preparando",
    OrderItemStatus.READY.value: "Listo",
    OrderItemStatus.DELIVERED.value: "Entregado",
    OrderItemStatus.CANCELLED.value: "Cancelado",
}
