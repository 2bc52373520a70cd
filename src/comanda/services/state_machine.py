"""
State machines for table orders, order items and delivery orders.

Each entity gets one closed enum and one explicit edge table (see
comanda.constants); every status write goes through `ensure()` so the
allowed-edges graph is validated in a single place instead of in each caller.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from comanda.constants import (
    DELIVERY_TRANSITIONS,
    ITEM_TRANSITIONS,
    TABLE_ORDER_TRANSITIONS,
    DeliveryOrderStatus,
    OrderItemStatus,
    TableOrderStatus,
)
from comanda.errors import IllegalTransitionError, InvalidStateError


class StateMachine:
    """
    Máquina de estados basada en una tabla de transiciones.

    Responsibilities:
    - Normalizar el estado leído de la base de datos al enum
    - Validar que (actual, destino) sea una arista permitida
    - Exponer la acción asociada a la transición (para logs y eventos)
    """

    def __init__(
        self,
        entity: str,
        status_enum: type[Enum],
        transitions: dict[tuple[Enum, Enum], dict[str, Any]],
        error_class: type[InvalidStateError] = IllegalTransitionError,
    ):
        self.entity = entity
        self.status_enum = status_enum
        self._transitions = transitions
        self._error_class = error_class

    def coerce(self, status) -> Enum:
        """Obtiene el estado como enum; un valor desconocido es un estado inválido."""
        if isinstance(status, self.status_enum):
            return status
        try:
            return self.status_enum(status)
        except ValueError as exc:
            raise IllegalTransitionError(
                f"Estado desconocido para {self.entity}: {status}", status, None
            ) from exc

    def can_transition(self, current, target) -> bool:
        """Verifica si una transición es válida."""
        return (self.coerce(current), self.coerce(target)) in self._transitions

    def targets_from(self, current) -> set[Enum]:
        current_status = self.coerce(current)
        return {target for (source, target) in self._transitions if source == current_status}

    def ensure(self, current, target) -> dict[str, Any]:
        """
        Valida la transición y regresa su política.

        Raises the machine's error class (IllegalTransitionError for items and
        delivery orders, InvalidStateError for table orders) with both
        statuses attached.
        """
        current_status = self.coerce(current)
        target_status = self.coerce(target)
        policy = self._transitions.get((current_status, target_status))
        if policy is None:
            message = (
                f"Transición inválida para {self.entity}: "
                f"{current_status.value} → {target_status.value}"
            )
            if self._error_class is IllegalTransitionError:
                raise IllegalTransitionError(message, current_status, target_status)
            raise self._error_class(
                message, current_status=current_status, target_status=target_status
            )
        return policy


item_state_machine = StateMachine("item", OrderItemStatus, ITEM_TRANSITIONS)
table_order_state_machine = StateMachine(
    "cuenta", TableOrderStatus, TABLE_ORDER_TRANSITIONS, error_class=InvalidStateError
)
delivery_state_machine = StateMachine("pedido", DeliveryOrderStatus, DELIVERY_TRANSITIONS)
