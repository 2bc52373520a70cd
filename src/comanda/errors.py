"""
Typed errors raised by the lifecycle services and their catalog.

Every error carries a catalog code and the HTTP status the API answers with,
so the Flask error handlers never have to inspect messages.
"""

from __future__ import annotations

from http import HTTPStatus
from typing import Any

ERROR_CATALOG = {
    "ENTITY_404": {
        "title": "Registro no encontrado",
        "description": "La mesa, cuenta, ítem o pedido no existe o pertenece a otro restaurante.",
        "http_code": 404,
        "solution": "Actualizar la pantalla; el registro pudo haber sido eliminado.",
    },
    "STATE_409": {
        "title": "Conflicto de estado",
        "description": "Otro usuario cambió el registro primero (ej. dos meseros abriendo la misma mesa).",
        "http_code": 409,
        "solution": "Actualizar la pantalla y reintentar con el estado actual.",
    },
    "STATE_410": {
        "title": "Estado inválido",
        "description": "La cuenta ya no admite la operación (cerrada, pagada o cancelada).",
        "http_code": 409,
        "solution": "Verificar el estado de la cuenta antes de operar.",
    },
    "STATE_400": {
        "title": "Transición inválida",
        "description": "El cambio de estado solicitado no forma parte del flujo permitido.",
        "http_code": 400,
        "solution": "Seguir el flujo pendiente → preparando → listo → entregado.",
    },
    "STATE_412": {
        "title": "Precondición no cumplida",
        "description": "La mesa está en servicio y no puede editarse ni eliminarse.",
        "http_code": 412,
        "solution": "Cerrar o transferir la cuenta antes de editar la mesa.",
    },
    "AUTH_001": {
        "title": "PIN incorrecto",
        "description": "El PIN de cocina o de mesero no coincide.",
        "http_code": 401,
        "solution": "Reintentar o solicitar el PIN al administrador.",
    },
    "AUTH_403": {
        "title": "Acceso bloqueado",
        "description": "El PIN de cocina está activado pero nunca fue configurado.",
        "http_code": 403,
        "solution": "Configurar el PIN de cocina en los ajustes de la tienda.",
    },
    "INPUT_001": {
        "title": "Datos inválidos",
        "description": "Cantidad, precio, descuento o porcentaje fuera de rango.",
        "http_code": 400,
        "solution": "Corregir los datos enviados.",
    },
}


class ComandaError(Exception):
    """Base class for errors surfaced to API clients."""

    code = "SYSTEM_001"
    status = HTTPStatus.INTERNAL_SERVER_ERROR

    def __init__(self, message: str, **details: Any) -> None:
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"code": self.code}
        if self.details:
            data.update(
                {
                    key: value.value if hasattr(value, "value") else value
                    for key, value in self.details.items()
                }
            )
        return data


class NotFoundError(ComandaError):
    code = "ENTITY_404"
    status = HTTPStatus.NOT_FOUND


class ConflictError(ComandaError):
    """Resource already in an incompatible state (usually lost a race)."""

    code = "STATE_409"
    status = HTTPStatus.CONFLICT


class InvalidStateError(ComandaError):
    """Operation not allowed in the entity's current status."""

    code = "STATE_410"
    status = HTTPStatus.CONFLICT


class IllegalTransitionError(InvalidStateError):
    """Status change outside the allowed-edges graph."""

    code = "STATE_400"
    status = HTTPStatus.BAD_REQUEST

    def __init__(self, message: str, current_status=None, target_status=None) -> None:
        super().__init__(message, current_status=current_status, target_status=target_status)
        self.current_status = current_status
        self.target_status = target_status


class PreconditionError(ComandaError):
    """Structural constraint violated, e.g. editing an occupied table."""

    code = "STATE_412"
    status = HTTPStatus.PRECONDITION_FAILED


class AuthError(ComandaError):
    code = "AUTH_001"
    status = HTTPStatus.UNAUTHORIZED


class ValidationError(ComandaError):
    """Raised when validation fails."""

    code = "INPUT_001"
    status = HTTPStatus.BAD_REQUEST


class ForbiddenError(AuthError):
    """Access gate is misconfigured; no PIN can open it."""

    code = "AUTH_403"
    status = HTTPStatus.FORBIDDEN
