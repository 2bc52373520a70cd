"""
Acceso por PIN a la pantalla de cocina y a la app del mesero.

PINs are stored and compared in plaintext; they gate shared screens inside
the restaurant, not user accounts.
"""

import hmac
from typing import Any

from sqlalchemy import select

from comanda.db import get_session
from comanda.errors import AuthError, ForbiddenError, NotFoundError
from comanda.logging_config import get_logger
from comanda.models import StoreConfig, Waiter

logger = get_logger(__name__)


def _pin_matches(expected: str, provided: str) -> bool:
    return hmac.compare_digest(expected.encode("utf-8"), provided.encode("utf-8"))


def verify_kitchen_pin(restaurant_id: int, pin: str | None = None) -> dict[str, Any]:
    """
    Verifica el PIN de cocina.

    Returns:
        {"success": True, "pin_required": False} when the PIN is disabled,
        {"success": False, "pin_required": True} when a PIN is needed but none
        was sent, {"success": True, "pin_required": True} on a match

    Raises:
        NotFoundError: The restaurant has no store configuration
        ForbiddenError: The PIN is enabled but was never configured
        AuthError: Wrong PIN
    """
    with get_session() as db_session:
        config = db_session.execute(
            select(StoreConfig).where(StoreConfig.restaurant_id == restaurant_id)
        ).scalar_one_or_none()
        if config is None:
            raise NotFoundError("Configuración no encontrada", restaurant_id=restaurant_id)
        enabled = config.kitchen_pin_enabled
        expected = config.kitchen_pin

    if not enabled:
        return {"success": True, "pin_required": False}

    if not expected:
        logger.warning(f"Kitchen PIN enabled without a PIN for restaurant {restaurant_id}")
        raise ForbiddenError("PIN de cocina no configurado. Contacte al administrador.")

    if not pin:
        return {"success": False, "pin_required": True}

    if not _pin_matches(expected, pin):
        logger.warning(f"Wrong kitchen PIN for restaurant {restaurant_id}")
        raise AuthError("PIN incorrecto")

    return {"success": True, "pin_required": True}


def verify_waiter_pin(restaurant_id: int, waiter_id: int, pin: str | None = None) -> dict[str, Any]:
    """
    Verifica el PIN de un mesero activo; meseros sin PIN entran directo.

    Raises:
        NotFoundError: Unknown or inactive waiter
        AuthError: Missing or wrong PIN
    """
    with get_session() as db_session:
        waiter = db_session.execute(
            select(Waiter).where(
                Waiter.id == waiter_id,
                Waiter.restaurant_id == restaurant_id,
                Waiter.is_active.is_(True),
            )
        ).scalar_one_or_none()
        if waiter is None:
            raise NotFoundError("Mesero no encontrado", waiter_id=waiter_id)
        expected = waiter.pin
        result = {"success": True, "waiter_id": waiter.id, "waiter_name": waiter.name}

    if expected and (not pin or not _pin_matches(expected, pin)):
        logger.warning(f"Wrong PIN for waiter {waiter_id} in restaurant {restaurant_id}")
        raise AuthError("PIN incorrecto")

    logger.info(f"Waiter {waiter_id} accessed the waiter app")
    return result


def list_active_waiters(restaurant_id: int) -> list[dict[str, Any]]:
    """Meseros para la pantalla de acceso; nunca expone el PIN."""
    with get_session() as db_session:
        waiters = (
            db_session.execute(
                select(Waiter)
                .where(Waiter.restaurant_id == restaurant_id, Waiter.is_active.is_(True))
                .order_by(Waiter.name)
            )
            .scalars()
            .all()
        )
        return [
            {"id": waiter.id, "name": waiter.name, "has_pin": bool(waiter.pin)}
            for waiter in waiters
        ]
