"""Decorators for tenant scoping of staff API routes."""

from __future__ import annotations

from functools import wraps
from http import HTTPStatus

from flask import current_app, g, jsonify, request
from sqlalchemy import select

from comanda.config import AppConfig
from comanda.db import get_session
from comanda.models import Restaurant
from comanda.serializers import error_response

RESTAURANT_HEADER = "X-Restaurant-Id"


def get_restaurant_id() -> int:
    """Tenant of the current request, set by restaurant_required."""
    return g.restaurant_id


def get_app_config() -> AppConfig:
    return current_app.config["COMANDA_CONFIG"]


def restaurant_required(f):
    """
    Decorator to require an active restaurant in the X-Restaurant-Id header.

    Every service call is scoped by the resolved id, so records of another
    tenant answer 404 like missing ones.
    """

    @wraps(f)
    def decorated_function(*args, **kwargs):
        raw_id = (request.headers.get(RESTAURANT_HEADER) or "").strip()
        if not (raw_id.isascii() and raw_id.isdigit()):
            return jsonify(
                error_response(f"Encabezado {RESTAURANT_HEADER} requerido")
            ), HTTPStatus.BAD_REQUEST

        restaurant_id = int(raw_id)
        with get_session() as db_session:
            restaurant = db_session.execute(
                select(Restaurant.id, Restaurant.is_active).where(Restaurant.id == restaurant_id)
            ).first()

        if restaurant is None:
            return jsonify(error_response("Restaurante no encontrado")), HTTPStatus.NOT_FOUND
        if not restaurant.is_active:
            return jsonify(error_response("Restaurante suspendido")), HTTPStatus.FORBIDDEN

        g.restaurant_id = restaurant_id
        return f(*args, **kwargs)

    return decorated_function
