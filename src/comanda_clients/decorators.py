"""
Restaurant resolution for customer routes.

Customers reach a restaurant through its public slug, never through the
numeric id the staff screens send in a header.
"""

from functools import wraps
from http import HTTPStatus

from flask import g, jsonify
from sqlalchemy import select

from comanda.db import get_session
from comanda.models import Restaurant
from comanda.serializers import error_response


def get_restaurant_id() -> int:
    """Tenant of the current request, set by restaurant_from_slug."""
    return g.restaurant_id


def restaurant_from_slug(f):
    """Resolve the `slug` URL segment to an active restaurant and drop it from the view kwargs."""

    @wraps(f)
    def decorated_function(*args, **kwargs):
        slug = kwargs.pop("slug")
        with get_session() as db_session:
            restaurant = db_session.execute(
                select(Restaurant.id, Restaurant.is_active).where(Restaurant.slug == slug)
            ).first()

        if restaurant is None or not restaurant.is_active:
            return jsonify(error_response("Restaurante no encontrado")), HTTPStatus.NOT_FOUND

        g.restaurant_id = restaurant.id
        return f(*args, **kwargs)

    return decorated_function
