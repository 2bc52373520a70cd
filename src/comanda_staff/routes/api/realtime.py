"""
Eventos en tiempo real para las pantallas de cocina, mesero y mapa de mesas.

Each screen polls with its own cursor (after_id); reading never consumes
events.
"""

from __future__ import annotations

from flask import Blueprint, jsonify, request

from comanda.realtime import read_events_from_stream
from comanda.serializers import success_response
from comanda_staff.decorators import get_restaurant_id, restaurant_required

realtime_bp = Blueprint("realtime", __name__)
DEFAULT_LIMIT = 100
HARD_LIMIT = 250


@realtime_bp.get("/realtime/events")
@restaurant_required
def get_realtime_events():
    """
    Regresa los eventos posteriores a after_id.

    Query params:
    - after_id: último id recibido (por defecto 0)
    - limit: máximo de eventos
    - entity: filtrar por entidad (repetible)
    """
    after_id = request.args.get("after_id", 0, type=int)
    requested_limit = request.args.get("limit", type=int)
    limit = min(requested_limit or DEFAULT_LIMIT, HARD_LIMIT)

    last_id, events = read_events_from_stream(
        get_restaurant_id(),
        after_id=after_id,
        count=limit,
        entities=request.args.getlist("entity") or None,
    )
    return jsonify(success_response({"events": events, "last_id": last_id}))


__all__ = ["realtime_bp"]
