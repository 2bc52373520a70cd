"""
Tables API - Gestión de mesas del restaurante

Alta, edición, baja y reserva de mesas, y el mapa de mesas del PDV.
"""

from http import HTTPStatus

from flask import Blueprint, jsonify, request

from comanda.logging_config import get_logger
from comanda.schemas import CreateTableRequest, ReserveTableRequest, UpdateTableRequest
from comanda.serializers import success_response
from comanda.services.table_service import TableService
from comanda_staff.decorators import get_restaurant_id, restaurant_required

tables_bp = Blueprint("tables", __name__)
logger = get_logger(__name__)


@tables_bp.get("/tables")
@restaurant_required
def get_tables():
    """
    Obtiene todas las mesas con su estado.

    Query params:
    - status: Filtrar por estado (opcional)
    """
    tables = TableService.list_tables(get_restaurant_id(), request.args.get("status"))
    return jsonify(success_response({"tables": tables}))


@tables_bp.get("/tables/map")
@restaurant_required
def get_table_map():
    """Mapa de mesas con la cuenta abierta de cada una."""
    tables = TableService.list_tables_with_orders(get_restaurant_id())
    return jsonify(success_response({"tables": tables}))


@tables_bp.post("/tables")
@restaurant_required
def post_create_table():
    """
    Crea una mesa.

    Body: Ver CreateTableRequest schema
    """
    payload = CreateTableRequest(**(request.get_json(silent=True) or {}))
    table = TableService.create_table(
        get_restaurant_id(), payload.number, payload.name, payload.capacity
    )
    return jsonify(success_response(table, "Mesa creada")), HTTPStatus.CREATED


@tables_bp.put("/tables/<int:table_id>")
@restaurant_required
def put_update_table(table_id: int):
    """
    Actualiza número, nombre o capacidad de una mesa libre.

    Body: Ver UpdateTableRequest schema
    """
    payload = UpdateTableRequest(**(request.get_json(silent=True) or {}))
    table = TableService.update_table(
        get_restaurant_id(), table_id, payload.model_dump(exclude_unset=True)
    )
    return jsonify(success_response(table))


@tables_bp.delete("/tables/<int:table_id>")
@restaurant_required
def delete_table(table_id: int):
    TableService.delete_table(get_restaurant_id(), table_id)
    return jsonify(success_response({"deleted": True, "id": table_id}))


@tables_bp.post("/tables/<int:table_id>/reserve")
@restaurant_required
def post_reserve_table(table_id: int):
    """
    Reserva o libera una mesa.

    Body: {"reserved": true|false}
    """
    payload = ReserveTableRequest(**(request.get_json(silent=True) or {}))
    table = TableService.set_table_reserved(get_restaurant_id(), table_id, payload.reserved)
    return jsonify(success_response(table))
