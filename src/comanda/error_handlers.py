"""
Centralized error handlers for Flask applications.
"""

from http import HTTPStatus

from flask import Flask, jsonify
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.exc import SQLAlchemyError
from werkzeug.exceptions import HTTPException

from comanda.errors import ERROR_CATALOG, ComandaError
from comanda.logging_config import get_logger
from comanda.serializers import error_response

logger = get_logger(__name__)


def register_error_handlers(app: Flask) -> None:
    """
    Register centralized error handlers for the Flask app.

    Args:
        app: Flask application instance
    """

    @app.errorhandler(ComandaError)
    def handle_comanda_error(e: ComandaError):
        """Handle typed lifecycle errors (not found, conflicts, transitions, PINs)."""
        if e.status >= HTTPStatus.INTERNAL_SERVER_ERROR:
            logger.error(f"{e.code}: {e.message}", exc_info=True)
        else:
            logger.warning(f"{e.code}: {e.message}")
        response = error_response(e.message, e.to_dict())
        catalog_entry = ERROR_CATALOG.get(e.code)
        if catalog_entry:
            response["solution"] = catalog_entry["solution"]
        return jsonify(response), e.status

    @app.errorhandler(PydanticValidationError)
    def handle_pydantic_validation_error(e: PydanticValidationError):
        """Handle Pydantic validation errors."""
        logger.warning(f"Pydantic validation error: {e}")
        details = e.errors(include_url=False, include_context=False, include_input=False)
        return jsonify(
            error_response("Datos inválidos", {"code": "INPUT_001", "errors": details})
        ), HTTPStatus.BAD_REQUEST

    @app.errorhandler(SQLAlchemyError)
    def handle_database_error(e: SQLAlchemyError):
        """Handle database errors."""
        logger.error(f"Database error: {e}", exc_info=True)
        return jsonify(error_response("Error de base de datos")), HTTPStatus.INTERNAL_SERVER_ERROR

    @app.errorhandler(HTTPException)
    def handle_http_exception(e: HTTPException):
        """Handle HTTP exceptions from Werkzeug."""
        logger.warning(f"HTTP exception {e.code}: {e.description}")
        return jsonify(error_response(e.description or str(e))), e.code

    @app.errorhandler(404)
    def handle_not_found(e):
        return jsonify(error_response("Recurso no encontrado")), HTTPStatus.NOT_FOUND

    @app.errorhandler(405)
    def handle_method_not_allowed(e):
        return jsonify(error_response("Método no permitido")), HTTPStatus.METHOD_NOT_ALLOWED

    @app.errorhandler(Exception)
    def handle_generic_exception(e: Exception):
        """Handle any unhandled exceptions."""
        logger.error(f"Unhandled exception: {e}", exc_info=True)
        return jsonify(
            error_response("Error interno del servidor")
        ), HTTPStatus.INTERNAL_SERVER_ERROR
