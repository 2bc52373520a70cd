"""
Structured logging configuration.
"""

import logging
import sys
from typing import Any

from pythonjsonlogger.json import JsonFormatter


def configure_logging(app_name: str, log_level: str = "INFO") -> logging.Logger:
    """
    Configure structured logging for the application.

    Args:
        app_name: Name of the application
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)

    Returns:
        Configured logger instance
    """
    level = getattr(logging, log_level.upper(), logging.INFO)

    # Service modules log under the "comanda" namespace, the app under its own name
    for name in (app_name, "comanda", "comanda_staff"):
        logging.getLogger(name).setLevel(level)

    logger = logging.getLogger(app_name)
    if logger.handlers:
        return logger

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        JsonFormatter(
            "%(asctime)s %(levelname)s %(name)s %(message)s",
            rename_fields={"levelname": "level", "name": "logger", "asctime": "timestamp"},
            datefmt="%Y-%m-%dT%H:%M:%S",
        )
    )
    logger.addHandler(handler)

    for name in ("comanda", "comanda_staff"):
        namespace_logger = logging.getLogger(name)
        if name != app_name and not namespace_logger.handlers:
            namespace_logger.addHandler(handler)

    return logger


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger instance for a module.

    Args:
        name: Module name (typically __name__)

    Returns:
        Logger instance
    """
    return logging.getLogger(name)


class LoggerAdapter(logging.LoggerAdapter):
    """
    Logger adapter that adds contextual information to all log messages.
    """

    def process(self, msg: str, kwargs: dict[str, Any]) -> tuple:
        extra = kwargs.get("extra", {})
        extra.update(self.extra)
        kwargs["extra"] = extra
        return msg, kwargs


def restaurant_logger(name: str, restaurant_id: int) -> LoggerAdapter:
    """Logger that tags every record with the tenant it belongs to."""
    return LoggerAdapter(get_logger(name), {"restaurant_id": restaurant_id})
