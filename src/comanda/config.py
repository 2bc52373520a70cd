"""
Utilities to centralize configuration handling across the comanda services.
"""

from __future__ import annotations

import os
import re
from dataclasses import dataclass, field
from decimal import Decimal


@dataclass
class AppConfig:
    """Simple container for application level settings."""

    app_name: str
    # PostgreSQL database
    db_host: str
    db_port: int
    db_user: str
    db_password: str
    db_name: str
    db_sslmode: str
    # App settings
    secret_key: str
    log_level: str
    restaurant_name: str
    restaurant_slug: str
    debug_mode: bool
    # Order lifecycle settings
    default_service_fee_percentage: Decimal
    total_tolerance: Decimal
    kitchen_attention_minutes: int
    kitchen_late_minutes: int
    realtime_retention_hours: int
    database_url: str | None = None
    cors_allowed_origins: list[str] = field(default_factory=list)

    @property
    def sqlalchemy_uri(self) -> str:
        """
        Build the SQLAlchemy URI for the entity store.

        DATABASE_URL wins when present (tests point it at SQLite); otherwise a
        PostgreSQL URI using psycopg2 as the driver is assembled, including the
        SSL mode required by hosted Postgres.
        """
        if self.database_url:
            return self.database_url
        ssl_arg = f"?sslmode={self.db_sslmode}" if self.db_sslmode else ""
        return (
            f"postgresql+psycopg2://{self.db_user}:{self.db_password}"
            f"@{self.db_host}:{self.db_port}/{self.db_name}{ssl_arg}"
        )


def _read_env(name: str, default: str | None = None) -> str:
    """
    Internal helper to fetch environment variables with support for defaults.
    """
    value = os.getenv(name)
    if value is None:
        if default is None:
            raise RuntimeError(f"Missing required environment variable '{name}'")
        value = default
    return value


def read_bool(name: str, default: str = "false") -> bool:
    value = _read_env(name, default)
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _slugify(value: str) -> str:
    value = value.strip().lower()
    value = re.sub(r"[^a-z0-9]+", "-", value)
    return value.strip("-")


def validate_required_env_vars(skip_in_debug: bool = False) -> None:
    """
    Validate that all required environment variables are set.

    Designed to fail fast during startup rather than encountering errors on
    the first request.

    Args:
        skip_in_debug: If True, skip validation when DEBUG_MODE=true

    Raises:
        RuntimeError: If any required variable is missing or has an invalid value
    """
    if skip_in_debug and read_bool("DEBUG_MODE", "false"):
        return

    errors = []

    secret_key = os.getenv("SECRET_KEY", "")
    if not secret_key or secret_key in ["change-me-please", "super-secret-change-me"]:
        errors.append(
            "SECRET_KEY must be configured with a secure random value. "
            'Generate with: python3 -c "import secrets; print(secrets.token_urlsafe(32))"'
        )

    # DATABASE_URL replaces the individual POSTGRES_* variables
    if not os.getenv("DATABASE_URL"):
        for name in ("POSTGRES_HOST", "POSTGRES_USER", "POSTGRES_PASSWORD", "POSTGRES_DB"):
            if not os.getenv(name, ""):
                errors.append(f"{name} must be configured")

    for name in ("KITCHEN_ATTENTION_MINUTES", "KITCHEN_LATE_MINUTES"):
        raw = os.getenv(name, "")
        if raw:
            try:
                int(raw)
            except ValueError:
                errors.append(f"{name} must be a valid integer, got: {raw}")

    if errors:
        error_msg = "\nConfiguration Errors - Missing or invalid environment variables:\n"
        for error in errors:
            error_msg += f"  - {error}\n"
        raise RuntimeError(error_msg)


def load_config(app_name: str) -> AppConfig:
    """
    Produce an AppConfig instance populated from environment variables.

    Each service passes its desired `app_name` to keep logs easy to
    differentiate while still reusing the same config loader.
    """
    origins = _read_env("CORS_ALLOWED_ORIGINS", "")
    return AppConfig(
        app_name=app_name,
        db_host=_read_env("POSTGRES_HOST", "comanda-postgres"),
        db_port=int(_read_env("POSTGRES_PORT", "5432")),
        db_user=_read_env("POSTGRES_USER", "comanda"),
        db_password=_read_env("POSTGRES_PASSWORD", "comanda"),
        db_name=_read_env("POSTGRES_DB", "comanda"),
        db_sslmode=_read_env("POSTGRES_SSLMODE", "disable"),
        database_url=os.getenv("DATABASE_URL") or None,
        secret_key=_read_env("SECRET_KEY", "super-secret-change-me"),
        log_level=_read_env("LOG_LEVEL", "INFO"),
        restaurant_name=_read_env("RESTAURANT_NAME", "comanda"),
        restaurant_slug=_slugify(_read_env("RESTAURANT_NAME", "comanda")),
        debug_mode=read_bool("DEBUG_MODE", "false"),
        default_service_fee_percentage=Decimal(_read_env("DEFAULT_SERVICE_FEE_PERCENTAGE", "10")),
        total_tolerance=Decimal(_read_env("TOTAL_TOLERANCE", "0.01")),
        kitchen_attention_minutes=int(_read_env("KITCHEN_ATTENTION_MINUTES", "5")),
        kitchen_late_minutes=int(_read_env("KITCHEN_LATE_MINUTES", "10")),
        realtime_retention_hours=int(_read_env("REALTIME_RETENTION_HOURS", "24")),
        cors_allowed_origins=[origin.strip() for origin in origins.split(",") if origin.strip()],
    )
