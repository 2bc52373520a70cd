"""
Datetime utilities.
"""

from datetime import date, datetime, time, timedelta, timezone, tzinfo
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from comanda.logging_config import get_logger

logger = get_logger(__name__)


def utcnow() -> datetime:
    """
    Current UTC time as a naive datetime.

    Timestamps are stored without timezone (UTC) so values read back from
    PostgreSQL and SQLite compare against this without conversion.
    """
    return datetime.now(timezone.utc).replace(tzinfo=None)


def isoformat_or_none(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


def resolve_timezone(tz_name: str | None) -> tzinfo:
    """Zona horaria del restaurante; UTC si no está configurada o es inválida."""
    if not tz_name:
        return timezone.utc
    try:
        return ZoneInfo(tz_name)
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning(f"Unknown timezone '{tz_name}', using UTC")
        return timezone.utc


def local_today(tz: tzinfo) -> date:
    return datetime.now(tz).date()


def local_day_bounds(start_date: date, end_date: date, tz: tzinfo) -> tuple[datetime, datetime]:
    """
    Naive UTC bounds [start, end) covering whole local days.

    An order closed at 22:00 in São Paulo is stored as 01:00 UTC of the next
    day but still belongs to the local business day it was closed on.
    """
    start = datetime.combine(start_date, time.min, tzinfo=tz)
    end = datetime.combine(end_date + timedelta(days=1), time.min, tzinfo=tz)
    return (
        start.astimezone(timezone.utc).replace(tzinfo=None),
        end.astimezone(timezone.utc).replace(tzinfo=None),
    )
