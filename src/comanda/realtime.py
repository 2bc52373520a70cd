"""
Realtime change relay.

Services call `emit_change()` after their transaction commits. Each event is
persisted in `comanda_realtime_events` (polled by kitchen, waiter and
table-map screens through /api/realtime/events) and handed to in-process
subscribers such as the kitchen queue projector. Delivery to browsers is the
platform's job; this module only defines what is emitted and how to listen.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Callable
from datetime import datetime, timedelta
from decimal import Decimal
from enum import Enum
from threading import Lock
from typing import Any

from sqlalchemy import delete, select

from comanda.constants import RealtimeEntity
from comanda.datetime_utils import utcnow

logger = logging.getLogger(__name__)

EventHandler = Callable[[dict[str, Any]], None]

DEFAULT_LIMIT = 100
HARD_LIMIT = 500


class RealtimeManager:
    """
    Maneja eventos en tiempo real: persistencia en PostgreSQL y suscriptores locales.
    """

    _subscribers: dict[tuple[int, str | None], list[EventHandler]] = {}
    _lock = Lock()

    @staticmethod
    def _serialize_value(value: Any) -> Any:
        if isinstance(value, datetime):
            return value.isoformat()
        if isinstance(value, Decimal):
            return float(value)
        if isinstance(value, Enum):
            return value.value
        if isinstance(value, (set, tuple)):
            return list(value)
        return str(value)

    @classmethod
    def subscribe(
        cls,
        restaurant_id: int,
        entity: RealtimeEntity | str | None,
        handler: EventHandler,
    ) -> Callable[[], None]:
        """
        Registra un handler para los cambios de una entidad de un restaurante.

        entity=None listens to every entity. Returns a callable that removes
        the subscription.
        """
        key = (restaurant_id, RealtimeEntity(entity).value if entity else None)
        with cls._lock:
            cls._subscribers.setdefault(key, []).append(handler)

        def unsubscribe() -> None:
            with cls._lock:
                handlers = cls._subscribers.get(key, [])
                if handler in handlers:
                    handlers.remove(handler)
                if not handlers:
                    cls._subscribers.pop(key, None)

        return unsubscribe

    @classmethod
    def clear_subscribers(cls) -> None:
        with cls._lock:
            cls._subscribers.clear()

    @classmethod
    def _notify(cls, event: dict[str, Any]) -> None:
        restaurant_id = event["restaurant_id"]
        with cls._lock:
            handlers = list(cls._subscribers.get((restaurant_id, event["entity"]), []))
            handlers += cls._subscribers.get((restaurant_id, None), [])

        for handler in handlers:
            try:
                handler(event)
            except Exception as exc:
                logger.warning(f"Realtime handler failed for '{event['type']}': {exc}")

    @classmethod
    def _persist_event(cls, event: dict[str, Any]) -> int | None:
        from comanda.db import get_session
        from comanda.models import RealtimeEvent

        try:
            payload_json = json.dumps(event, default=cls._serialize_value)
            with get_session() as session:
                row = RealtimeEvent(
                    restaurant_id=event["restaurant_id"],
                    entity=event["entity"],
                    entity_id=event["id"],
                    event_type=event["type"],
                    payload=payload_json,
                    created_at=utcnow(),
                )
                session.add(row)
                session.flush()
                return row.id
        except Exception as e:
            logger.error(f"Error persisting realtime event '{event['type']}': {e}")
            return None

    @classmethod
    def emit_change(
        cls,
        entity: RealtimeEntity | str,
        entity_id: int | None,
        restaurant_id: int,
        action: str,
        **extra_data,
    ) -> dict[str, Any]:
        """
        Emite un evento de cambio {entity, id, restaurant_id, action}.

        Must be called after the mutation committed so listeners never see a
        state that could still roll back.
        """
        entity_value = RealtimeEntity(entity).value
        event = {
            "type": f"{entity_value}.{action}",
            "entity": entity_value,
            "id": entity_id,
            "restaurant_id": restaurant_id,
            "action": action,
            **extra_data,
        }
        event_id = cls._persist_event(event)
        if event_id is not None:
            event["event_id"] = event_id
        logger.debug(f"Emitted realtime event '{event['type']}' for entity {entity_id}")
        cls._notify(event)
        return event

    @classmethod
    def read_events_from_stream(
        cls,
        restaurant_id: int,
        after_id: int = 0,
        count: int | None = None,
        entities: list[str] | None = None,
    ) -> tuple[int, list[dict[str, Any]]]:
        """
        Retorna los eventos del restaurante posteriores a `after_id`.

        Reading does not consume: kitchen, waiter and table-map screens poll
        the same feed with their own cursors.
        """
        from comanda.db import get_session
        from comanda.models import RealtimeEvent

        limit = max(1, min(count or DEFAULT_LIMIT, HARD_LIMIT))
        with get_session() as session:
            stmt = (
                select(RealtimeEvent)
                .where(
                    RealtimeEvent.restaurant_id == restaurant_id,
                    RealtimeEvent.id > after_id,
                )
                .order_by(RealtimeEvent.id)
                .limit(limit)
            )
            if entities:
                stmt = stmt.where(RealtimeEvent.entity.in_(entities))
            rows = session.execute(stmt).scalars().all()

            if not rows:
                return after_id, []

            events: list[dict[str, Any]] = []
            for row in rows:
                payload: dict[str, Any] = {}
                if row.payload:
                    try:
                        payload = json.loads(row.payload)
                    except json.JSONDecodeError:
                        payload = {"raw": row.payload}
                events.append(
                    {
                        "id": row.id,
                        "type": row.event_type,
                        "entity": row.entity,
                        "entity_id": row.entity_id,
                        "timestamp": row.created_at.isoformat() if row.created_at else None,
                        "payload": payload,
                    }
                )

        return events[-1]["id"], events

    @classmethod
    def purge_events(cls, older_than_hours: int) -> int:
        """Elimina eventos más antiguos que la ventana de retención."""
        from comanda.db import get_session
        from comanda.models import RealtimeEvent

        cutoff = utcnow() - timedelta(hours=older_than_hours)
        with get_session() as session:
            result = session.execute(delete(RealtimeEvent).where(RealtimeEvent.created_at < cutoff))
            removed = result.rowcount or 0
        if removed:
            logger.info(f"Purged {removed} realtime events older than {older_than_hours}h")
        return removed


emit_change = RealtimeManager.emit_change
subscribe = RealtimeManager.subscribe
read_events_from_stream = RealtimeManager.read_events_from_stream
purge_events = RealtimeManager.purge_events
