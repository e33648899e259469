"""In-process domain events.

Each published event is stored as an ``events`` row and then handed to
the handlers subscribed to its type and to ``"*"``. Services publish after their
own commit, so a handler never sees a change that could still roll back.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from collections.abc import Callable
from typing import Any

from sqlmodel import Session

from cmms.domain.models import EventEnvelope, EventRecord
from cmms.infra.db import get_engine

logger = logging.getLogger(__name__)

EventHandler = Callable[[EventEnvelope], None]
WILDCARD = "*"


def _to_record(event: EventEnvelope) -> EventRecord:
    return EventRecord(**event.model_dump())


class EventBus:
    def __init__(self) -> None:
        self._handlers: dict[str, list[EventHandler]] = defaultdict(list)

    def subscribe(self, event_type: str, handler: EventHandler) -> None:
        registered = self._handlers[event_type]
        if handler not in registered:
            registered.append(handler)

    def publish(self, event: EventEnvelope) -> None:
        """Commit ``event`` to the ``events`` table, then notify handlers."""
        with Session(get_engine()) as session:
            session.add(_to_record(event))
            session.commit()
        self._dispatch(event)

    def _dispatch(self, event: EventEnvelope) -> None:
        for handler in (*self._handlers.get(event.event_type, ()), *self._handlers.get(WILDCARD, ())):
            try:
                handler(event)
            except Exception:
                logger.exception("handler %r failed for %s", handler, event.event_type)

    def publish_dict(
        self,
        event_type: str,
        payload: dict[str, Any],
        *,
        actor_id: int | None = None,
    ) -> EventEnvelope:
        event = EventEnvelope(event_type=event_type, actor_id=actor_id, payload=payload)
        self.publish(event)
        return event


event_bus = EventBus()
