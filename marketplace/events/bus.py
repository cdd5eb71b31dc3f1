from __future__ import annotations

import logging
from collections import defaultdict, deque
from functools import lru_cache
from typing import Any, Callable

from sqlalchemy import event
from sqlalchemy.orm import Session

from marketplace.events.models import DomainEvent
from marketplace.persistence.models import OutboxEventModel

logger = logging.getLogger(__name__)

_PENDING_KEY = "pending_domain_events"

Handler = Callable[[DomainEvent], None]


class EventBus:
    def __init__(self, history: int = 1000):
        self._handlers: dict[str, list[Handler]] = defaultdict(list)
        self._published: deque[DomainEvent] = deque(maxlen=history)

    def subscribe(self, event_type: str, handler: Handler) -> None:
        self._handlers[event_type].append(handler)

    def publish(self, domain_event: DomainEvent) -> None:
        self._published.append(domain_event)
        for handler in list(self._handlers.get(domain_event.event_type, [])) + list(self._handlers.get("*", [])):
            try:
                handler(domain_event)
            except Exception:
                # The transaction is already committed; a failing subscriber must not undo it.
                logger.exception("event handler failed: event_type=%s event_id=%s", domain_event.event_type, domain_event.event_id)

    def drain(self) -> list[DomainEvent]:
        items = list(self._published)
        self._published.clear()
        return items

    def reset(self) -> None:
        self._handlers.clear()
        self._published.clear()


@lru_cache(maxsize=1)
def get_event_bus() -> EventBus:
    return EventBus()


def stage_event(session: Session, event_type: str, payload: dict[str, Any]) -> DomainEvent:
    domain_event = DomainEvent(event_type=event_type, payload=payload)
    session.add(
        OutboxEventModel(
            event_id=str(domain_event.event_id),
            event_type=domain_event.event_type,
            occurred_at=domain_event.occurred_at,
            payload=domain_event.payload,
        )
    )
    session.info.setdefault(_PENDING_KEY, []).append(domain_event)
    return domain_event


@event.listens_for(Session, "after_commit")
def _publish_after_commit(session: Session) -> None:
    pending = session.info.pop(_PENDING_KEY, [])
    bus = get_event_bus()
    for domain_event in pending:
        bus.publish(domain_event)
    if pending:
        logger.info("published %s domain events", len(pending))


@event.listens_for(Session, "after_rollback")
def _discard_after_rollback(session: Session) -> None:
    session.info.pop(_PENDING_KEY, None)
