"""Release events and the in-process bus that fans them out.

Command handlers publish an event after a write has been persisted. The bus
delivers it to every handler subscribed to its ``event_type`` and to every
wildcard (``"*"``) subscriber whose ``can_handle`` accepts it. Delivery is
best effort: a subscriber that raises is logged and skipped, the write it
reports on has already happened.
"""

import json
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional
from uuid import uuid4

logger = logging.getLogger(__name__)

ALL_EVENTS = "*"


@dataclass(frozen=True, slots=True)
class DomainEvent:
    """Something that happened to a catalog aggregate."""

    event_id: str = field(default_factory=lambda: str(uuid4()))
    aggregate_id: str = ""
    aggregate_type: str = ""
    event_type: str = ""
    occurred_on: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    event_data: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        if not self.event_type:
            object.__setattr__(self, "event_type", self.__class__.__name__)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event_id": self.event_id,
            "aggregate_id": self.aggregate_id,
            "aggregate_type": self.aggregate_type,
            "event_type": self.event_type,
            "occurred_on": self.occurred_on.isoformat(),
            "event_data": self.event_data,
        }


class EventHandler(ABC):
    """Subscriber interface."""

    @abstractmethod
    async def handle(self, event: DomainEvent) -> None:
        pass

    @abstractmethod
    def can_handle(self, event_type: str) -> bool:
        pass


class EventLogHandler(EventHandler):
    """Writes each event it accepts to the log as a single JSON line.

    With no ``event_types`` every event is accepted.
    """

    def __init__(self, event_types: Optional[Iterable[str]] = None, level: int = logging.INFO):
        self.event_types = frozenset(event_types) if event_types is not None else None
        self.level = level

    def can_handle(self, event_type: str) -> bool:
        return self.event_types is None or event_type in self.event_types

    async def handle(self, event: DomainEvent) -> None:
        payload = json.dumps(event.to_dict(), sort_keys=True, default=str)
        logger.log(self.level, f"event {event.event_type} {payload}")


class EventBus:
    """In-process publish/subscribe for domain events."""

    def __init__(self):
        self._handlers: Dict[str, List[EventHandler]] = {}

    def subscribe(self, event_type: str, handler: EventHandler) -> None:
        """Subscribe ``handler`` to ``event_type``, or to every event with ``"*"``."""
        self._handlers.setdefault(event_type, []).append(handler)

    def _handlers_for(self, event_type: str) -> List[EventHandler]:
        exact = self._handlers.get(event_type, [])
        wildcard = [h for h in self._handlers.get(ALL_EVENTS, []) if h.can_handle(event_type)]
        return exact + wildcard

    async def publish(self, event: DomainEvent) -> None:
        for handler in self._handlers_for(event.event_type):
            try:
                await handler.handle(event)
            except Exception:
                logger.exception(
                    f"Event handler {type(handler).__name__} failed on {event.event_type}"
                )

    async def publish_batch(self, events: List[DomainEvent]) -> None:
        """Publish ``events`` one after another, in order."""
        for event in events:
            await self.publish(event)
