"""Domain events for the application layer."""

from .base import ALL_EVENTS, DomainEvent, EventBus, EventHandler, EventLogHandler

__all__ = ["ALL_EVENTS", "DomainEvent", "EventBus", "EventHandler", "EventLogHandler"]
