"""Application layer - CQRS pattern implementation."""

from .commands import Command, CommandHandler, CommandBus, CommandResult
from .queries import Query, QueryHandler, QueryBus, QueryResult
from .events import DomainEvent, EventHandler, EventBus
from .release_service import ReleaseService

__all__ = [
    "Command",
    "CommandHandler",
    "CommandBus",
    "CommandResult",
    "Query",
    "QueryHandler",
    "QueryBus",
    "QueryResult",
    "DomainEvent",
    "EventHandler",
    "EventBus",
    "ReleaseService",
]
