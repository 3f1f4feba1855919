"""Query side of CQRS pattern."""

from .base import Query, QueryHandler, QueryBus, QueryResult, CachedQueryData

__all__ = ["Query", "QueryHandler", "QueryBus", "QueryResult", "CachedQueryData"]
