"""Read side of the application layer.

Queries are immutable read requests. When the bus has a cache and the
handler names a key for a query, a successful answer is stored for the
query's ``cache_ttl_seconds`` and served from the cache until it expires or
a write invalidates the key. A TTL of zero or less skips the cache both
ways. Failures are never cached.
"""

import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Generic, List, Optional, TypeVar
from uuid import uuid4

from ...core.cache import TTLCache

Q = TypeVar("Q", bound="Query")
R = TypeVar("R")


@dataclass(frozen=True, slots=True)
class Query:
    query_id: str = field(default_factory=lambda: str(uuid4()))
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    cache_ttl_seconds: float = 300


class QueryHandler(ABC, Generic[Q, R]):
    @abstractmethod
    async def handle(self, query: Q) -> R:
        pass

    @abstractmethod
    def can_handle(self, query_type: type) -> bool:
        pass

    def get_cache_key(self, query: Q) -> Optional[str]:
        """Cache key for ``query``, or None to always ask the handler."""
        return None


@dataclass(frozen=True, slots=True)
class QueryResult(Generic[R]):
    data: Optional[R] = None
    success: bool = True
    query_id: str = ""
    errors: List[str] = field(default_factory=list)
    from_cache: bool = False
    execution_time_ms: Optional[float] = None
    cached_at: Optional[datetime] = None


@dataclass(frozen=True, slots=True)
class CachedQueryData:
    data: Any
    cached_at: datetime


class QueryBus:
    """Routes queries to handlers, reading through an optional TTLCache."""

    def __init__(self, cache: Optional[TTLCache] = None):
        self._handlers: Dict[type, QueryHandler] = {}
        self.cache = cache

    def register(self, query_type: type, handler: QueryHandler) -> None:
        if not handler.can_handle(query_type):
            raise ValueError(f"{type(handler).__name__} cannot handle {query_type.__name__}")
        self._handlers[query_type] = handler

    def _cache_key(self, handler: QueryHandler, query: Query) -> Optional[str]:
        if self.cache is None or query.cache_ttl_seconds <= 0:
            return None
        return handler.get_cache_key(query)

    async def dispatch(self, query: Query) -> QueryResult:
        started = time.perf_counter()

        def elapsed() -> float:
            return (time.perf_counter() - started) * 1000

        handler = self._handlers.get(type(query))
        if handler is None:
            return QueryResult(
                success=False,
                query_id=query.query_id,
                errors=[f"No handler registered for query type: {type(query).__name__}"],
            )

        key = self._cache_key(handler, query)
        if key is not None:
            cached = self.cache.get(key)
            if cached is not None:
                return QueryResult(
                    data=cached.data,
                    query_id=query.query_id,
                    from_cache=True,
                    cached_at=cached.cached_at,
                    execution_time_ms=elapsed(),
                )

        try:
            data = await handler.handle(query)
        except Exception as e:
            return QueryResult(
                success=False,
                query_id=query.query_id,
                errors=[getattr(e, "user_message", None) or str(e)],
                execution_time_ms=elapsed(),
            )

        if key is not None:
            self.cache.set(
                key,
                CachedQueryData(data=data, cached_at=datetime.now(timezone.utc)),
                ttl_seconds=query.cache_ttl_seconds,
            )
        return QueryResult(data=data, query_id=query.query_id, execution_time_ms=elapsed())
