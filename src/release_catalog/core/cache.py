"""In-memory TTL cache for expensive catalog reads.

Entries expire independently. ``get`` validates expiry on every read, so the
background sweep only bounds memory held by keys that are written once and
never read again.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_TTL_SECONDS = 3600
DEFAULT_SWEEP_INTERVAL_SECONDS = 300


@dataclass
class CacheEntry:
    """Cache entry with expiration support."""

    data: Any
    expires_at: float

    def is_expired(self, now: float) -> bool:
        """Check if the cache entry has expired."""
        return now > self.expires_at


@dataclass(frozen=True)
class CacheStats:
    """Diagnostic snapshot of the cache contents."""

    size: int
    keys: List[str]


class TTLCache:
    """Thread-safe key-value store with per-entry TTL and a periodic sweep.

    The sweep runs on a daemon thread between ``start()`` and ``stop()``.
    A stopped cache still expires entries lazily on ``get``.
    """

    def __init__(
        self,
        default_ttl_seconds: float = DEFAULT_TTL_SECONDS,
        sweep_interval_seconds: float = DEFAULT_SWEEP_INTERVAL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.default_ttl_seconds = default_ttl_seconds
        self.sweep_interval_seconds = sweep_interval_seconds
        self._clock = clock
        self._entries: Dict[str, CacheEntry] = {}
        self._lock = threading.Lock()
        self._stop_event = threading.Event()
        self._sweeper: Optional[threading.Thread] = None

    def get(self, key: str) -> Optional[Any]:
        """Get a cached value, or None if it is missing or expired.

        An expired entry is removed as a side effect.
        """
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            if entry.is_expired(self._clock()):
                del self._entries[key]
                return None
            return entry.data

    def set(self, key: str, value: Any, ttl_seconds: Optional[float] = None) -> None:
        """Store a value, replacing any existing entry for the key."""
        if ttl_seconds is None:
            ttl_seconds = self.default_ttl_seconds
        with self._lock:
            self._entries[key] = CacheEntry(data=value, expires_at=self._clock() + ttl_seconds)

    def delete(self, key: str) -> None:
        with self._lock:
            self._entries.pop(key, None)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def invalidate(self, pattern: Optional[str] = None) -> int:
        """Remove entries whose key contains ``pattern``, or all entries.

        Returns the number of entries removed.
        """
        with self._lock:
            if pattern is None:
                removed = len(self._entries)
                self._entries.clear()
                return removed
            keys_to_remove = [k for k in self._entries if pattern in k]
            for key in keys_to_remove:
                del self._entries[key]
            return len(keys_to_remove)

    def sweep(self) -> int:
        """Remove every expired entry. Returns the number removed."""
        with self._lock:
            now = self._clock()
            expired = [k for k, entry in self._entries.items() if entry.is_expired(now)]
            for key in expired:
                del self._entries[key]
        if expired:
            logger.debug(f"Swept {len(expired)} expired cache entries")
        return len(expired)

    def get_stats(self) -> CacheStats:
        with self._lock:
            return CacheStats(size=len(self._entries), keys=list(self._entries))

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    # Sweep lifecycle

    @property
    def is_running(self) -> bool:
        return self._sweeper is not None and self._sweeper.is_alive()

    def start(self) -> None:
        """Start the background sweep. Calling it twice is a no-op.

        A sweeper left running by a timed-out ``stop()`` is joined first, so
        at most one sweep thread ever exists.
        """
        if self._sweeper is not None and self._sweeper.is_alive():
            if not self._stop_event.is_set():
                return
            self._sweeper.join()
        self._stop_event.clear()
        self._sweeper = threading.Thread(
            target=self._run_sweeper,
            name="ttl-cache-sweeper",
            daemon=True,
        )
        self._sweeper.start()

    def stop(self, timeout: Optional[float] = None) -> None:
        """Stop the background sweep and wait for the thread to exit.

        If the thread outlives ``timeout`` the reference is kept and
        ``is_running`` stays true until it finishes.
        """
        self._stop_event.set()
        if self._sweeper is not None:
            self._sweeper.join(timeout)
            if not self._sweeper.is_alive():
                self._sweeper = None

    def _run_sweeper(self) -> None:
        while not self._stop_event.wait(self.sweep_interval_seconds):
            self.sweep()

    def __enter__(self) -> TTLCache:
        self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.stop()


async def with_cache(
    cache: TTLCache,
    key: str,
    producer: Callable[[], Awaitable[T]],
    ttl_seconds: float = DEFAULT_TTL_SECONDS,
) -> T:
    """Return the cached value for ``key``, computing and storing it on a miss.

    The producer is awaited at most once per call and never on a hit. If it
    raises, nothing is cached. Concurrent misses on the same key each run the
    producer; the last one to finish wins. A TTL of zero or less bypasses the
    cache entirely.
    """
    if ttl_seconds <= 0:
        return await producer()

    cached = cache.get(key)
    if cached is not None:
        return cached

    result = await producer()
    cache.set(key, result, ttl_seconds)
    return result
