"""Read-through cache for query results with prefix invalidation."""
import logging
import threading
import time
from typing import Any, Callable, Dict, Hashable, Optional, Tuple

logger = logging.getLogger(__name__)

CacheKey = Tuple[Hashable, ...]


class QueryCache:
    """Caches query results under tuple keys such as ``("asset", id)``.

    Mutations call :meth:`invalidate` with a key prefix; ``("assets",)``
    drops every cached asset list regardless of the filters it was
    fetched with.
    """

    def __init__(self, ttl_seconds: Optional[float] = None, clock: Callable[[], float] = time.monotonic):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._lock = threading.Lock()
        self._entries: Dict[CacheKey, Tuple[float, Any]] = {}

    def _is_fresh(self, stored_at: float) -> bool:
        if self.ttl_seconds is None:
            return True
        return self._clock() - stored_at < self.ttl_seconds

    def get(self, key: CacheKey) -> Optional[Any]:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            stored_at, value = entry
            if not self._is_fresh(stored_at):
                del self._entries[key]
                return None
            return value

    def __contains__(self, key: CacheKey) -> bool:
        return self.get(key) is not None

    def set(self, key: CacheKey, value: Any) -> None:
        with self._lock:
            self._entries[key] = (self._clock(), value)

    def get_or_fetch(self, key: CacheKey, fetch: Callable[[], Any]) -> Any:
        """Return the cached value for ``key`` or fetch and store it.

        Failed fetches propagate and leave nothing behind.
        """
        value = self.get(key)
        if value is not None:
            return value
        value = fetch()
        if value is not None:
            self.set(key, value)
        return value

    def invalidate(self, prefix: CacheKey) -> int:
        """Drop every entry whose key starts with ``prefix``."""
        size = len(prefix)
        with self._lock:
            stale = [key for key in self._entries if key[:size] == prefix]
            for key in stale:
                del self._entries[key]
        if stale:
            logger.debug(f"Invalidated {len(stale)} cache entries under {prefix}")
        return len(stale)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def keys(self) -> list:
        with self._lock:
            return list(self._entries)
