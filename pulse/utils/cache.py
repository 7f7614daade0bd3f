"""Simple in-memory TTL cache for report listings and analytics queries.

Usage:
    from pulse.utils.cache import report_cache

    reports = await report_cache.wrap(
        f"pulse:reports:{user_id}:all:all", 60, lambda: load_reports(user_id)
    )
    report_cache.delete_pattern(f"pulse:reports:{user_id}:*")

Expiry is lazy: an entry is only dropped when it is read after its TTL, or
when the store is full and room has to be made for a new entry.
"""
import re
import threading
import time
from typing import Any, Awaitable, Callable

from pulse.config import get_settings

_MISS = object()


def _pattern_to_regex(pattern: str) -> re.Pattern:
    """Compile a glob-style key pattern where only '*' is special."""
    return re.compile("^" + ".*".join(re.escape(part) for part in pattern.split("*")) + "$")


class TTLCache:
    """Thread-safe in-memory cache with TTL expiry and max-entry limit."""

    def __init__(self, max_entries: int = 500):
        self._store: dict[str, tuple[float, Any]] = {}
        self._lock = threading.Lock()
        self._max_entries = max_entries

    def get(self, key: str, default: Any = None) -> Any:
        with self._lock:
            entry = self._store.get(key)
            if entry is None:
                return default
            expires_at, value = entry
            if time.time() > expires_at:
                del self._store[key]
                return default
            return value

    def set(self, key: str, value: Any, ttl: int = 300) -> None:
        with self._lock:
            # Evict expired entries first to stay under limit
            if key not in self._store and len(self._store) >= self._max_entries:
                now = time.time()
                expired = [k for k, (exp, _) in self._store.items() if now > exp]
                for k in expired:
                    del self._store[k]
            # If still at limit, evict the entry closest to expiry
            if key not in self._store and len(self._store) >= self._max_entries:
                oldest_key = min(self._store, key=lambda k: self._store[k][0])
                del self._store[oldest_key]
            self._store[key] = (time.time() + ttl, value)

    async def wrap(self, key: str, ttl: int, fn: Callable[[], Awaitable[Any]]) -> Any:
        """Read-through: return the cached value or compute, store and return it."""
        cached = self.get(key, _MISS)
        if cached is not _MISS:
            return cached
        value = await fn()
        self.set(key, value, ttl)
        return value

    def delete_pattern(self, pattern: str) -> int:
        """Remove all keys matching a '*' wildcard pattern. Returns count removed."""
        regex = _pattern_to_regex(pattern)
        with self._lock:
            keys = [k for k in self._store if regex.match(k)]
            for k in keys:
                del self._store[k]
            return len(keys)

    def clear(self) -> None:
        with self._lock:
            self._store.clear()

    def __len__(self) -> int:
        return len(self._store)


_settings = get_settings()

report_cache = TTLCache(max_entries=_settings.cache_max_entries)
analytics_cache = TTLCache(max_entries=_settings.cache_max_entries)
