from __future__ import annotations

import os
import threading
from typing import Any

from cachetools import TTLCache


class _InMemoryTTLCache:
    """Process-local cache for RBAC rules and the role index."""

    def __init__(self, ttl: int, max_items: int):
        self._cache = TTLCache(maxsize=max(100, max_items), ttl=max(1, min(3600, ttl)))
        self._lock = threading.RLock()
        self._hits = 0
        self._misses = 0

    def get(self, key: str) -> Any:
        with self._lock:
            val = self._cache.get(key)
            if val is None:
                self._misses += 1
            else:
                self._hits += 1
            return val

    def set(self, key: str, value: Any) -> None:
        with self._lock:
            self._cache[key] = value

    def clear(self) -> None:
        with self._lock:
            self._cache.clear()
            self._hits = 0
            self._misses = 0

    def stats(self) -> dict[str, Any]:
        with self._lock:
            total = self._hits + self._misses
            return {
                "size": len(self._cache),
                "maxsize": self._cache.maxsize,
                "hits": self._hits,
                "misses": self._misses,
                "hit_rate": round((self._hits / total * 100) if total else 0.0, 2),
            }


_cache = _InMemoryTTLCache(
    ttl=int(os.getenv("CACHE_TTL_SECONDS", "60") or "60"),
    max_items=int(os.getenv("CACHE_MAX_ITEMS", "10000") or "10000"),
)


def cache_get(key: str) -> Any:
    return _cache.get(key)


def cache_set(key: str, value: Any) -> None:
    _cache.set(key, value)


def cache_clear() -> None:
    _cache.clear()


def cache_stats() -> dict[str, Any]:
    return _cache.stats()
