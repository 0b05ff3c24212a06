from __future__ import annotations

import time
from typing import Any

from .config import RANKINGS_CACHE_TTL_SECONDS


class TTLCache:
    """A simple in-memory TTL cache.

    Every operation is a plain dict access with no ``await`` in between, so
    readers on the event loop never wait on a lock held by a writer.

    ``invalidate_prefix`` bumps a per-prefix generation. A reader that loads
    a value across an ``await`` takes :meth:`generation` first and passes it
    to :meth:`set`; if an invalidation happened in between, the value is
    dropped instead of cached.
    """

    def __init__(self, ttl_seconds: float = 300.0) -> None:
        self._ttl = ttl_seconds
        self._store: dict[Any, tuple[Any, float]] = {}
        self._generations: dict[Any, int] = {}

    def get(self, key: Any) -> Any | None:
        entry = self._store.get(key)
        if not entry:
            return None
        value, expires_at = entry
        if expires_at <= time.monotonic():
            self._store.pop(key, None)
            return None
        return value

    def generation(self, prefix: Any) -> int:
        return self._generations.get(prefix, 0)

    def set(
        self,
        key: Any,
        value: Any,
        ttl_seconds: float | None = None,
        *,
        generation: int | None = None,
    ) -> bool:
        """Store ``value``; return ``False`` if ``generation`` is stale."""
        if (
            generation is not None
            and isinstance(key, tuple)
            and key
            and self.generation(key[0]) != generation
        ):
            return False
        ttl = self._ttl if ttl_seconds is None else ttl_seconds
        if ttl <= 0:
            self._store.pop(key, None)
            return False
        self._store[key] = (value, time.monotonic() + ttl)
        return True

    def invalidate(self, key: Any) -> None:
        self._store.pop(key, None)

    def invalidate_prefix(self, prefix: Any) -> None:
        """Drop every tuple key whose first element equals ``prefix``."""
        self._generations[prefix] = self.generation(prefix) + 1
        keys_to_remove = [
            key
            for key in self._store
            if isinstance(key, tuple) and key and key[0] == prefix
        ]
        for key in keys_to_remove:
            self._store.pop(key, None)

    def clear(self) -> None:
        self._store.clear()
        self._generations.clear()


# keyed by (sport_type, ranking_type, category, limit)
latest_rankings_cache = TTLCache(ttl_seconds=RANKINGS_CACHE_TTL_SECONDS)
