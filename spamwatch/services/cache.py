from __future__ import annotations

import time
from typing import Any

from spamwatch.config import settings


class TTLCache:
    """Expiring key/value store with a size cap (oldest entries dropped first)."""

    def __init__(self, ttl_seconds: int | None = None, max_entries: int = 10_000):
        self._store: dict[str, tuple[Any, float]] = {}
        self._ttl = (
            ttl_seconds if ttl_seconds is not None else settings.token_cache_ttl_seconds
        )
        self._max_entries = max_entries

    @property
    def enabled(self) -> bool:
        return self._ttl > 0

    def get(self, key: str) -> Any | None:
        entry = self._store.get(key)
        if entry is None:
            return None
        value, expires_at = entry
        if time.monotonic() < expires_at:
            return value
        del self._store[key]
        return None

    def set(self, key: str, value: Any) -> None:
        if not self.enabled:
            return
        self._store.pop(key, None)
        if len(self._store) >= self._max_entries:
            self.purge_expired()
        while len(self._store) >= self._max_entries:
            del self._store[next(iter(self._store))]
        self._store[key] = (value, time.monotonic() + self._ttl)

    def purge_expired(self) -> int:
        now = time.monotonic()
        expired = [k for k, (_, expires_at) in self._store.items() if expires_at <= now]
        for key in expired:
            del self._store[key]
        return len(expired)

    def clear(self) -> None:
        self._store.clear()

    @property
    def size(self) -> int:
        return len(self._store)
