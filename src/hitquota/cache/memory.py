"""In-process cache for tests and single-process use."""

from __future__ import annotations

import threading
from collections.abc import Callable
from datetime import UTC, datetime, timedelta


def _utcnow() -> datetime:
    return datetime.now(UTC)


class InMemoryCache:
    """Lock-guarded dict of ``key -> (value, expires_at)``.

    Atomic within one process only; counters in separate processes need a
    shared backend such as ``RedisCache``.
    """

    def __init__(self, *, now_fn: Callable[[], datetime] = _utcnow) -> None:
        self._now = now_fn
        self._entries: dict[str, tuple[int, datetime]] = {}
        self._lock = threading.Lock()

    def _live(self, key: str) -> tuple[int, datetime] | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if entry[1] <= self._now():
            del self._entries[key]
            return None
        return entry

    def get(self, key: str) -> int | None:
        with self._lock:
            entry = self._live(key)
            return entry[0] if entry else None

    def set(self, key: str, value: int, ttl: timedelta) -> None:
        with self._lock:
            if ttl <= timedelta(0):
                self._entries.pop(key, None)
                return
            self._entries[key] = (value, self._now() + ttl)

    def increment(self, key: str, by: int = 1, *, ttl: timedelta) -> int:
        with self._lock:
            entry = self._live(key)
            if entry is None:
                value, expires_at = by, self._now() + ttl
            else:
                value, expires_at = entry[0] + by, entry[1]
            self._entries[key] = (value, expires_at)
            return value

    def delete(self, key: str) -> None:
        with self._lock:
            self._entries.pop(key, None)

    def ttl(self, key: str) -> timedelta | None:
        with self._lock:
            entry = self._live(key)
            return entry[1] - self._now() if entry else None

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
