"""Cache interface consumed by the hit counter."""

from __future__ import annotations

from datetime import timedelta
from typing import Protocol


class Cache(Protocol):
    """Shared store for per-period aggregates.

    Implementations raise ``CacheUnavailable`` when the backend cannot be
    reached. Expired entries must read as absent.
    """

    def get(self, key: str) -> int | None: ...

    def set(self, key: str, value: int, ttl: timedelta) -> None: ...

    def increment(self, key: str, by: int = 1, *, ttl: timedelta) -> int:
        """Atomically add ``by`` and return the new value.

        An absent key is created holding ``by`` and expiring after ``ttl``;
        an existing key keeps its expiry.
        """
        ...

    def delete(self, key: str) -> None: ...

    def ttl(self, key: str) -> timedelta | None: ...
