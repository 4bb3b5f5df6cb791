"""Per-user monthly hit counter backed by a datastore and a shared cache.

The datastore is authoritative. The cache holds one aggregate per
``(user_id, period_start)`` so a count from an earlier period can never be
read after the user's local month has turned over.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import UTC, datetime, timedelta

import structlog

from hitquota.cache.base import Cache
from hitquota.config import settings
from hitquota.datastore import Datastore
from hitquota.errors import CacheUnavailable, DatastoreError, RecordFailure
from hitquota.periods import QuotaPeriod, period_containing

logger = structlog.get_logger()


def _utcnow() -> datetime:
    return datetime.now(UTC)


class QuotaCounter:
    def __init__(
        self,
        datastore: Datastore,
        cache: Cache,
        *,
        now_fn: Callable[[], datetime] = _utcnow,
        key_prefix: str | None = None,
        bound_upper: bool | None = None,
        populate_retries: int | None = None,
    ) -> None:
        self.datastore = datastore
        self.cache = cache
        self._now = now_fn
        self.key_prefix = settings.cache_key_prefix if key_prefix is None else key_prefix
        self.bound_upper = settings.count_upper_bound if bound_upper is None else bound_upper
        self.populate_retries = settings.cache_populate_retries if populate_retries is None else populate_retries

    def cache_key(self, user_id: str, period: QuotaPeriod) -> str:
        """Canonical key shared by the record and count paths."""
        return f"{self.key_prefix}:user/{user_id}/hits_count/{period.start_utc.isoformat()}"

    def current_period(self, timezone: str) -> QuotaPeriod:
        return period_containing(self._now(), timezone)

    def record_hit(self, user_id: str, timestamp: datetime | None = None, *, timezone: str) -> int | None:
        """Durably record a hit, then bump the cached count for its period.

        The period is chosen from ``timestamp`` itself, so hits from writers
        with drifting clocks land where their timestamp says. Returns the
        cached count after the increment, or None when no cached value is
        known.

        Raises:
            RecordFailure: the hit was not written; the cache is untouched.
        """
        if timestamp is None:
            timestamp = self._now()
        period = period_containing(timestamp, timezone)

        try:
            self.datastore.append_hit(user_id, timestamp)
        except RecordFailure as e:
            logger.error("Hit not recorded", user_id=user_id, error=str(e))
            raise

        ttl = period.remaining(self._now())
        if ttl <= timedelta(0):
            logger.debug("Hit belongs to a closed period, skipping cache", user_id=user_id, timestamp=timestamp)
            return None

        key = self.cache_key(user_id, period)
        try:
            value = self.cache.increment(key, 1, ttl=ttl)
            if value == 1:
                return self._reconcile_new_entry(user_id, period, key)
            return value
        except CacheUnavailable as e:
            logger.warning("Cache increment failed after durable write", user_id=user_id, key=key, error=str(e))
            self._invalidate(key)
            return None

    def count_hits(self, user_id: str, timezone: str) -> int:
        """Hits recorded by ``user_id`` in the current period of ``timezone``."""
        now = self._now()
        period = period_containing(now, timezone)
        key = self.cache_key(user_id, period)

        try:
            cached = self.cache.get(key)
        except CacheUnavailable as e:
            logger.warning("Cache unavailable, counting from datastore", user_id=user_id, error=str(e))
            return self._count_authoritative(user_id, period)

        if cached is not None:
            return cached

        count = self._count_authoritative(user_id, period)
        self._populate(key, count, period.remaining(now))
        return count

    def _count_authoritative(self, user_id: str, period: QuotaPeriod) -> int:
        upper = period.end if self.bound_upper else None
        return self.datastore.count_hits_since(user_id, period.start, upper)

    def _populate(self, key: str, count: int, ttl: timedelta) -> None:
        # Population is idempotent, so it is the only cache write retried.
        for attempt in range(self.populate_retries + 1):
            try:
                self.cache.set(key, count, ttl)
                return
            except CacheUnavailable as e:
                logger.warning("Cache population failed", key=key, attempt=attempt + 1, error=str(e))
        logger.error("Giving up on cache population", key=key, retries=self.populate_retries)

    def _reconcile_new_entry(self, user_id: str, period: QuotaPeriod, key: str) -> int | None:
        """Keep a just-created entry only if it matches the datastore.

        An entry created by an increment holds 1. If the period already had
        other hits (the entry was evicted or never populated) that value is
        an undercount, so the entry is dropped and the next read recomputes.
        A populated 0 bumped to 1 looks the same and is verified the same way.
        """
        try:
            count = self._count_authoritative(user_id, period)
        except DatastoreError as e:
            logger.warning("Could not verify new cache entry", user_id=user_id, key=key, error=str(e))
            self._invalidate(key)
            return None
        if count == 1:
            return 1
        logger.info("Dropping reseeded cache entry", user_id=user_id, key=key, datastore_count=count)
        self._invalidate(key)
        return None

    def _invalidate(self, key: str) -> None:
        try:
            self.cache.delete(key)
        except CacheUnavailable as e:
            logger.error("Could not invalidate cache entry", key=key, error=str(e))
