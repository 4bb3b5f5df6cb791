"""Cache backends for per-period hit aggregates."""

from __future__ import annotations

import structlog

from hitquota.cache.base import Cache
from hitquota.cache.memory import InMemoryCache
from hitquota.cache.redis_cache import RedisCache
from hitquota.config import Settings, settings

logger = structlog.get_logger()


def build_cache(config: Settings = settings) -> Cache:
    """Redis when configured, otherwise a per-process in-memory cache."""
    if config.redis_url:
        return RedisCache.from_url(
            config.redis_url.get_secret_value(),
            socket_timeout=config.redis_socket_timeout_seconds,
        )
    logger.warning("No redis_url configured, using in-process cache (not shared across workers)")
    return InMemoryCache()


__all__ = ["Cache", "InMemoryCache", "RedisCache", "build_cache"]
