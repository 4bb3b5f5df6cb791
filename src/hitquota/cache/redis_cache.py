"""Redis-backed cache shared across processes."""

from __future__ import annotations

import math
from datetime import timedelta

import redis
import structlog

from hitquota.errors import CacheUnavailable

logger = structlog.get_logger()

# INCRBY and the conditional PEXPIRE run as one script so concurrent callers
# never observe a created-but-unexpiring key.
INCREMENT_SCRIPT = """
local value = redis.call('INCRBY', KEYS[1], ARGV[1])
if redis.call('PTTL', KEYS[1]) == -1 then
    redis.call('PEXPIRE', KEYS[1], ARGV[2])
end
return value
"""


def _to_millis(ttl: timedelta) -> int:
    return max(1, math.ceil(ttl.total_seconds() * 1000))


class RedisCache:
    def __init__(self, client: redis.Redis) -> None:
        self._client = client
        self._increment = client.register_script(INCREMENT_SCRIPT)

    @classmethod
    def from_url(cls, url: str, *, socket_timeout: float | None = None) -> RedisCache:
        client = redis.Redis.from_url(url, socket_timeout=socket_timeout, socket_connect_timeout=socket_timeout)
        return cls(client)

    def get(self, key: str) -> int | None:
        try:
            raw = self._client.get(key)
        except redis.RedisError as e:
            raise CacheUnavailable(f"GET {key} failed: {e}") from e
        return None if raw is None else int(raw)

    def set(self, key: str, value: int, ttl: timedelta) -> None:
        try:
            if ttl <= timedelta(0):
                self._client.delete(key)
                return
            self._client.set(key, value, px=_to_millis(ttl))
        except redis.RedisError as e:
            raise CacheUnavailable(f"SET {key} failed: {e}") from e

    def increment(self, key: str, by: int = 1, *, ttl: timedelta) -> int:
        try:
            return int(self._increment(keys=[key], args=[by, _to_millis(ttl)]))
        except redis.RedisError as e:
            raise CacheUnavailable(f"INCRBY {key} failed: {e}") from e

    def delete(self, key: str) -> None:
        try:
            self._client.delete(key)
        except redis.RedisError as e:
            raise CacheUnavailable(f"DEL {key} failed: {e}") from e

    def ttl(self, key: str) -> timedelta | None:
        try:
            millis = self._client.pttl(key)
        except redis.RedisError as e:
            raise CacheUnavailable(f"PTTL {key} failed: {e}") from e
        if millis is None or millis < 0:
            return None
        return timedelta(milliseconds=millis)
