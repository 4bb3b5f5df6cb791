"""Tests for the in-process cache."""

import threading
from datetime import timedelta

from hitquota.cache.memory import InMemoryCache


def test_get_missing_key(cache):
    assert cache.get("missing") is None
    assert cache.ttl("missing") is None


def test_set_then_get(cache):
    cache.set("k", 7, timedelta(minutes=5))

    assert cache.get("k") == 7
    assert cache.ttl("k") == timedelta(minutes=5)


def test_entry_expires(cache, clock):
    cache.set("k", 7, timedelta(minutes=5))

    clock.advance(minutes=5)

    assert cache.get("k") is None


def test_non_positive_ttl_removes_entry(cache):
    cache.set("k", 7, timedelta(minutes=5))
    cache.set("k", 8, timedelta(0))

    assert cache.get("k") is None


def test_increment_creates_with_ttl(cache):
    assert cache.increment("k", 1, ttl=timedelta(hours=2)) == 1
    assert cache.ttl("k") == timedelta(hours=2)


def test_increment_keeps_existing_expiry(cache, clock):
    cache.increment("k", 1, ttl=timedelta(hours=2))
    clock.advance(minutes=30)

    assert cache.increment("k", 2, ttl=timedelta(hours=5)) == 3
    assert cache.ttl("k") == timedelta(minutes=90)


def test_increment_after_expiry_starts_over(cache, clock):
    cache.set("k", 10, timedelta(minutes=1))
    clock.advance(minutes=2)

    assert cache.increment("k", 1, ttl=timedelta(hours=1)) == 1


def test_delete(cache):
    cache.set("k", 1, timedelta(minutes=1))
    cache.delete("k")
    cache.delete("k")

    assert cache.get("k") is None


def test_concurrent_increments_are_not_lost():
    cache = InMemoryCache()
    barrier = threading.Barrier(20)

    def worker():
        barrier.wait()
        for _ in range(100):
            cache.increment("k", 1, ttl=timedelta(hours=1))

    threads = [threading.Thread(target=worker) for _ in range(20)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert cache.get("k") == 2000
