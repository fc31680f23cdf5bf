"""Tests for the expiring in-memory cache."""

from diary.cache import ExpiringCache


class FakeClock:
    """Manually advanced clock for deterministic expiry tests."""

    def __init__(self):
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


def test_value_available_until_expiry():
    """Entries are returned while fresh and dropped once their TTL passes."""
    clock = FakeClock()
    cache = ExpiringCache(ttl_seconds=30, clock=clock)
    cache.set("crumb", "abc")

    clock.now = 29.9
    assert cache.get("crumb") == "abc"

    clock.now = 30.0
    assert cache.get("crumb") is None
    assert len(cache) == 0


def test_set_refreshes_expiry():
    """Setting a key again restarts its lifetime."""
    clock = FakeClock()
    cache = ExpiringCache(ttl_seconds=10, clock=clock)
    cache.set("k", 1)
    clock.now = 8
    cache.set("k", 2)
    clock.now = 15
    assert cache.get("k") == 2


def test_separate_caches_do_not_share_entries():
    """Each cache instance has its own entries."""
    a = ExpiringCache()
    b = ExpiringCache()
    a.set("k", 1)
    assert b.get("k") is None


def test_clear():
    cache = ExpiringCache()
    cache.set("a", 1)
    cache.set("b", 2)
    cache.clear()
    assert cache.get("a") is None
    assert len(cache) == 0
