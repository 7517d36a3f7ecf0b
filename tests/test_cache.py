"""
Unit tests for the TTL cache.
"""

import pytest

from grievance_sla.sla.application import TTLCache


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


class TestTTLCache:

    def test_get_missing(self):
        assert TTLCache(60).get("nope") is None

    def test_hit_before_expiry(self):
        clock = FakeClock()
        cache = TTLCache(60, clock=clock)
        cache.set("k", {"total": 1})
        clock.now += 59
        assert cache.get("k") == {"total": 1}

    def test_expires_after_ttl(self):
        clock = FakeClock()
        cache = TTLCache(60, clock=clock)
        cache.set("k", "v")
        clock.now += 60
        assert cache.get("k") is None
        assert len(cache) == 0

    def test_invalidate_key(self):
        cache = TTLCache(60)
        cache.set("a", 1)
        cache.set("b", 2)
        cache.invalidate("a")
        assert cache.get("a") is None
        assert cache.get("b") == 2

    def test_invalidate_all(self):
        cache = TTLCache(60)
        cache.set("a", 1)
        cache.set("b", 2)
        cache.invalidate()
        assert len(cache) == 0

    def test_zero_ttl_disables(self):
        cache = TTLCache(0)
        cache.set("k", "v")
        assert cache.get("k") is None

    def test_negative_ttl_rejected(self):
        with pytest.raises(ValueError):
            TTLCache(-1)
