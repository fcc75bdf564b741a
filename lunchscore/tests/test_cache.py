from __future__ import annotations

from lunchscore.context.cache import ContextCache, make_cache_key


class _Clock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


def test_cache_miss_then_hit():
    cache = ContextCache()
    assert cache.get({"user_id": 1}) is None
    cache.set({"user_id": 1}, "ctx")
    assert cache.get({"user_id": 1}) == "ctx"
    stats = cache.stats()
    assert stats["hits"] == 1
    assert stats["misses"] == 1
    assert stats["hit_rate"] == 50.0


def test_cache_key_ignores_dict_order():
    cache = ContextCache()
    cache.set({"user_id": 1, "filters": {"a": 1}}, "ctx")
    assert cache.get({"filters": {"a": 1}, "user_id": 1}) == "ctx"


def test_cache_entries_expire():
    clock = _Clock()
    cache = ContextCache(ttl=60, clock=clock)
    cache.set({"user_id": 1}, "ctx")
    clock.now += 61
    assert cache.get({"user_id": 1}) is None
    assert cache.stats()["size"] == 0


def test_clear_resets_stats():
    cache = ContextCache()
    cache.set({"user_id": 1}, "ctx")
    cache.get({"user_id": 1})
    cache.clear()
    assert cache.stats() == {"size": 0, "hits": 0, "misses": 0, "hit_rate": 0.0}


def test_set_evicts_expired_keys_never_read_again():
    clock = _Clock()
    cache = ContextCache(ttl=60, clock=clock)
    for i in range(1000):
        cache.set({"user_id": 1, "position": {"latitude": 37.0 + i * 1e-6}}, "ctx")
    assert cache.stats()["size"] == 1000

    clock.now += 61
    cache.set({"user_id": 2}, "ctx")
    assert cache.stats()["size"] == 1
    assert cache.get({"user_id": 2}) == "ctx"


def test_make_cache_key_is_order_independent():
    assert make_cache_key({"a": 1, "b": [1, 2]}) == make_cache_key({"b": [1, 2], "a": 1})
    assert make_cache_key({"a": 1}) != make_cache_key({"a": 2})
