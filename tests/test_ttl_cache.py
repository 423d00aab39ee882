# tests/test_ttl_cache.py
import pytest

from taskmarket.core.cache import TTLCache


class FakeClock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


def test_entries_expire_after_ttl():
    clock = FakeClock()
    cache: TTLCache[str, str] = TTLCache(10.0, clock=clock)
    cache.set("u1", "Sam")

    clock.now += 9.99
    assert cache.get("u1") == "Sam"
    clock.now += 0.01
    assert cache.get("u1") is None
    assert len(cache) == 0


def test_get_or_load_calls_loader_once_per_ttl():
    clock = FakeClock()
    cache: TTLCache[str, str] = TTLCache(5.0, clock=clock)
    calls = []

    def loader(key):
        calls.append(key)
        return key.upper()

    assert cache.get_or_load("a", loader) == "A"
    assert cache.get_or_load("a", loader) == "A"
    clock.now += 5
    assert cache.get_or_load("a", loader) == "A"
    assert calls == ["a", "a"]


def test_missing_values_are_not_cached():
    cache: TTLCache[str, str] = TTLCache(5.0, clock=FakeClock())
    calls = []

    def loader(key):
        calls.append(key)
        return None

    assert cache.get_or_load("ghost", loader) is None
    assert cache.get_or_load("ghost", loader) is None
    assert len(calls) == 2


def test_invalidate_and_clear():
    cache: TTLCache[str, int] = TTLCache(5.0, clock=FakeClock())
    cache.set("a", 1)
    cache.set("b", 2)
    cache.invalidate("a")
    assert cache.get("a") is None and cache.get("b") == 2
    cache.clear()
    assert len(cache) == 0


def test_ttl_must_be_positive():
    with pytest.raises(ValueError):
        TTLCache(0)
