"""TTL cache with an injectable clock."""

from __future__ import annotations

import threading
import time
from typing import Callable, Generic, Hashable, TypeVar

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")


class TTLCache(Generic[K, V]):
    """Thread-safe key/value cache whose entries expire ``ttl_seconds`` after ``set``.

    The clock is a zero-argument callable returning seconds (``time.monotonic``
    by default); tests pass a fake one to step time deterministically.
    """

    def __init__(self, ttl_seconds: float, clock: Callable[[], float] = time.monotonic) -> None:
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive")
        self._ttl = ttl_seconds
        self._clock = clock
        self._data: dict[K, tuple[float, V]] = {}
        self._lock = threading.Lock()

    def get(self, key: K) -> V | None:
        with self._lock:
            entry = self._data.get(key)
            if entry is None:
                return None
            expires_at, value = entry
            if self._clock() >= expires_at:
                del self._data[key]
                return None
            return value

    def set(self, key: K, value: V) -> None:
        with self._lock:
            self._data[key] = (self._clock() + self._ttl, value)

    def get_or_load(self, key: K, loader: Callable[[K], V | None]) -> V | None:
        value = self.get(key)
        if value is not None:
            return value
        value = loader(key)
        if value is not None:
            self.set(key, value)
        return value

    def invalidate(self, key: K) -> None:
        with self._lock:
            self._data.pop(key, None)

    def clear(self) -> None:
        with self._lock:
            self._data.clear()

    def __len__(self) -> int:
        now = self._clock()
        with self._lock:
            return sum(1 for expires_at, _ in self._data.values() if now < expires_at)
