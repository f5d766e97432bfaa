"""
Time-bounded result cache shared by the scorer and the assessor.

An entry is served only while now - cached_at < ttl. Expired entries are
treated exactly like missing ones and dropped on read; there is no
background sweep and no capacity bound.
"""
from __future__ import annotations

import time
from typing import Callable, Generic, Optional, TypeVar

T = TypeVar("T")


class ResultCache(Generic[T]):
    def __init__(self, ttl_seconds: float, clock: Callable[[], float] = time.monotonic):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: dict[str, tuple[T, float]] = {}

    def get(self, key: str) -> Optional[T]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        value, cached_at = entry
        if self._clock() - cached_at >= self.ttl_seconds:
            self._entries.pop(key, None)
            return None
        return value

    def put(self, key: str, value: T) -> None:
        self._entries[key] = (value, self._clock())

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)
