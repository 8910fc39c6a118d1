from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from threading import Lock
from time import monotonic
from typing import Generic, TypeVar

T = TypeVar("T")


@dataclass(frozen=True)
class CacheEntry(Generic[T]):
    value: T
    inserted_at: float
    ttl_seconds: float

    def is_live(self, now: float) -> bool:
        return now - self.inserted_at < self.ttl_seconds


class TtlMemoryCache(Generic[T]):
    """
    Process-local key -> (value, insertion time, TTL) store.

    Entries are replaced whole under a lock, so readers never observe a partially
    written entry. Expired entries are treated as absent and evicted on read; writes
    also sweep every expired entry at most once per TTL interval, so keys that are
    never read again do not accumulate. Concurrent misses for the same key are not
    coalesced; the last `set` wins.
    """

    def __init__(
        self,
        *,
        default_ttl_seconds: float,
        clock: Callable[[], float] = monotonic,
    ) -> None:
        self._ttl_seconds = max(0.0, default_ttl_seconds)
        self._clock = clock
        self._lock = Lock()
        self._entries: dict[str, CacheEntry[T]] = {}
        self._last_sweep = clock()

    def get(self, key: str) -> T | None:
        found, value = self.lookup(key)
        return value if found else None

    def lookup(self, key: str) -> tuple[bool, T | None]:
        now = self._clock()
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return False, None
            if not entry.is_live(now):
                del self._entries[key]
                return False, None
            return True, entry.value

    def set(self, key: str, value: T) -> None:
        now = self._clock()
        entry = CacheEntry(value=value, inserted_at=now, ttl_seconds=self._ttl_seconds)
        with self._lock:
            if now - self._last_sweep >= self._ttl_seconds:
                self._sweep_expired(now)
            self._entries[key] = entry

    def _sweep_expired(self, now: float) -> None:
        # Caller holds the lock.
        expired = [key for key, entry in self._entries.items() if not entry.is_live(now)]
        for key in expired:
            del self._entries[key]
        self._last_sweep = now

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
