from __future__ import annotations

import threading
import time
from typing import Any, Callable, Dict, Generic, Hashable, TypeVar

V = TypeVar("V")


class TTLCache(Generic[V]):
    """Size-bounded cache with per-entry expiry.

    Writers serialize on a lock; ``get`` reads the current dict without locking.
    Expired entries are dropped on insert, never by a background timer.
    """

    def __init__(
        self,
        *,
        ttl_seconds: float,
        max_entries: int,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._ttl = max(0.0, float(ttl_seconds))
        self._max_entries = max(1, int(max_entries))
        self._clock = clock
        self._lock = threading.Lock()
        self._entries: Dict[Hashable, tuple[float, V]] = {}
        self._hits = 0
        self._misses = 0

    def get(self, key: Hashable) -> V | None:
        entry = self._entries.get(key)
        if entry is None:
            self._misses += 1
            return None
        expires_at, value = entry
        if expires_at <= self._clock():
            self._misses += 1
            return None
        self._hits += 1
        return value

    def put(self, key: Hashable, value: V) -> None:
        now = self._clock()
        with self._lock:
            entries = {k: v for k, v in self._entries.items() if v[0] > now}
            entries.pop(key, None)
            while len(entries) >= self._max_entries:
                oldest = min(entries, key=lambda k: entries[k][0])
                entries.pop(oldest)
            entries[key] = (now + self._ttl, value)
            self._entries = entries

    def clear(self) -> None:
        with self._lock:
            self._entries = {}
            self._hits = 0
            self._misses = 0

    def __len__(self) -> int:
        now = self._clock()
        return sum(1 for expires_at, _ in self._entries.values() if expires_at > now)

    def stats(self) -> Dict[str, Any]:
        total = self._hits + self._misses
        return {
            "entries": len(self),
            "hits": self._hits,
            "misses": self._misses,
            "hit_rate": round(self._hits / total, 4) if total else 0.0,
            "ttl_seconds": self._ttl,
            "max_entries": self._max_entries,
        }
