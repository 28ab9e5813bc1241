"""
cache_store.py
--------------
A tiny, thread-safe TTL cache for normalized upstream records.

Features:
- Per-entry creation timestamp (epoch milliseconds)
- Freshness checked at read time against the cache's TTL
- Stale entries are reported as misses but kept until overwritten
- Hit/miss counters for the admin stats endpoint

One instance per record shape (detail records, title cards) so the TTL of
one never interferes with the other. There is no size bound: the key set is
the catalog's working set.
"""
from __future__ import annotations
from dataclasses import dataclass
from threading import RLock
from time import time
from typing import Any, Callable, Dict, Optional


def now_ms() -> int:
    return int(time() * 1000)


@dataclass(frozen=True)
class CacheEntry:
    value: Any
    created_at_ms: int

    def is_fresh(self, now: int, ttl_ms: int) -> bool:
        return now - self.created_at_ms < ttl_ms


class MetadataCache:
    """
    A minimal key -> CacheEntry store with TTL.
    - get(): returns the fresh CacheEntry or None (stale entries stay in place)
    - put(): stores a new entry stamped with the current clock
    - stats(): hit/miss counters

    Entries are replaced wholesale under a single RLock; FastAPI runs sync
    handlers on a thread pool.
    """
    def __init__(self, name: str, ttl_ms: int, clock: Callable[[], int] = now_ms) -> None:
        self.name = name
        self.ttl_ms = ttl_ms
        self._clock = clock
        self._store: Dict[str, CacheEntry] = {}
        self._lock = RLock()
        self._hits = 0
        self._misses = 0

    def get(self, key: str) -> Optional[CacheEntry]:
        with self._lock:
            entry = self._store.get(key)
            if entry is None or not entry.is_fresh(self._clock(), self.ttl_ms):
                self._misses += 1
                return None
            self._hits += 1
            return entry

    def put(self, key: str, value: Any) -> CacheEntry:
        entry = CacheEntry(value=value, created_at_ms=self._clock())
        with self._lock:
            self._store[key] = entry
        return entry

    def stats(self) -> dict:
        with self._lock:
            return {
                "name": self.name,
                "size": len(self._store),
                "ttl_ms": self.ttl_ms,
                "hits": self._hits,
                "misses": self._misses,
            }

    def clear(self) -> None:
        with self._lock:
            self._store.clear()
            self._hits = self._misses = 0
