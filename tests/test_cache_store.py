from cache_keys import DETAIL_TTL_MS
from cache_store import CacheEntry, MetadataCache


def test_entry_fresh_until_ttl_boundary(clock):
    cache = MetadataCache("detail", DETAIL_TTL_MS, clock=clock)
    written_at = clock.now
    cache.put("k", {"title": "Matrix"})

    clock.now = written_at + DETAIL_TTL_MS - 1
    entry = cache.get("k")
    assert entry is not None
    assert entry.value == {"title": "Matrix"}
    assert entry.created_at_ms == written_at

    clock.now = written_at + DETAIL_TTL_MS
    assert cache.get("k") is None


def test_stale_entry_kept_until_overwritten(clock):
    cache = MetadataCache("card", 1000, clock=clock)
    cache.put("k", "old")
    clock.advance(5000)

    assert cache.get("k") is None
    assert cache.stats()["size"] == 1

    cache.put("k", "new")
    assert cache.get("k").value == "new"


def test_put_replaces_whole_entry(clock):
    cache = MetadataCache("detail", 1000, clock=clock)
    first = cache.put("k", 1)
    clock.advance(10)
    second = cache.put("k", 2)

    assert first == CacheEntry(value=1, created_at_ms=second.created_at_ms - 10)
    assert cache.get("k") is second


def test_stats_and_clear(clock):
    cache = MetadataCache("detail", 1000, clock=clock)
    cache.get("missing")
    cache.put("k", 1)
    cache.get("k")

    stats = cache.stats()
    assert stats["hits"] == 1
    assert stats["misses"] == 1
    assert stats["size"] == 1

    cache.clear()
    assert cache.stats() == {"name": "detail", "size": 0, "ttl_ms": 1000, "hits": 0, "misses": 0}


def test_independent_instances(clock):
    details = MetadataCache("detail", 1000, clock=clock)
    cards = MetadataCache("card", 1000, clock=clock)
    details.put("k", "detail")

    assert cards.get("k") is None
    assert details.get("k").value == "detail"
