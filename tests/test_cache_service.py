"""
Tests for the two-tier cache service.
"""

import threading
import time
from unittest.mock import MagicMock

from market_data.cache import CacheEntry, CacheService


def test_round_trip(cache, clock):
    """Test set followed by get returns the value."""
    entry = cache.set("k", {"value": 42}, 1000)

    assert entry.timestamp == clock.now
    assert entry.ttl == 1000
    assert cache.get("k") == {"value": 42}

    stats = cache.get_stats()
    assert stats.hits == 1
    assert stats.misses == 0
    assert stats.size == 1
    assert stats.last_refreshed is not None


def test_cached_none_is_a_hit(cache):
    """Test that a stored None is distinguishable from a miss."""
    cache.set("empty", None, 1000)

    entry = cache.lookup("empty")
    assert entry is not None
    assert entry.data is None
    assert cache.lookup("absent") is None

    stats = cache.get_stats()
    assert stats.hits == 1
    assert stats.misses == 1


def test_expiry_boundary(cache, clock):
    """Test that an entry expires exactly at timestamp + ttl."""
    cache.set("k", "v", 1000)

    clock.advance(999)
    assert cache.get("k") == "v"

    clock.advance(1)
    assert cache.get("k") is None
    assert cache.get_stats().misses == 1


def test_expired_entry_removed_from_both_tiers(cache, clock, persistence):
    """Test lazy removal of expired entries on read."""
    cache.set("k", "v", 1000)
    assert persistence.path_for("k").exists()

    clock.advance(5000)
    assert cache.get("k") is None

    assert cache.get_stats().size == 0
    assert not persistence.path_for("k").exists()


def test_get_entry_ignores_ttl(cache, clock):
    """Test that get_entry returns the original entry even when stale."""
    entry = cache.set("k", "v", 1000)

    clock.advance(10_000)
    stale = cache.get_entry("k")

    assert stale is not None
    assert stale.timestamp == entry.timestamp
    assert stale.data == "v"
    # get_entry does not count
    assert cache.get_stats().hits == 0
    assert cache.get_stats().misses == 0


def test_get_entry_reads_disk(persistence, clock):
    """Test that get_entry falls back to the persistence tier."""
    persistence.save("k", CacheEntry(data=[1, 2], timestamp=123, ttl=1))
    cache = CacheService(persistence, clock=clock, write_behind=False)

    entry = cache.get_entry("k")

    assert entry.timestamp == 123
    assert cache.get_stats().size == 0


def test_tier_fallback_promotes_into_memory(persistence, clock, monkeypatch):
    """Test that a disk hit is promoted and not loaded again."""
    persistence.save("k", CacheEntry(data="from disk", timestamp=clock.now, ttl=60_000))
    load_spy = MagicMock(wraps=persistence.load)
    monkeypatch.setattr(persistence, "load", load_spy)

    cache = CacheService(persistence, clock=clock, write_behind=False)

    assert cache.get("k") == "from disk"
    assert cache.get("k") == "from disk"
    assert load_spy.call_count == 1
    assert cache.get_stats().hits == 2
    assert cache.get_stats().size == 1


def test_expired_on_disk_is_a_miss(persistence, clock):
    """Test that an expired persisted entry is removed and counted as a miss."""
    persistence.save("k", CacheEntry(data="old", timestamp=clock.now - 10_000, ttl=1000))
    cache = CacheService(persistence, clock=clock, write_behind=False)

    assert cache.get("k") is None
    assert cache.get_stats().misses == 1
    assert not persistence.path_for("k").exists()


def test_survives_restart(persistence, clock):
    """Test that a new service instance sees entries written by the previous one."""
    first = CacheService(persistence, clock=clock)
    first.set("k", {"a": 1}, 60_000)
    first.close()

    second = CacheService(persistence, clock=clock, write_behind=False)
    assert second.get("k") == {"a": 1}


def test_clear_removes_both_tiers(cache, persistence):
    """Test clearing a single key."""
    cache.set("k", "v", 1000)
    cache.set("other", "v", 1000)

    cache.clear("k")

    assert cache.get_entry("k") is None
    assert not persistence.path_for("k").exists()
    assert cache.get("other") == "v"


def test_clear_all_is_idempotent(cache, persistence):
    """Test that a second clear_all is a no-op and leaves size at zero."""
    cache.set("a", 1, 1000)
    cache.set("b", None, 1000)
    cache.get("a")

    cache.clear_all()
    cache.clear_all()

    stats = cache.get_stats()
    assert stats.size == 0
    assert stats.hits == 0
    assert list(persistence.cache_dir.glob("*.json")) == []


def test_write_behind_flush(persistence, clock):
    """Test that queued writes land on disk after flush."""
    cache = CacheService(persistence, clock=clock, write_behind=True)
    try:
        for i in range(20):
            cache.set(f"k{i}", i, 60_000)
        cache.flush()

        assert len(list(persistence.cache_dir.glob("*.json"))) == 20
        assert persistence.load("k7").data == 7
    finally:
        cache.close()


def test_close_switches_to_inline_writes(persistence, clock):
    """Test that writes after close still reach disk."""
    cache = CacheService(persistence, clock=clock)
    cache.close()
    cache.close()

    cache.set("late", "v", 1000)

    assert persistence.load("late").data == "v"


def test_single_flight_serializes_same_key(cache):
    """Test that only one thread at a time runs inside a key's flight."""
    inside = 0
    peak = 0
    guard = threading.Lock()

    def worker():
        nonlocal inside, peak
        with cache.single_flight("k"):
            with guard:
                inside += 1
                peak = max(peak, inside)
            time.sleep(0.01)
            with guard:
                inside -= 1

    threads = [threading.Thread(target=worker) for _ in range(5)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert peak == 1
    assert cache._flights == {}


def test_single_flight_allows_different_keys(cache):
    """Test that flights for different keys do not block each other."""
    with cache.single_flight("a"):
        acquired = threading.Event()

        def other():
            with cache.single_flight("b"):
                acquired.set()

        t = threading.Thread(target=other)
        t.start()
        assert acquired.wait(timeout=2)
        t.join()


def test_stats_as_dict(cache):
    """Test derived fields of the stats snapshot."""
    cache.set("k", 1, 1000)
    cache.get("k")
    cache.get("missing")

    stats = cache.get_stats().as_dict()
    assert stats["total"] == 2
    assert stats["hit_rate"] == 0.5
    assert stats["last_refreshed"] is not None


def test_disk_read_does_not_block_other_keys(persistence, clock, monkeypatch):
    """Test that writers to other keys proceed while a disk load is in flight."""
    cache = CacheService(persistence, clock=clock, write_behind=False)
    original_load = persistence.load
    writer_finished = []

    def slow_load(key):
        writer = threading.Thread(target=lambda: cache.set("other", 1, 60_000))
        writer.start()
        writer.join(timeout=2)
        writer_finished.append(not writer.is_alive())
        return original_load(key)

    monkeypatch.setattr(persistence, "load", slow_load)

    assert cache.get("k") is None
    assert writer_finished == [True]
    assert cache.get("other") == 1


def test_memory_write_during_disk_read_wins(persistence, clock, monkeypatch):
    """Test that a value set while the disk tier was being read is not replaced by the disk copy."""
    persistence.save("k", CacheEntry(data="from disk", timestamp=clock.now, ttl=60_000))
    cache = CacheService(persistence, clock=clock, write_behind=False)
    original_load = persistence.load

    def racing_load(key):
        loaded = original_load(key)
        writer = threading.Thread(target=lambda: cache.set("k", "fresh", 60_000))
        writer.start()
        writer.join()
        return loaded

    monkeypatch.setattr(persistence, "load", racing_load)

    assert cache.get("k") == "fresh"
    assert cache.get_stats().hits == 1
