"""
Two-tier cache: in-memory mapping in front of the file-backed persistence tier.

Expiry is evaluated lazily on read; there is no background sweep. Durable
writes are queued to a single worker thread so callers get their value back
before the disk write lands.
"""

import queue
import threading
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Callable, Iterator, Optional

from loguru import logger

from .models import CacheEntry, CacheStatus, now_ms
from .persistence import PersistenceService

_STOP = object()


class CacheService:
    """
    Thread-safe cache with memory and disk tiers.

    Features:
    - TTL per entry, checked at read time
    - Promotion of unexpired disk entries into memory
    - Negative caching (None is a storable value)
    - Hit/miss/size/last-refreshed tracking
    - Per-key single-flight locks for collapsing duplicate upstream calls
    """

    def __init__(
        self,
        persistence: PersistenceService,
        clock: Callable[[], int] = now_ms,
        write_behind: bool = True,
    ):
        """
        Initialize cache service.

        Args:
            persistence: Durable tier
            clock: Time source in epoch milliseconds
            write_behind: Queue disk writes to a worker thread instead of
                writing inline
        """
        self.persistence = persistence
        self.clock = clock
        self.write_behind = write_behind

        self._entries: dict[str, CacheEntry] = {}
        self._lock = threading.RLock()
        self._hits = 0
        self._misses = 0
        self._last_refreshed: Optional[datetime] = None

        self._flight_lock = threading.Lock()
        self._flights: dict[str, list] = {}

        self._write_queue: queue.Queue = queue.Queue()
        self._writer: Optional[threading.Thread] = None
        if write_behind:
            self._writer = threading.Thread(target=self._write_worker, name="cache-writer", daemon=True)
            self._writer.start()

        logger.debug(f"Cache ready (persistence: {persistence.cache_dir}, write_behind={write_behind})")

    # ------------------------------------------------------------------ reads

    def lookup(self, key: str) -> CacheEntry | None:
        """
        TTL-checked read that records a hit or a miss.

        Returns the live entry (whose ``data`` may be None for a cached
        negative result) or None on a miss. Expired entries found on the way
        are removed from both tiers.

        The disk read happens outside the lock; memory is re-checked before
        a disk entry is promoted.
        """
        with self._lock:
            now = self.clock()
            entry = self._entries.get(key)
            if entry is not None:
                if not entry.is_expired(now):
                    self._hits += 1
                    logger.debug(f"Cache hit: {key}")
                    return entry
                del self._entries[key]
                logger.debug(f"Expired in memory: {key}")

        persisted = self.persistence.load(key)

        with self._lock:
            current = self._entries.get(key)
            if current is not None and not current.is_expired(now):
                self._hits += 1
                logger.debug(f"Cache hit: {key}")
                return current

            if persisted is not None:
                if not persisted.is_expired(now):
                    self._entries[key] = persisted
                    self._hits += 1
                    logger.debug(f"Cache hit (promoted from disk): {key}")
                    return persisted
                # A set() that landed meanwhile owns the file now
                if current is None:
                    self.persistence.remove(key)
                    logger.debug(f"Expired on disk: {key}")

            self._misses += 1
            logger.debug(f"Cache miss: {key}")
            return None

    def get(self, key: str) -> Any:
        """
        Return the cached value, or None.

        None is ambiguous here (miss or cached negative); use ``lookup`` when
        the difference matters.
        """
        entry = self.lookup(key)
        return entry.data if entry is not None else None

    def peek(self, key: str) -> CacheEntry | None:
        """TTL-checked read that leaves counters and both tiers untouched."""
        with self._lock:
            now = self.clock()
            entry = self._entries.get(key)
            if entry is not None and not entry.is_expired(now):
                return entry
            return None

    def get_entry(self, key: str) -> CacheEntry | None:
        """
        Return the full entry without evaluating its TTL.

        Used by freshness queries that need the original timestamp regardless
        of staleness. Memory first, then disk; nothing is promoted or counted.
        """
        with self._lock:
            entry = self._entries.get(key)
            if entry is not None:
                return entry
            self._drain_pending_writes()
            return self.persistence.load(key)

    # ----------------------------------------------------------------- writes

    def set(self, key: str, data: Any, ttl_ms: int) -> CacheEntry:
        """
        Store ``data`` (None allowed) under ``key`` for ``ttl_ms`` milliseconds.

        The in-memory write completes before returning; the disk write is
        queued when write-behind is enabled.
        """
        with self._lock:
            entry = CacheEntry(data=data, timestamp=self.clock(), ttl=ttl_ms)
            self._entries[key] = entry
            self._last_refreshed = datetime.now(timezone.utc)
            if self.write_behind:
                self._write_queue.put((key, entry))
            else:
                self.persistence.save(key, entry)
        return entry

    def clear(self, key: str) -> None:
        """Remove ``key`` from both tiers."""
        with self._lock:
            self._entries.pop(key, None)
            self._drain_pending_writes()
            self.persistence.remove(key)

    def clear_all(self) -> None:
        """Wipe memory and every persisted entry, and reset the counters."""
        with self._lock:
            self._entries.clear()
            self._drain_pending_writes()
            self.persistence.clear_all()
            self._hits = 0
            self._misses = 0
            self._last_refreshed = datetime.now(timezone.utc)
        logger.info("Cache cleared")

    def get_stats(self) -> CacheStatus:
        """Snapshot of the running counters."""
        with self._lock:
            return CacheStatus(
                hits=self._hits,
                misses=self._misses,
                size=len(self._entries),
                last_refreshed=self._last_refreshed,
            )

    # ---------------------------------------------------------- single-flight

    @contextmanager
    def single_flight(self, key: str) -> Iterator[None]:
        """
        Serialize upstream fetches for one key.

        Callers re-check the cache with ``peek`` once inside, so only the
        first of several concurrent cold requests reaches the provider.
        """
        with self._flight_lock:
            slot = self._flights.get(key)
            if slot is None:
                slot = [threading.Lock(), 0]
                self._flights[key] = slot
            slot[1] += 1

        try:
            with slot[0]:
                yield
        finally:
            with self._flight_lock:
                slot[1] -= 1
                if slot[1] == 0:
                    self._flights.pop(key, None)

    # ------------------------------------------------------------ write-behind

    def _write_worker(self) -> None:
        """Background worker draining queued disk writes in FIFO order."""
        while True:
            item = self._write_queue.get()
            try:
                if item is _STOP:
                    return
                key, entry = item
                self.persistence.save(key, entry)
            except Exception as e:
                logger.error(f"Error in cache writer: {e}")
            finally:
                self._write_queue.task_done()

    def _drain_pending_writes(self) -> None:
        if self.write_behind:
            self._write_queue.join()

    def flush(self) -> None:
        """Block until every queued disk write has landed."""
        self._drain_pending_writes()

    def close(self) -> None:
        """Flush and stop the writer thread."""
        if self._writer is None:
            return
        self._write_queue.put(_STOP)
        self._writer.join()
        self._writer = None
        self.write_behind = False
