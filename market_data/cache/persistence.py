"""
File-backed persistence tier for cache entries.

One JSON document per sanitized cache key under a single storage root.
Every failure is logged and degrades to a miss; nothing here raises.
"""

import os
import re
import tempfile
from pathlib import Path

from loguru import logger
from pydantic import ValidationError

from .models import CacheEntry

DEFAULT_CACHE_DIR = ".cache_data"
ENTRY_SUFFIX = ".json"

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9_-]")


def sanitize_key(key: str) -> str:
    """
    Map a cache key to a filesystem-safe identifier.

    Every character outside [A-Za-z0-9_-] (path separators, colons, quotes,
    braces) becomes an underscore.
    """
    return _UNSAFE_CHARS.sub("_", key)


class PersistenceService:
    """
    Durable key/value store for CacheEntry objects.

    Features:
    - Survives process restart
    - Atomic writes (temp file + rename)
    - Memory-only degradation when the storage root cannot be created
    """

    def __init__(self, cache_dir: str | Path | None = None):
        """
        Initialize persistence tier.

        Args:
            cache_dir: Storage root, created recursively if missing
        """
        self.cache_dir = Path(cache_dir or DEFAULT_CACHE_DIR)
        self.available = True

        try:
            self.cache_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            self.available = False
            logger.error(f"Failed to create cache directory {self.cache_dir}, persistence disabled: {e}")

    def path_for(self, key: str) -> Path:
        """File path that stores the entry for ``key``."""
        return self.cache_dir / f"{sanitize_key(key)}{ENTRY_SUFFIX}"

    def save(self, key: str, entry: CacheEntry) -> None:
        """Write an entry, replacing any previous one atomically."""
        if not self.available:
            return

        path = self.path_for(key)
        tmp_name = None
        try:
            fd, tmp_name = tempfile.mkstemp(dir=self.cache_dir, prefix=".tmp-", suffix=ENTRY_SUFFIX)
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                fh.write(entry.model_dump_json())
            os.replace(tmp_name, path)
            tmp_name = None
            logger.debug(f"Persisted {key} -> {path.name}")
        except (OSError, TypeError, ValueError) as e:
            logger.error(f"Failed to persist {key} to {path}: {e}")
        finally:
            if tmp_name is not None:
                try:
                    os.unlink(tmp_name)
                except OSError:
                    pass

    def load(self, key: str) -> CacheEntry | None:
        """
        Read the raw entry for ``key`` without any TTL check.

        Returns:
            The stored entry, or None when absent, unreadable or corrupt
        """
        if not self.available:
            return None

        path = self.path_for(key)
        try:
            raw = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError as e:
            logger.error(f"Failed to read cache entry {key} from {path}: {e}")
            return None

        try:
            return CacheEntry.model_validate_json(raw)
        except ValidationError as e:
            logger.warning(f"Corrupt cache entry {key} at {path}, treating as miss: {e.error_count()} error(s)")
            return None

    def remove(self, key: str) -> None:
        """Delete the entry for ``key``; a missing file is not an error."""
        if not self.available:
            return

        path = self.path_for(key)
        try:
            path.unlink()
            logger.debug(f"Removed persisted entry {key}")
        except FileNotFoundError:
            return
        except OSError as e:
            logger.error(f"Failed to remove cache entry {key} at {path}: {e}")

    def clear_all(self) -> None:
        """Delete every entry file under the storage root."""
        if not self.available:
            return

        removed = 0
        try:
            for file in self.cache_dir.glob(f"*{ENTRY_SUFFIX}"):
                try:
                    file.unlink()
                    removed += 1
                except FileNotFoundError:
                    continue
        except OSError as e:
            logger.error(f"Failed to clear persisted cache in {self.cache_dir}: {e}")
            return
        logger.info(f"Cleared {removed} persisted entries in {self.cache_dir}")
