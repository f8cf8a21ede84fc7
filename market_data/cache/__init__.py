"""
Two-tier caching layer for provider responses.

In-memory entries backed by one JSON file per key, with lazy TTL expiry.
"""

from .cache_service import CacheService
from .models import CacheEntry, CacheStatus
from .persistence import PersistenceService, sanitize_key

__all__ = [
    "CacheEntry",
    "CacheService",
    "CacheStatus",
    "PersistenceService",
    "sanitize_key",
]
