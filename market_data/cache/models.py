"""
Cache entry and statistics models.
"""

import time
from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, Field


def now_ms() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)


class CacheEntry(BaseModel):
    """
    A cached value with its creation time and time-to-live.

    ``data is None`` is a valid, cacheable state meaning "the provider
    confirmed there is nothing here", distinct from "never cached".
    """
    data: Any = None
    timestamp: int = Field(description="Creation time, epoch milliseconds")
    ttl: int = Field(ge=0, description="Time to live in milliseconds")

    @property
    def expires_at(self) -> int:
        return self.timestamp + self.ttl

    def is_expired(self, now: int) -> bool:
        """Expired iff now >= timestamp + ttl."""
        return now - self.timestamp >= self.ttl


class CacheStatus(BaseModel):
    """Process-lifetime cache counters. ``size`` counts in-memory entries only."""
    hits: int = 0
    misses: int = 0
    size: int = 0
    last_refreshed: Optional[datetime] = None

    def as_dict(self) -> dict[str, Any]:
        total = self.hits + self.misses
        return {
            "hits": self.hits,
            "misses": self.misses,
            "size": self.size,
            "total": total,
            "hit_rate": self.hits / total if total > 0 else 0.0,
            "last_refreshed": self.last_refreshed.isoformat() if self.last_refreshed else None,
        }
