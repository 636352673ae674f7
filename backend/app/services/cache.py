"""
Caching Service for trip distances.

Per-trip distance is deterministic for a given point set. Points are only
ever appended, so (trip id, point count, latest point timestamp) identifies
a point set and makes a safe Redis key. Cache failures are logged and
treated as misses.
"""

import logging
from datetime import datetime
from typing import Optional

from redis.exceptions import RedisError

from backend.app.core.config import settings

logger = logging.getLogger(__name__)

KEY_PREFIX = "trip-distance"


class TripSummaryCache:

    def __init__(self, client, ttl_seconds: Optional[int] = None, enabled: Optional[bool] = None):
        self.client = client
        self.ttl_seconds = ttl_seconds if ttl_seconds is not None else settings.cache_ttl_seconds
        self.enabled = (settings.cache_enabled if enabled is None else enabled) and client is not None

    @staticmethod
    def distance_key(trip_id: int, point_count: int, latest_timestamp: Optional[datetime]) -> str:
        latest = latest_timestamp.isoformat() if latest_timestamp else "none"
        return f"{KEY_PREFIX}:{trip_id}:{point_count}:{latest}"

    async def get_distance(self, key: str) -> Optional[float]:
        if not self.enabled:
            return None
        try:
            raw = await self.client.get(key)
        except (RedisError, OSError) as exc:
            logger.warning("Cache read failed for %s: %s", key, exc)
            return None
        if raw is None:
            return None
        try:
            return float(raw)
        except (TypeError, ValueError):
            logger.warning("Discarding malformed cache entry %s", key)
            return None

    async def set_distance(self, key: str, meters: float) -> None:
        if not self.enabled:
            return
        try:
            await self.client.set(key, repr(float(meters)), ex=self.ttl_seconds)
        except (RedisError, OSError) as exc:
            logger.warning("Cache write failed for %s: %s", key, exc)
