"""Redis cache service for place search results shared across sessions."""

import json
import logging
from typing import Any

import redis.asyncio as redis

from tripwise.config import settings

logger = logging.getLogger(__name__)

# TTLs in seconds
TTL_NEARBY = 30 * 60          # 30 minutes, nearby search results
TTL_TEXT_SEARCH = 60 * 60     # 1 hour, resolved place by name
TTL_PLACE_DETAILS = 60 * 60   # 1 hour


class CacheService:
    """Redis-backed cache with typed TTLs. Every failure degrades to a miss."""

    def __init__(self, redis_url: str | None = None):
        self._redis_url = settings.redis_url if redis_url is None else redis_url
        self._redis: redis.Redis | None = None

    @property
    def enabled(self) -> bool:
        return bool(self._redis_url)

    async def _get_redis(self) -> redis.Redis | None:
        if not self._redis_url:
            return None
        if self._redis is None:
            try:
                self._redis = redis.from_url(
                    self._redis_url,
                    encoding="utf-8",
                    decode_responses=True,
                )
                await self._redis.ping()
            except Exception as e:
                logger.warning(f"Redis unavailable, shared place cache disabled: {e}")
                self._redis = None
                return None
        return self._redis

    async def get(self, key: str) -> Any | None:
        """Get a value from cache. Returns None on miss or error."""
        try:
            r = await self._get_redis()
            if r is None:
                return None
            raw = await r.get(key)
            if raw is None:
                return None
            return json.loads(raw)
        except Exception as e:
            logger.debug(f"Cache read failed for {key}: {e}")
            return None

    async def set(self, key: str, value: Any, ttl: int = TTL_NEARBY) -> bool:
        """Set a value in cache with TTL. Returns False on error."""
        try:
            r = await self._get_redis()
            if r is None:
                return False
            await r.set(key, json.dumps(value, default=str), ex=ttl)
            return True
        except Exception as e:
            logger.debug(f"Cache write failed for {key}: {e}")
            return False

    # Typed helpers

    def nearby_key(self, lat: float, lng: float, radius: float, category: str) -> str:
        return f"places:nearby:{category}:{lat:.5f}:{lng:.5f}:{radius:g}"

    def text_search_key(self, query: str, include_photos: bool, require_ratings: bool) -> str:
        return f"places:text:{query}:{int(include_photos)}:{int(require_ratings)}"

    def details_key(self, place_id: str) -> str:
        return f"places:details:{place_id}"

    async def close(self):
        if self._redis:
            await self._redis.aclose()
            self._redis = None


cache_service = CacheService()
