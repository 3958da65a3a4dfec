"""Per-run candidate cache: one provider fetch per distinct key.

Keys are frozen dataclasses, so equality and hashing are structural. Concurrent
callers with equal keys share one in-flight task. Failed fetches are evicted,
never cached. A shared CacheService (redis) may sit behind the in-memory layer.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Mapping

from pydantic import ValidationError as PydanticValidationError

from tripwise.data.place_types import ATTRACTION_TYPES, RESTAURANT_TYPES
from tripwise.schemas.places import CandidatePlace, dump_json
from tripwise.services.cache_service import (
    TTL_NEARBY,
    TTL_PLACE_DETAILS,
    TTL_TEXT_SEARCH,
    CacheService,
)
from tripwise.services.places_client import PlacesProvider

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class NearbyKey:
    lat: float
    lng: float
    radius: float
    category: str = "attractions"  # "attractions" | "restaurants"

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "NearbyKey":
        return cls(**data)


@dataclass(frozen=True)
class TextSearchKey:
    query: str
    include_photos: bool = False
    require_ratings: bool = True


@dataclass(frozen=True)
class DetailsKey:
    place_id: str


CacheKey = NearbyKey | TextSearchKey | DetailsKey


class CandidateCache:
    """Memoizes provider lookups for the lifetime of one orchestration run."""

    def __init__(self, provider: PlacesProvider, store: CacheService | None = None):
        self._provider = provider
        self._store = store
        self._entries: dict[CacheKey, asyncio.Task] = {}
        self.fetch_count = 0

    def __len__(self) -> int:
        return len(self._entries)

    async def nearby(self, key: NearbyKey) -> list[CandidatePlace]:
        return await self.get(key)

    async def text_search(self, key: TextSearchKey) -> CandidatePlace:
        return await self.get(key)

    async def details(self, key: DetailsKey) -> CandidatePlace:
        return await self.get(key)

    async def get(self, key: CacheKey) -> list[CandidatePlace] | CandidatePlace:
        task = self._entries.get(key)
        if task is None:
            task = asyncio.ensure_future(self._load(key))
            self._entries[key] = task
        try:
            # Shielded so one cancelled waiter doesn't cancel the shared fetch
            return await asyncio.shield(task)
        except Exception:
            if self._entries.get(key) is task and task.done():
                del self._entries[key]
            raise

    async def _load(self, key: CacheKey) -> list[CandidatePlace] | CandidatePlace:
        store_key, ttl = self._store_key(key)
        if store_key:
            cached = await self._store.get(store_key)
            if cached is not None:
                try:
                    result = _decode(cached)
                except (PydanticValidationError, TypeError) as e:
                    # Stale or foreign entry; refetch and overwrite it
                    logger.debug(f"Shared cache entry unreadable for {store_key}: {e}")
                else:
                    logger.debug(f"Shared cache hit: {store_key}")
                    return result

        self.fetch_count += 1
        result = await self._fetch(key)

        if store_key:
            await self._store.set(store_key, _encode(result), ttl)
        return result

    def _store_key(self, key: CacheKey) -> tuple[str | None, int]:
        if self._store is None or not self._store.enabled:
            return None, 0
        if isinstance(key, NearbyKey):
            return self._store.nearby_key(key.lat, key.lng, key.radius, key.category), TTL_NEARBY
        if isinstance(key, TextSearchKey):
            return (
                self._store.text_search_key(key.query, key.include_photos, key.require_ratings),
                TTL_TEXT_SEARCH,
            )
        if isinstance(key, DetailsKey):
            return self._store.details_key(key.place_id), TTL_PLACE_DETAILS
        raise TypeError(f"Unsupported cache key: {key!r}")

    async def _fetch(self, key: CacheKey) -> list[CandidatePlace] | CandidatePlace:
        if isinstance(key, NearbyKey):
            categories = RESTAURANT_TYPES if key.category == "restaurants" else ATTRACTION_TYPES
            return await self._provider.nearby_search(key.lat, key.lng, key.radius, categories)
        if isinstance(key, TextSearchKey):
            return await self._provider.text_search(
                key.query, include_photos=key.include_photos, require_ratings=key.require_ratings,
            )
        if isinstance(key, DetailsKey):
            return await self._provider.place_details(key.place_id)
        raise TypeError(f"Unsupported cache key: {key!r}")


def _encode(result: list[CandidatePlace] | CandidatePlace) -> Any:
    if isinstance(result, list):
        return [dump_json(p) for p in result]
    return dump_json(result)


def _decode(raw: Any) -> list[CandidatePlace] | CandidatePlace:
    if isinstance(raw, list):
        return [CandidatePlace.model_validate(p) for p in raw]
    return CandidatePlace.model_validate(raw)
