"""Google Places client: adapter for nearby search, text search and place details."""

import asyncio
import logging
from typing import Protocol

import httpx
from pydantic import ValidationError as PydanticValidationError

from tripwise.config import settings
from tripwise.data.place_types import BLOCKED_ATTRACTION_TYPES, PRICE_LEVELS, is_restaurant_search
from tripwise.errors import PlaceNotFound, PlacesProviderError, ProviderTransportError
from tripwise.schemas.places import CandidatePlace, Location, PlacePhoto

logger = logging.getLogger(__name__)

NEARBY_FIELD_MASK = ",".join(
    f"places.{f}" for f in (
        "id", "displayName", "types", "location", "rating", "userRatingCount",
        "priceLevel", "currentOpeningHours", "photos", "shortFormattedAddress",
    )
)
DETAILS_FIELD_MASK = NEARBY_FIELD_MASK.replace("places.", "")

MAX_NEARBY_RESULTS = 20

# Raised while mapping a provider record that is missing or mistyping fields
_MALFORMED = (KeyError, TypeError, AttributeError, PydanticValidationError)


class PlacesProvider(Protocol):
    """What the engine needs from a places backend."""

    async def nearby_search(
        self, lat: float, lng: float, radius: float, categories: tuple[str, ...],
    ) -> list[CandidatePlace]: ...

    async def text_search(
        self, query: str, include_photos: bool = False, require_ratings: bool = True,
    ) -> CandidatePlace: ...

    async def place_details(self, place_id: str) -> CandidatePlace: ...


class GooglePlacesClient:
    """Adapter for Google Places (v1 nearby/details, legacy text search)."""

    def __init__(self, api_key: str | None = None, transport: httpx.AsyncBaseTransport | None = None):
        self._api_key = settings.google_maps_api_key if api_key is None else api_key
        self._transport = transport
        self._client: httpx.AsyncClient | None = None
        self._semaphore = asyncio.Semaphore(10)

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=settings.places_timeout_seconds,
                transport=self._transport,
            )
        return self._client

    async def _request(self, method: str, url: str, lookup: str, **kwargs) -> dict:
        """Send one request. `lookup` names what was asked for, for PlaceNotFound on a 404."""
        if not self._api_key:
            raise PlacesProviderError("Google Maps API key is missing")

        client = await self._get_client()
        try:
            async with self._semaphore:
                resp = await client.request(method, url, **kwargs)
            resp.raise_for_status()
            return resp.json()
        except httpx.HTTPStatusError as e:
            if e.response.status_code == 404:
                raise PlaceNotFound(lookup) from e
            raise PlacesProviderError(
                f"Places API error ({e.response.status_code})", cause=e,
            ) from e
        except httpx.RequestError as e:
            raise ProviderTransportError("places", f"network error: {e}", cause=e) from e
        except ValueError as e:
            raise PlacesProviderError("Failed to parse Places API response", cause=e) from e

    async def nearby_search(
        self,
        lat: float,
        lng: float,
        radius: float,
        categories: tuple[str, ...],
    ) -> list[CandidatePlace]:
        """Places within `radius` meters of (lat, lng) matching any of `categories`."""
        data = await self._request(
            "POST",
            f"{settings.places_base_url}/places:searchNearby",
            f"{lat},{lng}",
            json={
                "includedTypes": list(categories),
                "maxResultCount": MAX_NEARBY_RESULTS,
                "locationRestriction": {
                    "circle": {
                        "center": {"latitude": lat, "longitude": lng},
                        "radius": radius,
                    },
                },
            },
            headers={
                "X-Goog-Api-Key": self._api_key,
                "X-Goog-FieldMask": NEARBY_FIELD_MASK,
            },
        )

        block = not is_restaurant_search(categories)
        seen: set[str] = set()
        results: list[CandidatePlace] = []
        for raw in data.get("places", []):
            if raw.get("id") in seen:
                continue
            if block and any(t in BLOCKED_ATTRACTION_TYPES for t in raw.get("types", [])):
                continue
            try:
                place = self._map_v1_place(raw, max_photos=1)
            except PlacesProviderError as e:
                logger.debug(f"Skipping malformed nearby result {raw.get('id')}: {e.cause}")
                continue
            if place is None:
                continue
            seen.add(place.id)
            results.append(place)

        if not results:
            raise PlaceNotFound(f"{lat},{lng}")

        logger.debug(f"Nearby search at {lat:.4f},{lng:.4f} r={radius:g}: {len(results)} places")
        return results

    async def text_search(
        self,
        query: str,
        include_photos: bool = False,
        require_ratings: bool = True,
    ) -> CandidatePlace:
        """Resolve a free-text query to its best matching place."""
        if not query or not query.strip():
            raise PlacesProviderError("Text search query must not be empty")

        data = await self._request(
            "GET",
            f"{settings.places_legacy_base_url}/textsearch/json",
            query,
            params={"query": query.strip(), "key": self._api_key},
        )

        status = data.get("status")
        if status not in ("OK", "ZERO_RESULTS"):
            raise PlacesProviderError(data.get("error_message") or f"Text Search API error: {status}")

        results = data.get("results") or []
        if not results:
            raise PlaceNotFound(query)

        result = results[0]
        geo = (result.get("geometry") or {}).get("location")
        if not geo:
            raise PlaceNotFound(query)
        if require_ratings and (not result.get("rating") or not result.get("user_ratings_total")):
            raise PlaceNotFound(query)

        try:
            photos = []
            if include_photos:
                photos = [
                    PlacePhoto(
                        photo_reference=p["photo_reference"],
                        width=p.get("width"),
                        height=p.get("height"),
                        attributions=p.get("html_attributions", []),
                    )
                    for p in result.get("photos", [])[:2]
                    if p.get("photo_reference")
                ]

            return CandidatePlace(
                id=result["place_id"],
                name=result.get("name", query),
                rating=result.get("rating"),
                review_count=result.get("user_ratings_total") or 0,
                categories=result.get("types", []),
                price_level=result.get("price_level"),
                open_now=(result.get("opening_hours") or {}).get("open_now"),
                location=Location(lat=geo["lat"], lng=geo["lng"]),
                photos=photos,
                vicinity=result.get("formatted_address") or result.get("vicinity", ""),
            )
        except _MALFORMED as e:
            raise PlacesProviderError("Malformed Places API result", cause=e) from e

    async def place_details(self, place_id: str) -> CandidatePlace:
        data = await self._request(
            "GET",
            f"{settings.places_base_url}/places/{place_id}",
            place_id,
            headers={
                "X-Goog-Api-Key": self._api_key,
                "X-Goog-FieldMask": DETAILS_FIELD_MASK,
            },
        )
        place = self._map_v1_place(data, max_photos=5)
        if place is None:
            raise PlaceNotFound(place_id)
        return place

    @staticmethod
    def _map_v1_place(raw: dict, max_photos: int) -> CandidatePlace | None:
        """Map a Places v1 place; None when it has no id or no location.

        Raises PlacesProviderError when the record is present but malformed.
        """
        loc = raw.get("location")
        if not raw.get("id") or not loc:
            return None

        try:
            photos = []
            for p in raw.get("photos", [])[:max_photos]:
                name = p.get("name", "")
                # "places/{place_id}/photos/{photo_reference}"
                photos.append(PlacePhoto(
                    photo_reference=name.split("/")[-1] or name,
                    width=p.get("widthPx"),
                    height=p.get("heightPx"),
                    attributions=[
                        a.get("displayName") or a.get("uri") or ""
                        for a in p.get("authorAttributions", [])
                    ],
                ))

            return CandidatePlace(
                id=raw["id"],
                name=(raw.get("displayName") or {}).get("text", "Unknown"),
                rating=raw.get("rating"),
                review_count=raw.get("userRatingCount") or 0,
                categories=raw.get("types", []),
                price_level=PRICE_LEVELS.get(raw.get("priceLevel")),
                open_now=(raw.get("currentOpeningHours") or {}).get("openNow"),
                location=Location(lat=loc["latitude"], lng=loc["longitude"]),
                photos=photos,
                vicinity=raw.get("shortFormattedAddress", ""),
            )
        except _MALFORMED as e:
            raise PlacesProviderError("Malformed Places API result", cause=e) from e

    async def close(self):
        if self._client:
            await self._client.aclose()
            self._client = None


places_client = GooglePlacesClient()
