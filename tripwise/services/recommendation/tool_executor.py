"""Tool executor: runs one model tool call and serializes the result for the conversation."""

import json
import logging
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError

from tripwise.data.personas import PersonaType
from tripwise.errors import InvalidToolCall
from tripwise.schemas.agent import ToolCall
from tripwise.schemas.places import CandidatePlace, CandidateScore, Location, dump_json
from tripwise.services.candidate_cache import CandidateCache, DetailsKey, NearbyKey
from tripwise.services.recommendation.config import RecommendationConfig, recommendation_config
from tripwise.services.scoring_engine import dedupe_by_id, eligible_candidates, score_candidates

logger = logging.getLogger(__name__)


class ToolName(str, Enum):
    SEARCH_ATTRACTIONS = "searchAttractions"
    SEARCH_RESTAURANTS = "searchRestaurants"
    GET_PLACE_DETAILS = "getPlaceDetails"


class SearchArgs(BaseModel):
    """Search tool arguments. lat/lng are accepted but the map center is used instead."""
    model_config = ConfigDict(extra="ignore")

    lat: float | None = None
    lng: float | None = None
    radius: float | None = None
    limit: int | None = None


class PlaceDetailsArgs(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    place_id: str = Field(alias="placeId", min_length=1)


def _search_tool(name: ToolName, kind: str, default_limit: int) -> dict:
    return {
        "type": "function",
        "function": {
            "name": name.value,
            "description": (
                f"Search for {kind} near a specific location. Returns top-rated {kind} "
                f"with scores based on ratings, reviews, and popularity."
            ),
            "parameters": {
                "type": "object",
                "properties": {
                    "lat": {"type": "number", "description": "Latitude of the search center point"},
                    "lng": {"type": "number", "description": "Longitude of the search center point"},
                    "radius": {
                        "type": "number",
                        "description": "Search radius in meters (default: 2000, min: 100, max: 50000)",
                        "default": 2000,
                    },
                    "limit": {
                        "type": "number",
                        "description": (
                            f"Maximum number of results to return "
                            f"(default: {default_limit}, min: 1, max: 50)"
                        ),
                        "default": default_limit,
                    },
                },
                "required": ["lat", "lng"],
                "additionalProperties": False,
            },
        },
    }


_TOOLS: dict[ToolName, dict] = {
    ToolName.SEARCH_ATTRACTIONS: _search_tool(
        ToolName.SEARCH_ATTRACTIONS, "tourist attractions",
        recommendation_config.search.attractions_limit,
    ),
    ToolName.SEARCH_RESTAURANTS: _search_tool(
        ToolName.SEARCH_RESTAURANTS, "restaurants",
        recommendation_config.search.restaurants_limit,
    ),
    ToolName.GET_PLACE_DETAILS: {
        "type": "function",
        "function": {
            "name": ToolName.GET_PLACE_DETAILS.value,
            "description": (
                "Get full details (location, rating, opening status, photos) for one place "
                "by its id from earlier search results."
            ),
            "parameters": {
                "type": "object",
                "properties": {
                    "placeId": {"type": "string", "description": "Place id from a search result"},
                },
                "required": ["placeId"],
                "additionalProperties": False,
            },
        },
    },
}

_HANDLERS: dict[ToolName, str] = {
    ToolName.SEARCH_ATTRACTIONS: "_search_attractions",
    ToolName.SEARCH_RESTAURANTS: "_search_restaurants",
    ToolName.GET_PLACE_DETAILS: "_get_place_details",
}

# Adding a ToolName without a definition and a handler fails at import
for _registry in (_TOOLS, _HANDLERS):
    _missing = set(ToolName) - set(_registry)
    if _missing:
        raise RuntimeError(f"Tools not wired: {sorted(t.value for t in _missing)}")

TOOL_DEFINITIONS: list[dict] = [_TOOLS[name] for name in ToolName]


class ToolExecutor:
    """Executes tool calls for one run.

    The search center always comes from the caller's map coordinates; whatever
    lat/lng the model proposes is ignored. Every place scored during the run is
    kept in `scored_places` (by name) so enrichment can attach its score.
    """

    def __init__(
        self,
        cache: CandidateCache,
        center: Location,
        personas: list[PersonaType] | None = None,
        planned_attractions: list[CandidatePlace] | None = None,
        planned_restaurants: list[CandidatePlace] | None = None,
        config: RecommendationConfig = recommendation_config,
    ):
        self._cache = cache
        self._center = center
        self._personas = list(personas or [])
        self._planned = {
            "attractions": list(planned_attractions or []),
            "restaurants": list(planned_restaurants or []),
        }
        self._planned_ids = {p.id for group in self._planned.values() for p in group}
        self._search = config.search
        self.scored_places: dict[str, CandidateScore] = {}

    async def execute(self, tool_call: ToolCall) -> str:
        """Run one tool call. Raises InvalidToolCall for unknown tools or bad arguments."""
        try:
            name = ToolName(tool_call.name)
        except ValueError:
            raise InvalidToolCall(f"Unknown tool: {tool_call.name}", tool_call.name) from None

        try:
            raw_args = json.loads(tool_call.arguments or "{}")
        except json.JSONDecodeError as e:
            raise InvalidToolCall(
                f"Malformed arguments for {tool_call.name}", tool_call.name, cause=e,
            ) from e
        if not isinstance(raw_args, dict):
            raise InvalidToolCall(f"Arguments for {tool_call.name} must be an object", tool_call.name)

        handler = getattr(self, _HANDLERS[name])
        return await handler(name, raw_args)

    async def _search_attractions(self, name: ToolName, raw_args: dict) -> str:
        return await self._search_nearby(name, raw_args, "attractions", self._search.attractions_limit)

    async def _search_restaurants(self, name: ToolName, raw_args: dict) -> str:
        return await self._search_nearby(name, raw_args, "restaurants", self._search.restaurants_limit)

    async def _search_nearby(self, name: ToolName, raw_args: dict, kind: str, default_limit: int) -> str:
        args = _parse_args(SearchArgs, raw_args, name)
        radius = self._search.clamp_radius(args.radius)
        limit = self._search.clamp_limit(args.limit, default_limit)

        if args.lat is not None and args.lng is not None and (args.lat, args.lng) != (
            self._center.lat, self._center.lng,
        ):
            logger.debug(
                f"{name.value}: model asked for {args.lat},{args.lng}; "
                f"using map center {self._center.lat},{self._center.lng}"
            )

        fetched = await self._cache.nearby(
            NearbyKey(lat=self._center.lat, lng=self._center.lng, radius=radius, category=kind)
        )

        # Planned items join the batch so diversity accounts for them, then drop out
        candidates = eligible_candidates(dedupe_by_id([*fetched, *self._planned[kind]]))
        scored = score_candidates(candidates, self._personas, kind=kind)
        for s in scored:
            self.scored_places[s.place.name] = s

        fresh = [s for s in scored if s.place.id not in self._planned_ids][:limit]
        logger.info(
            f"{name.value}: {len(fetched)} fetched, {len(candidates)} eligible, "
            f"{len(fresh)} returned (radius={radius:g}, limit={limit})"
        )
        return json.dumps({kind: [dump_json(s) for s in fresh]})

    async def _get_place_details(self, name: ToolName, raw_args: dict) -> str:
        args = _parse_args(PlaceDetailsArgs, raw_args, name)
        place = await self._cache.details(DetailsKey(place_id=args.place_id))
        return json.dumps({"place": dump_json(place)})


def _parse_args(model: type[BaseModel], raw_args: dict, name: ToolName):
    try:
        return model.model_validate(raw_args)
    except PydanticValidationError as e:
        errors = ", ".join(
            f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()
        )
        raise InvalidToolCall(f"Invalid arguments for {name.value}: {errors}", name.value, cause=e) from e
