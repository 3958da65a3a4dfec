"""Suggestion service: one request in, one validated and enriched AgentResponse out.

Pipeline per request:
1. Build the conversation (system prompt, history, plan context + user message)
2. ConversationOrchestrator runs the tool-calling loop
3. parse_agent_response validates the final JSON
4. SuggestionEnricher resolves every place suggestion against the provider

The candidate cache and scored-place registry live for one request only.
"""

import json
import logging

from tripwise.data.personas import PERSONA_METADATA
from tripwise.errors import AgentError, ValidationError
from tripwise.schemas.agent import AgentResponse, ConversationTurn, SuggestionRequest
from tripwise.schemas.places import dump_json
from tripwise.services.cache_service import CacheService, cache_service
from tripwise.services.candidate_cache import CandidateCache
from tripwise.services.llm_client import LLMClient, llm_client
from tripwise.services.places_client import PlacesProvider, places_client
from tripwise.services.recommendation.config import RecommendationConfig, recommendation_config
from tripwise.services.recommendation.orchestrator import ConversationOrchestrator
from tripwise.services.recommendation.prompts import load_prompt
from tripwise.services.recommendation.response_validator import (
    SuggestionEnricher,
    parse_agent_response,
)
from tripwise.services.recommendation.tool_executor import ToolExecutor

logger = logging.getLogger(__name__)

# Load system prompt once at module level
_SYSTEM_PROMPT = load_prompt("nearby_suggestions.md")


def build_initial_turns(
    request: SuggestionRequest,
    config: RecommendationConfig = recommendation_config,
) -> list[ConversationTurn]:
    """System prompt, prior conversation, then the user turn with the plan context."""
    place = request.place
    plan_context = {
        "place": {"id": place.id, "name": place.name},
        "mapCenter": {"lat": request.map_coordinates.lat, "lng": request.map_coordinates.lng},
        "plannedAttractions": [dump_json(p) for p in place.planned_attractions],
        "plannedRestaurants": [dump_json(p) for p in place.planned_restaurants],
    }
    if request.personas:
        plan_context["personas"] = [
            {
                "type": p.value,
                "label": PERSONA_METADATA[p].label,
                "description": PERSONA_METADATA[p].description,
            }
            for p in request.personas
        ]

    user_message = (request.user_message or "").strip() or config.default_user_message

    turns = [ConversationTurn(role="system", content=_SYSTEM_PROMPT)]
    turns.extend(
        ConversationTurn(role=m.role, content=m.content) for m in request.conversation_history
    )
    turns.append(ConversationTurn(
        role="user",
        content=f"Current plan:\n{json.dumps(plan_context, indent=2)}\n\n{user_message}",
    ))
    return turns


class SuggestionService:
    """Runs the recommendation pipeline for one SuggestionRequest."""

    def __init__(
        self,
        llm: LLMClient = llm_client,
        places: PlacesProvider = places_client,
        store: CacheService | None = cache_service,
        config: RecommendationConfig = recommendation_config,
    ):
        self._llm = llm
        self._places = places
        self._store = store
        self._cfg = config

    async def suggest(self, request: SuggestionRequest) -> AgentResponse:
        """
        Produce suggestions for the request's place.

        Raises AgentError subclasses on terminal failures; callers should show
        only `user_message` to the end user.
        """
        cache = CandidateCache(self._places, self._store)
        executor = ToolExecutor(
            cache,
            center=request.map_coordinates,
            personas=request.personas,
            planned_attractions=request.place.planned_attractions,
            planned_restaurants=request.place.planned_restaurants,
            config=self._cfg,
        )
        orchestrator = ConversationOrchestrator(self._llm, executor, self._cfg)

        try:
            outcome = await orchestrator.run(build_initial_turns(request, self._cfg))
            response = parse_agent_response(outcome.content)
            enricher = SuggestionEnricher(
                cache, executor.scored_places, self._cfg.limits.enrichment_concurrency,
            )
            enriched = await enricher.enrich(response)
        except ValidationError as e:
            logger.error(f"Suggestions for {request.place.name}: {e.message}; raw={e.raw_text[:500]!r}")
            raise
        except AgentError as e:
            logger.error(
                f"Suggestions for {request.place.name} failed "
                f"({type(e).__name__}, state={orchestrator.state.value}): {e.message}"
            )
            raise

        enriched = self._drop_planned(enriched, request.place.planned_ids)
        logger.info(
            f"Suggestions for {request.place.name}: {len(enriched.suggestions)} suggestions "
            f"after {outcome.rounds} tool rounds ({outcome.state.value}), "
            f"{cache.fetch_count} provider fetches"
        )
        return enriched

    @staticmethod
    def _drop_planned(response: AgentResponse, planned_ids: set[str]) -> AgentResponse:
        """Remove suggestions that resolved to a place already in the plan."""
        if not planned_ids:
            return response
        kept = [
            s for s in response.suggestions
            if getattr(s, "attraction_data", None) is None or s.attraction_data.id not in planned_ids
        ]
        if len(kept) < len(response.suggestions):
            logger.info(f"Dropped {len(response.suggestions) - len(kept)} suggestions already in the plan")
        return response.model_copy(update={"suggestions": kept})


# Singleton
suggestion_service = SuggestionService()
