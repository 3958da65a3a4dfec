"""Response validator and enricher.

The model's final text is parsed into an AgentResponse, then every attraction
and restaurant suggestion is resolved against the places provider. Suggestions
whose place cannot be resolved are dropped; tips pass through untouched.
"""

import asyncio
import logging
import re

from pydantic import ValidationError as PydanticValidationError

from tripwise.errors import LookupFailure, ProviderTransportError, ValidationError
from tripwise.schemas.agent import AgentResponse, TipSuggestion
from tripwise.schemas.places import CandidatePlace, CandidateScore, EnrichedPlace
from tripwise.services.candidate_cache import CandidateCache, TextSearchKey
from tripwise.services.recommendation.config import recommendation_config

logger = logging.getLogger(__name__)

_JSON_OBJECT_RE = re.compile(r"\{.*\}", re.DOTALL)


def parse_agent_response(raw_text: str) -> AgentResponse:
    """Parse the model's final answer. Raises ValidationError carrying the raw text."""
    # Clean markdown fencing if present
    text = (raw_text or "").strip()
    if text.startswith("```"):
        text = text.split("\n", 1)[1] if "\n" in text else text[3:]
        if text.endswith("```"):
            text = text[:-3]
        text = text.strip()

    match = _JSON_OBJECT_RE.search(text)
    if not match:
        raise ValidationError("No JSON object in model response", raw_text=raw_text)

    try:
        return AgentResponse.model_validate_json(match.group(0))
    except PydanticValidationError as e:
        errors = "; ".join(
            f"{'.'.join(str(p) for p in err['loc']) or '<root>'}: {err['msg']}"
            for err in e.errors()
        )
        raise ValidationError(f"Invalid agent response: {errors}", raw_text=raw_text, cause=e) from e


class SuggestionEnricher:
    """Attaches resolved place data (and run scores) to each place suggestion."""

    def __init__(
        self,
        cache: CandidateCache,
        scored_places: dict[str, CandidateScore] | None = None,
        concurrency: int = recommendation_config.limits.enrichment_concurrency,
    ):
        self._cache = cache
        self._scored = scored_places or {}
        self._concurrency = concurrency

    async def enrich(self, response: AgentResponse) -> AgentResponse:
        """Return a new response with unresolvable place suggestions removed."""
        semaphore = asyncio.Semaphore(self._concurrency)

        async def resolve(suggestion):
            if isinstance(suggestion, TipSuggestion):
                return suggestion

            name = (suggestion.attraction_name or "").strip()
            if not name:
                logger.info(f"Dropping {suggestion.type} suggestion without a place name")
                return None

            async with semaphore:
                try:
                    place = await self._cache.text_search(
                        TextSearchKey(query=name, include_photos=True, require_ratings=True)
                    )
                except (LookupFailure, ProviderTransportError) as e:
                    logger.info(f"Dropping suggestion '{name}': {e.message}")
                    return None

            return suggestion.model_copy(update={"attraction_data": self._attach_score(name, place)})

        resolved = await asyncio.gather(*(resolve(s) for s in response.suggestions))
        kept = [s for s in resolved if s is not None]

        if len(kept) < len(response.suggestions):
            logger.info(f"Enrichment kept {len(kept)}/{len(response.suggestions)} suggestions")
        return response.model_copy(update={"suggestions": kept})

    def _attach_score(self, name: str, place: CandidatePlace) -> EnrichedPlace:
        scored = self._scored.get(name) or self._scored.get(place.name)
        return EnrichedPlace(
            **place.model_dump(),
            score=scored.score if scored else None,
            breakdown=scored.breakdown if scored else None,
        )
