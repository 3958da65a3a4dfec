"""Scoring engine: ranks candidate places with a weighted, explainable composite.

Sub-scores are each 0-100:
- quality     rating (60%) + log10(reviews) (40%), saturating on review volume
- persona     present only when personas are active; matching places get a boost
- diversity   attractions batches of two or more; rewards places whose rarest category is rare
- confidence  data completeness: review-volume tiers, less missing rating (and price/hours for restaurants)

Pure and deterministic: no I/O, no clock, no randomness.
"""

import math
from dataclasses import dataclass

from tripwise.data.personas import PersonaType, categories_for
from tripwise.schemas.places import CandidatePlace, CandidateScore, ScoreBreakdown

MIN_REVIEW_COUNT = 10
HIGH_SCORE_THRESHOLD = 70.0

PERSONA_MATCH_BOOST = 1.3
FOODIE_RESTAURANT_BOOST = 1.1
PERSONA_MATCH_SCORE = 100.0
PERSONA_MISS_SCORE = 10.0

# Confidence lost per missing field (rating always; price and opening hours for restaurants)
MISSING_FIELD_PENALTY = 15.0


@dataclass(frozen=True)
class Weights:
    quality: float
    confidence: float
    diversity: float = 0.0
    persona: float = 0.0  # informational; persona acts as a multiplier


ATTRACTION_WEIGHTS = Weights(quality=0.5, confidence=0.2, diversity=0.2, persona=0.1)
RESTAURANT_WEIGHTS = Weights(quality=0.7, confidence=0.3)


def eligible_candidates(candidates: list[CandidatePlace]) -> list[CandidatePlace]:
    """Drop unrated places and places under the review-count floor before scoring."""
    return [
        c for c in candidates
        if c.rating and c.rating > 0 and c.review_count >= MIN_REVIEW_COUNT
    ]


def dedupe_by_id(candidates: list[CandidatePlace]) -> list[CandidatePlace]:
    """Last-seen wins, first-seen position kept."""
    by_id: dict[str, CandidatePlace] = {}
    for c in candidates:
        by_id[c.id] = c
    return list(by_id.values())


def score_attractions(
    candidates: list[CandidatePlace],
    personas: list[PersonaType] | None = None,
) -> list[CandidateScore]:
    return score_candidates(candidates, personas, kind="attractions")


def score_restaurants(
    candidates: list[CandidatePlace],
    personas: list[PersonaType] | None = None,
) -> list[CandidateScore]:
    return score_candidates(candidates, personas, kind="restaurants")


def score_candidates(
    candidates: list[CandidatePlace],
    personas: list[PersonaType] | None = None,
    *,
    kind: str = "attractions",
) -> list[CandidateScore]:
    """
    Score and rank candidates.

    Returns CandidateScore list sorted by score descending. The sort is stable,
    so equal scores keep their input order.
    """
    if not candidates:
        return []

    personas = [PersonaType(p) for p in personas or []]
    is_restaurants = kind == "restaurants"
    weights = RESTAURANT_WEIGHTS if is_restaurants else ATTRACTION_WEIGHTS

    # Category frequency across the batch, for diversity
    type_frequency: dict[str, int] = {}
    if not is_restaurants:
        for c in candidates:
            for category in set(c.categories):
                type_frequency[category] = type_frequency.get(category, 0) + 1
    max_frequency = max(type_frequency.values(), default=0)
    # A lone candidate has nothing to be over-represented against
    has_diversity = not is_restaurants and len(candidates) > 1

    persona_categories = categories_for(personas)

    scored = []
    for place in candidates:
        quality = _quality_score(place)
        confidence = _confidence_score(place, is_restaurants)

        base = weights.quality * quality + weights.confidence * confidence

        diversity = None
        if has_diversity:
            diversity = _diversity_score(place, type_frequency, max_frequency)
            base += weights.diversity * diversity

        persona_score = None
        boost = 1.0
        if personas:
            if is_restaurants:
                matched = PersonaType.FOODIE_TRAVELER in personas
                boost = FOODIE_RESTAURANT_BOOST if matched else 1.0
            else:
                matched = bool(persona_categories.intersection(place.categories))
                boost = PERSONA_MATCH_BOOST if matched else 1.0
            persona_score = PERSONA_MATCH_SCORE if matched else PERSONA_MISS_SCORE

        scored.append(CandidateScore(
            place=place,
            score=_round(_clamp(base * boost)),
            breakdown=ScoreBreakdown(
                quality_score=_round(quality),
                persona_score=persona_score,
                diversity_score=_round(diversity) if diversity is not None else None,
                confidence_score=_round(confidence),
            ),
        ))

    scored.sort(key=lambda s: s.score, reverse=True)
    return scored


def high_score_only(
    scores: list[CandidateScore], threshold: float = HIGH_SCORE_THRESHOLD,
) -> list[CandidateScore]:
    return [s for s in scores if s.score >= threshold]


def _quality_score(place: CandidatePlace) -> float:
    if not place.rating or place.rating <= 0 or place.review_count <= 0:
        return 0.0
    rating_component = (place.rating / 5) * 60
    review_component = (math.log10(place.review_count + 1) / 5) * 40
    return _clamp(rating_component + review_component)


def _confidence_score(place: CandidatePlace, is_restaurant: bool = False) -> float:
    """Data completeness: review-volume tier, less a penalty per missing relevant field."""
    if place.review_count > 100:
        confidence = 100.0
    elif place.review_count > 20:
        confidence = 70.0
    else:
        confidence = 40.0

    fields = [place.rating]
    if is_restaurant:
        fields += [place.price_level, place.open_now]
    confidence -= MISSING_FIELD_PENALTY * sum(1 for value in fields if value is None)
    return _clamp(confidence)


def _diversity_score(
    place: CandidatePlace, type_frequency: dict[str, int], max_frequency: int,
) -> float:
    if max_frequency == 0:
        return 100.0
    if not place.categories:
        return 0.0
    # Rarest category decides, so one common tag doesn't sink an unusual place
    min_frequency = min(type_frequency.get(c, 0) for c in place.categories)
    return _clamp(100 - (min_frequency / max_frequency) * 100)


def _clamp(value: float) -> float:
    return max(0.0, min(value, 100.0))


def _round(value: float) -> float:
    return round(value, 1)
