from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Location(_CamelModel):
    lat: float = Field(ge=-90, le=90)
    lng: float = Field(ge=-180, le=180)


class PlacePhoto(_CamelModel):
    photo_reference: str
    width: int | None = None
    height: int | None = None
    attributions: list[str] = Field(default_factory=list)


class CandidatePlace(_CamelModel):
    """A place as returned by the places provider. Never mutated after fetch."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    id: str
    name: str
    rating: float | None = None
    review_count: int = 0
    categories: list[str] = Field(default_factory=list)
    price_level: int | None = None
    open_now: bool | None = None
    location: Location
    photos: list[PlacePhoto] = Field(default_factory=list)
    vicinity: str = ""


class ScoreBreakdown(_CamelModel):
    quality_score: float = Field(ge=0, le=100)
    persona_score: float | None = Field(default=None, ge=0, le=100)
    diversity_score: float | None = Field(default=None, ge=0, le=100)
    confidence_score: float = Field(ge=0, le=100)


class CandidateScore(_CamelModel):
    place: CandidatePlace
    score: float = Field(ge=0, le=100)
    breakdown: ScoreBreakdown


class EnrichedPlace(CandidatePlace):
    """Resolved place attached to a suggestion, with its run score when known."""

    score: float | None = None
    breakdown: ScoreBreakdown | None = None


def dump_json(model: BaseModel) -> dict:
    """Wire shape: camelCase keys, no nulls."""
    return model.model_dump(mode="json", by_alias=True, exclude_none=True)
