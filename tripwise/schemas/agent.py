from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from tripwise.data.personas import PersonaType
from tripwise.schemas.places import CandidatePlace, EnrichedPlace, Location

Priority = Literal["must-see", "highly recommended", "hidden gem"]


# ---------- Conversation ----------


class ToolCall(BaseModel):
    id: str
    name: str
    arguments: str  # raw JSON text as emitted by the model


class ConversationTurn(BaseModel):
    role: Literal["user", "assistant", "system", "tool"]
    content: str | None = None
    tool_calls: list[ToolCall] | None = None
    tool_call_id: str | None = None

    def to_message(self) -> dict:
        """OpenAI chat-completions message dict."""
        message: dict = {"role": self.role, "content": self.content}
        if self.tool_calls:
            message["tool_calls"] = [
                {
                    "id": tc.id,
                    "type": "function",
                    "function": {"name": tc.name, "arguments": tc.arguments},
                }
                for tc in self.tool_calls
            ]
        if self.tool_call_id:
            message["tool_call_id"] = self.tool_call_id
        return message


class ChatCompletion(BaseModel):
    content: str | None = None
    tool_calls: list[ToolCall] = Field(default_factory=list)
    finish_reason: str | None = None


# ---------- Agent response (model output) ----------


class _SuggestionBase(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, strict=True, frozen=True,
    )

    reasoning: str


class AttractionSuggestion(_SuggestionBase):
    type: Literal["add_attraction"]
    attraction_name: str | None = None
    priority: Priority | None = None
    attraction_data: EnrichedPlace | None = None


class RestaurantSuggestion(_SuggestionBase):
    type: Literal["add_restaurant"]
    attraction_name: str | None = None
    priority: Priority | None = None
    attraction_data: EnrichedPlace | None = None


class TipSuggestion(_SuggestionBase):
    type: Literal["general_tip"]


Suggestion = Annotated[
    Union[AttractionSuggestion, RestaurantSuggestion, TipSuggestion],
    Field(discriminator="type"),
]


class AgentResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True, strict=True, frozen=True)

    thinking: list[str] = Field(alias="_thinking")
    suggestions: list[Suggestion]
    summary: str

    def to_wire(self) -> dict:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


# ---------- Caller context ----------


class ConversationMessage(BaseModel):
    role: Literal["user", "assistant", "system"]
    content: str


class CurrentPlace(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str
    name: str
    planned_attractions: list[CandidatePlace] = Field(default_factory=list)
    planned_restaurants: list[CandidatePlace] = Field(default_factory=list)

    @property
    def planned_ids(self) -> set[str]:
        return {p.id for p in self.planned_attractions} | {p.id for p in self.planned_restaurants}


class SuggestionRequest(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    place: CurrentPlace
    map_coordinates: Location
    personas: list[PersonaType] = Field(default_factory=list)
    conversation_history: list[ConversationMessage] = Field(default_factory=list)
    user_message: str | None = None
