"""Recommendation engine configuration: single source for all limits."""

from dataclasses import dataclass, field


@dataclass(frozen=True)
class LLMParams:
    """Parameters for every model round-trip in a run."""
    max_tokens: int = 8192
    temperature: float = 0.7


@dataclass(frozen=True)
class LoopLimits:
    """Bounds on the tool-calling loop and its fan-out."""
    max_tool_iterations: int = 5   # rounds of tool calls before forcing an answer
    tool_concurrency: int = 3      # parallel tool executions per round
    enrichment_concurrency: int = 3  # parallel place lookups during enrichment


@dataclass(frozen=True)
class SearchDefaults:
    """Defaults and clamps for the search tools."""
    radius_default: float = 2000.0
    radius_min: float = 100.0
    radius_max: float = 50000.0
    attractions_limit: int = 15
    restaurants_limit: int = 10
    limit_min: int = 1
    limit_max: int = 50

    def clamp_radius(self, radius: float | None) -> float:
        if radius is None:
            return self.radius_default
        return max(self.radius_min, min(radius, self.radius_max))

    def clamp_limit(self, limit: int | None, default: int) -> int:
        if limit is None:
            return default
        return max(self.limit_min, min(int(limit), self.limit_max))


@dataclass(frozen=True)
class RecommendationConfig:
    """Top-level config aggregating all sub-configs."""
    llm: LLMParams = field(default_factory=LLMParams)
    limits: LoopLimits = field(default_factory=LoopLimits)
    search: SearchDefaults = field(default_factory=SearchDefaults)
    default_user_message: str = "Suggest new attractions and restaurants for this place."


# Singleton, import this everywhere
recommendation_config = RecommendationConfig()
