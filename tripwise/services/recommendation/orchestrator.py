"""Conversation orchestrator: bounded tool-calling loop with the language model.

    AwaitingModel → (ToolCallsRequested → ExecutingTools → AwaitingModel)*
    → Answered | IterationCapReached | Failed

Tool calls of one round run concurrently (bounded), but their results are
appended in the order the model issued them so the transcript is replayable.
"""

import asyncio
import json
import logging
from dataclasses import dataclass, field
from enum import Enum

from tripwise.errors import AgentError, ModelResponseError
from tripwise.schemas.agent import ChatCompletion, ConversationTurn, ToolCall
from tripwise.services.llm_client import LLMClient
from tripwise.services.recommendation.config import RecommendationConfig, recommendation_config
from tripwise.services.recommendation.tool_executor import TOOL_DEFINITIONS, ToolExecutor

logger = logging.getLogger(__name__)


class OrchestratorState(str, Enum):
    AWAITING_MODEL = "awaiting_model"
    TOOL_CALLS_REQUESTED = "tool_calls_requested"
    EXECUTING_TOOLS = "executing_tools"
    ANSWERED = "answered"
    ITERATION_CAP_REACHED = "iteration_cap_reached"
    FAILED = "failed"


@dataclass
class RunOutcome:
    content: str
    state: OrchestratorState
    rounds: int
    turns: list[ConversationTurn] = field(default_factory=list)


class ConversationOrchestrator:
    """Drives one tool-calling conversation to a final answer."""

    def __init__(
        self,
        llm: LLMClient,
        executor: ToolExecutor,
        config: RecommendationConfig = recommendation_config,
    ):
        self._llm = llm
        self._executor = executor
        self._cfg = config
        self.state = OrchestratorState.AWAITING_MODEL

    async def run(self, turns: list[ConversationTurn]) -> RunOutcome:
        """
        Run the loop starting from `turns` (system + history + user).

        Returns the final content with the full transcript. Raises
        ModelResponseError when the model never produces content.
        """
        turns = list(turns)
        max_rounds = self._cfg.limits.max_tool_iterations
        rounds = 0

        response = await self._ask(turns)

        while response.tool_calls:
            if rounds >= max_rounds:
                self.state = OrchestratorState.ITERATION_CAP_REACHED
                logger.warning(
                    f"Tool-call cap of {max_rounds} rounds reached; "
                    f"model still wanted {[tc.name for tc in response.tool_calls]}"
                )
                break

            rounds += 1
            self.state = OrchestratorState.TOOL_CALLS_REQUESTED
            logger.info(f"Round {rounds}: model requested {[tc.name for tc in response.tool_calls]}")

            turns.append(ConversationTurn(
                role="assistant",
                content=response.content,
                tool_calls=response.tool_calls,
            ))

            self.state = OrchestratorState.EXECUTING_TOOLS
            results = await self._execute_round(response.tool_calls)
            for tool_call, result in zip(response.tool_calls, results):
                turns.append(ConversationTurn(role="tool", tool_call_id=tool_call.id, content=result))

            response = await self._ask(turns)

        content = (response.content or "").strip()
        if not content:
            self.state = OrchestratorState.FAILED
            if response.tool_calls:
                raise ModelResponseError(f"No content after {rounds} tool-call rounds")
            raise ModelResponseError("No content in final response")

        if self.state != OrchestratorState.ITERATION_CAP_REACHED:
            self.state = OrchestratorState.ANSWERED
        return RunOutcome(content=content, state=self.state, rounds=rounds, turns=turns)

    async def _ask(self, turns: list[ConversationTurn]) -> ChatCompletion:
        self.state = OrchestratorState.AWAITING_MODEL
        try:
            return await self._llm.complete(
                turns,
                tools=TOOL_DEFINITIONS,
                max_tokens=self._cfg.llm.max_tokens,
                temperature=self._cfg.llm.temperature,
            )
        except AgentError:
            self.state = OrchestratorState.FAILED
            raise

    async def _execute_round(self, tool_calls: list[ToolCall]) -> list[str]:
        """Run all calls with bounded concurrency; results come back in issue order."""
        semaphore = asyncio.Semaphore(self._cfg.limits.tool_concurrency)

        async def run_one(tool_call: ToolCall) -> str:
            async with semaphore:
                try:
                    return await self._executor.execute(tool_call)
                except AgentError as e:
                    # One failed call must not sink the round; the model sees the error
                    logger.warning(f"Tool call {tool_call.name} ({tool_call.id}) failed: {e.message}")
                    return json.dumps({"error": e.message})

        return list(await asyncio.gather(*(run_one(tc) for tc in tool_calls)))
