import asyncio
import json
import unittest

from tripwise.errors import InvalidToolCall, ModelResponseError, PlaceNotFound, ProviderTransportError
from tripwise.schemas.agent import ConversationTurn
from tripwise.services.recommendation.config import LoopLimits, RecommendationConfig
from tripwise.services.recommendation.orchestrator import ConversationOrchestrator, OrchestratorState
from tripwise.services.recommendation.tool_executor import TOOL_DEFINITIONS
from tests.fakes import ScriptedLLM, answer, tool_round

START = [
    ConversationTurn(role="system", content="system prompt"),
    ConversationTurn(role="user", content="Suggest things near the Eiffel Tower"),
]


class DelayedExecutor:
    """Finishes calls after per-id delays so completion order differs from issue order."""

    def __init__(self, delays: dict[str, float] | None = None, errors: dict[str, Exception] | None = None):
        self.delays = delays or {}
        self.errors = errors or {}
        self.finished: list[str] = []
        self.running = 0
        self.max_running = 0

    async def execute(self, tool_call):
        self.running += 1
        self.max_running = max(self.max_running, self.running)
        try:
            await asyncio.sleep(self.delays.get(tool_call.id, 0))
            if tool_call.id in self.errors:
                raise self.errors[tool_call.id]
            return json.dumps({"result": tool_call.id})
        finally:
            self.running -= 1
            self.finished.append(tool_call.id)


class OrchestratorTest(unittest.IsolatedAsyncioTestCase):
    async def test_direct_answer(self):
        llm = ScriptedLLM([answer({"_thinking": [], "suggestions": [], "summary": "ok"})])
        orchestrator = ConversationOrchestrator(llm, DelayedExecutor())

        outcome = await orchestrator.run(START)

        self.assertEqual(outcome.state, OrchestratorState.ANSWERED)
        self.assertEqual(outcome.rounds, 0)
        self.assertEqual(json.loads(outcome.content)["summary"], "ok")
        request = llm.requests[0]
        self.assertEqual(request["tools"], TOOL_DEFINITIONS)
        self.assertEqual(request["temperature"], 0.7)
        self.assertEqual(request["max_tokens"], 8192)

    async def test_results_follow_issue_order(self):
        llm = ScriptedLLM([
            tool_round(
                ("A", "searchAttractions", {}),
                ("B", "searchRestaurants", {}),
                ("C", "getPlaceDetails", {"placeId": "x"}),
            ),
            answer("{\"done\": true}"),
        ])
        executor = DelayedExecutor(delays={"A": 0.03, "B": 0.02, "C": 0.0})
        orchestrator = ConversationOrchestrator(llm, executor)

        outcome = await orchestrator.run(START)

        self.assertEqual(executor.finished, ["C", "B", "A"])
        appended = outcome.turns[len(START):]
        self.assertEqual(appended[0].role, "assistant")
        self.assertEqual([tc.id for tc in appended[0].tool_calls], ["A", "B", "C"])
        self.assertEqual([t.tool_call_id for t in appended[1:]], ["A", "B", "C"])
        self.assertEqual([json.loads(t.content)["result"] for t in appended[1:]], ["A", "B", "C"])
        # The model saw the full transcript on the second call
        self.assertEqual(len(llm.last_messages), len(START) + 4)

    async def test_tool_concurrency_is_bounded(self):
        calls = [(f"c{i}", "searchAttractions", {}) for i in range(7)]
        llm = ScriptedLLM([tool_round(*calls), answer("{}")])
        executor = DelayedExecutor(delays={f"c{i}": 0.01 for i in range(7)})

        await ConversationOrchestrator(llm, executor).run(START)

        self.assertEqual(executor.max_running, 3)
        self.assertEqual(len(executor.finished), 7)

    async def test_iteration_cap_is_exactly_five_rounds(self):
        rounds = [tool_round((f"r{i}", "searchAttractions", {})) for i in range(5)]
        capped = tool_round(("r5", "searchAttractions", {}))
        capped = capped.model_copy(update={"content": "{\"summary\": \"partial\"}"})
        llm = ScriptedLLM([*rounds, capped])
        executor = DelayedExecutor()
        orchestrator = ConversationOrchestrator(llm, executor)

        outcome = await orchestrator.run(START)

        self.assertEqual(outcome.rounds, 5)
        self.assertEqual(len(executor.finished), 5)
        self.assertEqual(len(llm.requests), 6)
        self.assertEqual(outcome.state, OrchestratorState.ITERATION_CAP_REACHED)
        self.assertEqual(outcome.content, "{\"summary\": \"partial\"}")

    async def test_iteration_cap_without_content_fails(self):
        llm = ScriptedLLM([tool_round((f"r{i}", "searchAttractions", {})) for i in range(6)])
        orchestrator = ConversationOrchestrator(llm, DelayedExecutor())

        with self.assertRaises(ModelResponseError):
            await orchestrator.run(START)
        self.assertEqual(orchestrator.state, OrchestratorState.FAILED)
        self.assertEqual(len(llm.requests), 6)

    async def test_custom_cap(self):
        config = RecommendationConfig(limits=LoopLimits(max_tool_iterations=1))
        llm = ScriptedLLM([
            tool_round(("r0", "searchAttractions", {})),
            tool_round(("r1", "searchAttractions", {})).model_copy(update={"content": "{}"}),
        ])
        outcome = await ConversationOrchestrator(llm, DelayedExecutor(), config).run(START)
        self.assertEqual(outcome.rounds, 1)

    async def test_empty_final_content(self):
        llm = ScriptedLLM([answer("   ")])
        orchestrator = ConversationOrchestrator(llm, DelayedExecutor())
        with self.assertRaises(ModelResponseError):
            await orchestrator.run(START)
        self.assertEqual(orchestrator.state, OrchestratorState.FAILED)

    async def test_failed_call_becomes_error_content(self):
        llm = ScriptedLLM([
            tool_round(
                ("ok", "searchAttractions", {}),
                ("bad", "bookHotel", {}),
                ("gone", "getPlaceDetails", {"placeId": "x"}),
                ("net", "searchRestaurants", {}),
            ),
            answer("{}"),
        ])
        executor = DelayedExecutor(errors={
            "bad": InvalidToolCall("Unknown tool: bookHotel", "bookHotel"),
            "gone": PlaceNotFound("x"),
            "net": ProviderTransportError("places", "timeout"),
        })

        outcome = await ConversationOrchestrator(llm, executor).run(START)

        tool_turns = {t.tool_call_id: json.loads(t.content) for t in outcome.turns if t.role == "tool"}
        self.assertEqual(tool_turns["ok"], {"result": "ok"})
        self.assertEqual(tool_turns["bad"], {"error": "Unknown tool: bookHotel"})
        self.assertIn("error", tool_turns["gone"])
        self.assertEqual(tool_turns["net"], {"error": "places: timeout"})
        self.assertEqual(outcome.state, OrchestratorState.ANSWERED)

    async def test_unexpected_errors_propagate(self):
        llm = ScriptedLLM([tool_round(("boom", "searchAttractions", {})), answer("{}")])
        executor = DelayedExecutor(errors={"boom": KeyError("bug")})
        with self.assertRaises(KeyError):
            await ConversationOrchestrator(llm, executor).run(START)

    async def test_model_failure_is_terminal(self):
        class FailingLLM:
            async def complete(self, *args, **kwargs):
                raise ProviderTransportError("llm", "All LLM providers failed")

        orchestrator = ConversationOrchestrator(FailingLLM(), DelayedExecutor())
        with self.assertRaises(ProviderTransportError):
            await orchestrator.run(START)
        self.assertEqual(orchestrator.state, OrchestratorState.FAILED)

    async def test_input_turns_are_not_mutated(self):
        llm = ScriptedLLM([tool_round(("A", "searchAttractions", {})), answer("{}")])
        start = list(START)
        await ConversationOrchestrator(llm, DelayedExecutor()).run(start)
        self.assertEqual(len(start), 2)


if __name__ == "__main__":
    unittest.main()
