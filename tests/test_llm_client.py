import json
import unittest
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

from tripwise.errors import ModelResponseError, ProviderTransportError
from tripwise.schemas.agent import ConversationTurn, ToolCall
from tripwise.services.llm_client import LLMClient, _to_anthropic_messages
from tripwise.services.recommendation.tool_executor import TOOL_DEFINITIONS

TURNS = [
    ConversationTurn(role="system", content="be helpful"),
    ConversationTurn(role="user", content="near the Eiffel Tower?"),
]


def openai_response(content=None, tool_calls=(), finish_reason="stop", choices=True):
    message = SimpleNamespace(content=content, tool_calls=list(tool_calls) or None)
    return SimpleNamespace(
        choices=[SimpleNamespace(message=message, finish_reason=finish_reason)] if choices else [],
    )


def openai_tool_call(call_id, name, arguments, type_="function"):
    return SimpleNamespace(id=call_id, type=type_, function=SimpleNamespace(name=name, arguments=arguments))


def _client(openai=None, anthropic=None) -> LLMClient:
    client = LLMClient(openai_client=openai or MagicMock(), anthropic_client=anthropic or MagicMock())
    # Only the providers a test hands in take part
    client._openai = openai
    client._anthropic = anthropic
    return client


class OpenAIPathTest(unittest.IsolatedAsyncioTestCase):
    async def test_tool_calls_are_mapped(self):
        openai = MagicMock()
        openai.chat.completions.create = AsyncMock(return_value=openai_response(
            tool_calls=[
                openai_tool_call("call_1", "searchAttractions", '{"lat": 48.85, "lng": 2.29}'),
                openai_tool_call("call_2", "ignored", "{}", type_="custom"),
            ],
            finish_reason="tool_calls",
        ))

        result = await _client(openai=openai).complete(TURNS, tools=TOOL_DEFINITIONS, max_tokens=8192, temperature=0.7)

        kwargs = openai.chat.completions.create.await_args.kwargs
        self.assertEqual(kwargs["tools"], TOOL_DEFINITIONS)
        self.assertEqual(kwargs["tool_choice"], "auto")
        self.assertEqual(kwargs["max_tokens"], 8192)
        self.assertEqual(kwargs["temperature"], 0.7)
        self.assertEqual(kwargs["messages"][0], {"role": "system", "content": "be helpful"})
        self.assertEqual(result.tool_calls, [
            ToolCall(id="call_1", name="searchAttractions", arguments='{"lat": 48.85, "lng": 2.29}'),
        ])
        self.assertEqual(result.finish_reason, "tool_calls")

    async def test_no_tools_sends_no_tool_choice(self):
        openai = MagicMock()
        openai.chat.completions.create = AsyncMock(return_value=openai_response(content="hello"))

        result = await _client(openai=openai).complete(TURNS)

        self.assertNotIn("tool_choice", openai.chat.completions.create.await_args.kwargs)
        self.assertEqual(result.content, "hello")
        self.assertEqual(result.tool_calls, [])

    async def test_assistant_and_tool_turns_serialize(self):
        turn = ConversationTurn(
            role="assistant",
            tool_calls=[ToolCall(id="c1", name="searchRestaurants", arguments="{}")],
        )
        self.assertEqual(turn.to_message()["tool_calls"][0]["function"]["name"], "searchRestaurants")
        tool = ConversationTurn(role="tool", tool_call_id="c1", content="{}")
        self.assertEqual(tool.to_message(), {"role": "tool", "content": "{}", "tool_call_id": "c1"})

    async def test_no_choices_is_a_model_error(self):
        openai = MagicMock()
        openai.chat.completions.create = AsyncMock(return_value=openai_response(choices=False))
        anthropic = MagicMock()
        anthropic.messages.create = AsyncMock()

        with self.assertRaises(ModelResponseError):
            await _client(openai=openai, anthropic=anthropic).complete(TURNS)
        anthropic.messages.create.assert_not_awaited()


class FallbackTest(unittest.IsolatedAsyncioTestCase):
    async def test_anthropic_used_when_openai_fails(self):
        openai = MagicMock()
        openai.chat.completions.create = AsyncMock(side_effect=RuntimeError("503 upstream"))
        anthropic = MagicMock()
        anthropic.messages.create = AsyncMock(return_value=SimpleNamespace(
            content=[
                SimpleNamespace(type="text", text="Let me search."),
                SimpleNamespace(type="tool_use", id="tu_1", name="searchAttractions", input={"lat": 1, "lng": 2}),
            ],
            stop_reason="tool_use",
        ))

        result = await _client(openai=openai, anthropic=anthropic).complete(TURNS, tools=TOOL_DEFINITIONS)

        kwargs = anthropic.messages.create.await_args.kwargs
        self.assertEqual(kwargs["system"], "be helpful")
        self.assertEqual(kwargs["messages"], [{"role": "user", "content": "near the Eiffel Tower?"}])
        self.assertEqual(kwargs["tools"][0]["name"], "searchAttractions")
        self.assertIn("properties", kwargs["tools"][0]["input_schema"])
        self.assertEqual(result.content, "Let me search.")
        self.assertEqual(result.tool_calls[0].id, "tu_1")
        self.assertEqual(json.loads(result.tool_calls[0].arguments), {"lat": 1, "lng": 2})

    async def test_all_providers_fail(self):
        openai = MagicMock()
        openai.chat.completions.create = AsyncMock(side_effect=RuntimeError("down"))
        anthropic = MagicMock()
        anthropic.messages.create = AsyncMock(side_effect=RuntimeError("also down"))

        with self.assertRaises(ProviderTransportError) as ctx:
            await _client(openai=openai, anthropic=anthropic).complete(TURNS)
        self.assertEqual(ctx.exception.provider, "llm")
        self.assertIn("also down", ctx.exception.message)

    async def test_no_provider_configured(self):
        with self.assertRaises(ProviderTransportError):
            await _client().complete(TURNS)


class AnthropicMessagesTest(unittest.TestCase):
    def test_tool_results_share_one_user_message(self):
        turns = [
            *TURNS,
            ConversationTurn(role="assistant", content="searching", tool_calls=[
                ToolCall(id="a", name="searchAttractions", arguments='{"lat": 1}'),
                ToolCall(id="b", name="searchRestaurants", arguments="not json"),
            ]),
            ConversationTurn(role="tool", tool_call_id="a", content='{"attractions": []}'),
            ConversationTurn(role="tool", tool_call_id="b", content='{"error": "x"}'),
        ]

        messages = _to_anthropic_messages(turns)

        self.assertEqual([m["role"] for m in messages], ["user", "assistant", "user"])
        assistant = messages[1]["content"]
        self.assertEqual(assistant[0], {"type": "text", "text": "searching"})
        self.assertEqual(assistant[1]["input"], {"lat": 1})
        self.assertEqual(assistant[2]["input"], {})
        self.assertEqual([b["tool_use_id"] for b in messages[2]["content"]], ["a", "b"])


if __name__ == "__main__":
    unittest.main()
