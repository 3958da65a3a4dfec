"""Unified LLM client: OpenAI-compatible endpoint first, Anthropic fallback. Supports tool calls."""

import json
import logging

import anthropic
from openai import AsyncOpenAI

from tripwise.config import settings
from tripwise.errors import ModelResponseError, ProviderTransportError
from tripwise.schemas.agent import ChatCompletion, ConversationTurn, ToolCall

logger = logging.getLogger(__name__)


class LLMClient:
    """Unified async chat-completion client with tool calling."""

    def __init__(self, openai_client=None, anthropic_client=None):
        self._openai = openai_client
        self._anthropic = anthropic_client

        if self._openai is None and settings.openai_api_key:
            self._openai = AsyncOpenAI(
                api_key=settings.openai_api_key,
                base_url=settings.openai_base_url or None,
                timeout=settings.llm_timeout_seconds,
                default_headers={
                    "HTTP-Referer": settings.openai_app_referer,
                    "X-Title": settings.openai_app_title,
                },
            )
        if self._anthropic is None and settings.anthropic_api_key:
            self._anthropic = anthropic.AsyncAnthropic(
                api_key=settings.anthropic_api_key,
                timeout=settings.llm_timeout_seconds,
            )

    async def complete(
        self,
        messages: list[ConversationTurn],
        *,
        tools: list[dict] | None = None,
        max_tokens: int = 1000,
        temperature: float = 0,
    ) -> ChatCompletion:
        """Run one chat completion over the full conversation.

        Args:
            messages: Conversation so far, system turn included.
            tools: OpenAI function-tool definitions, or None.
            max_tokens: Max output tokens
            temperature: Sampling temperature

        Returns:
            ChatCompletion with text content and/or requested tool calls.

        Raises:
            ProviderTransportError if every configured provider fails.
        """
        errors = []

        if self._openai:
            try:
                return await self._complete_openai(messages, tools, max_tokens, temperature)
            except ModelResponseError:
                raise
            except Exception as e:
                errors.append(f"OpenAI: {e}")
                logger.warning(f"OpenAI-compatible call failed, trying Anthropic: {e}")

        if self._anthropic:
            try:
                return await self._complete_anthropic(messages, tools, max_tokens, temperature)
            except Exception as e:
                errors.append(f"Anthropic: {e}")
                logger.warning(f"Anthropic also failed: {e}")

        if not errors:
            raise ProviderTransportError("llm", "No LLM provider configured")
        raise ProviderTransportError("llm", f"All LLM providers failed: {'; '.join(errors)}")

    async def _complete_openai(
        self,
        messages: list[ConversationTurn],
        tools: list[dict] | None,
        max_tokens: int,
        temperature: float,
    ) -> ChatCompletion:
        kwargs: dict = {
            "model": settings.openai_model,
            "max_tokens": max_tokens,
            "temperature": temperature,
            "messages": [m.to_message() for m in messages],
        }
        if tools:
            kwargs["tools"] = tools
            kwargs["tool_choice"] = "auto"

        logger.debug(f"Calling {settings.openai_model} with {len(messages)} messages")
        response = await self._openai.chat.completions.create(**kwargs)

        if not response.choices:
            raise ModelResponseError("No response choice returned from model")
        choice = response.choices[0]
        message = choice.message

        tool_calls = [
            ToolCall(id=call.id, name=call.function.name, arguments=call.function.arguments or "{}")
            for call in (message.tool_calls or [])
            if call.type == "function"
        ]

        logger.debug(
            f"Model response: content={bool(message.content)}, "
            f"tool_calls={len(tool_calls)}, finish_reason={choice.finish_reason}"
        )
        return ChatCompletion(
            content=message.content,
            tool_calls=tool_calls,
            finish_reason=choice.finish_reason,
        )

    async def _complete_anthropic(
        self,
        messages: list[ConversationTurn],
        tools: list[dict] | None,
        max_tokens: int,
        temperature: float,
    ) -> ChatCompletion:
        system = "\n\n".join(m.content or "" for m in messages if m.role == "system")
        kwargs: dict = {
            "model": settings.anthropic_model,
            "max_tokens": max_tokens,
            "temperature": temperature,
            "messages": _to_anthropic_messages(messages),
        }
        if system:
            kwargs["system"] = system
        if tools:
            kwargs["tools"] = [
                {
                    "name": t["function"]["name"],
                    "description": t["function"].get("description", ""),
                    "input_schema": t["function"]["parameters"],
                }
                for t in tools
            ]

        response = await self._anthropic.messages.create(**kwargs)

        text_parts = []
        tool_calls = []
        for block in response.content:
            if block.type == "text":
                text_parts.append(block.text)
            elif block.type == "tool_use":
                tool_calls.append(ToolCall(id=block.id, name=block.name, arguments=json.dumps(block.input)))

        return ChatCompletion(
            content="".join(text_parts).strip() or None,
            tool_calls=tool_calls,
            finish_reason=response.stop_reason,
        )


def _to_anthropic_messages(messages: list[ConversationTurn]) -> list[dict]:
    """Translate OpenAI-style turns; consecutive tool results share one user message."""
    result: list[dict] = []
    for m in messages:
        if m.role == "system":
            continue
        if m.role == "tool":
            block = {"type": "tool_result", "tool_use_id": m.tool_call_id, "content": m.content or ""}
            if result and result[-1]["role"] == "user" and isinstance(result[-1]["content"], list):
                result[-1]["content"].append(block)
            else:
                result.append({"role": "user", "content": [block]})
            continue
        if m.role == "assistant" and m.tool_calls:
            blocks: list[dict] = []
            if m.content:
                blocks.append({"type": "text", "text": m.content})
            for tc in m.tool_calls:
                try:
                    tool_input = json.loads(tc.arguments or "{}")
                except json.JSONDecodeError:
                    tool_input = {}
                blocks.append({"type": "tool_use", "id": tc.id, "name": tc.name, "input": tool_input})
            result.append({"role": "assistant", "content": blocks})
            continue
        result.append({"role": m.role, "content": m.content or ""})
    return result


# Singleton
llm_client = LLMClient()
