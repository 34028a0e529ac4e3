"""OpenRouter backend: OpenAI-compatible chat completions via the ``openai`` SDK."""

from __future__ import annotations

import json
import logging
from collections.abc import AsyncIterator, Sequence
from typing import Any

import openai

from ..errors import ProviderError
from ..models.research import ChatMessage, ToolCall, make_id
from ..retry import with_retry
from ..types import coerce_json_param
from .base import StreamDelta, ToolDefinition

logger = logging.getLogger(__name__)


def to_openai_messages(messages: Sequence[ChatMessage]) -> list[dict[str, Any]]:
    """Convert chat history to the Chat Completions message format."""
    converted: list[dict[str, Any]] = []
    for msg in messages:
        if msg.role == "tool":
            converted.append({
                "role": "tool",
                "tool_call_id": msg.tool_call_id or "",
                "content": msg.content,
            })
        elif msg.role == "assistant" and msg.tool_calls:
            converted.append({
                "role": "assistant",
                "content": msg.content or None,
                "tool_calls": [
                    {
                        "id": call.tool_call_id,
                        "type": "function",
                        "function": {"name": call.tool_name, "arguments": json.dumps(call.args)},
                    }
                    for call in msg.tool_calls
                ],
            })
        else:
            converted.append({"role": msg.role, "content": msg.content})
    return converted


def to_openai_tool(tool: ToolDefinition) -> dict[str, Any]:
    return {
        "type": "function",
        "function": {
            "name": tool.name,
            "description": tool.description,
            "parameters": tool.parameters,
        },
    }


def _finish_tool_call(slot: dict[str, str]) -> ToolCall:
    """Build a ToolCall from accumulated streaming fragments."""
    args = coerce_json_param(slot["arguments"] or "{}", dict)
    if not isinstance(args, dict):
        logger.warning("Discarding unparseable arguments for tool %s: %r", slot["name"], slot["arguments"])
        args = {}
    return ToolCall(
        tool_call_id=slot["id"] or make_id("call"),
        tool_name=slot["name"],
        args=args,
    )


class OpenRouterGateway:
    """LLM gateway for any model routed through OpenRouter."""

    provider = "openrouter"

    def __init__(self, client: openai.AsyncOpenAI, model: str) -> None:
        self._client = client
        self.model = model

    async def complete_text(self, prompt: str, *, json_mode: bool = False) -> str:
        # json_mode is not forwarded: response_format support varies per routed model.
        try:
            response = await with_retry(
                lambda: self._client.chat.completions.create(
                    model=self.model,
                    messages=[{"role": "user", "content": prompt}],
                )
            )
        except openai.OpenAIError as exc:
            raise ProviderError(self.provider, str(exc)) from exc

        if not response.choices:
            return ""
        return response.choices[0].message.content or ""

    async def stream_text(
        self,
        messages: Sequence[ChatMessage],
        *,
        tools: Sequence[ToolDefinition] | None = None,
    ) -> AsyncIterator[StreamDelta]:
        kwargs: dict[str, Any] = {
            "model": self.model,
            "messages": to_openai_messages(messages),
            "stream": True,
        }
        if tools:
            kwargs["tools"] = [to_openai_tool(t) for t in tools]

        # Tool-call names/arguments arrive in fragments keyed by index.
        partial: dict[int, dict[str, str]] = {}
        try:
            stream = await with_retry(lambda: self._client.chat.completions.create(**kwargs))
            async for chunk in stream:
                if not chunk.choices:
                    continue
                delta = chunk.choices[0].delta
                for fragment in delta.tool_calls or []:
                    slot = partial.setdefault(fragment.index, {"id": "", "name": "", "arguments": ""})
                    if fragment.id:
                        slot["id"] = fragment.id
                    if fragment.function is not None:
                        slot["name"] += fragment.function.name or ""
                        slot["arguments"] += fragment.function.arguments or ""
                if delta.content:
                    yield StreamDelta(text=delta.content)
        except openai.OpenAIError as exc:
            raise ProviderError(self.provider, str(exc)) from exc

        calls = [_finish_tool_call(slot) for _, slot in sorted(partial.items())]
        if calls:
            yield StreamDelta(tool_calls=calls)
