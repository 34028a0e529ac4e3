"""Gemini backend via the ``google-genai`` async client."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator, Sequence
from typing import Any

import httpx
from google import genai
from google.genai import errors as genai_errors
from google.genai import types

from ..errors import ProviderError
from ..models.research import ChatMessage, ToolCall, make_id
from ..retry import with_retry
from .base import StreamDelta, ToolDefinition

logger = logging.getLogger(__name__)


def _visible_parts(candidate_holder: Any) -> list[types.Part]:
    """Return the parts of the first candidate, or an empty list."""
    candidates = getattr(candidate_holder, "candidates", None)
    if not candidates or candidates[0].content is None:
        return []
    return list(candidates[0].content.parts or [])


def _response_text(response: Any) -> str:
    """Join the user-visible text parts, skipping thinking parts."""
    parts = _visible_parts(response)
    text_parts = [p.text for p in parts if p.text and not getattr(p, "thought", False)]
    return "\n".join(text_parts) if text_parts else (response.text or "")


def to_gemini_contents(messages: Sequence[ChatMessage]) -> tuple[list[types.Content], str]:
    """Convert chat history to Gemini contents plus a system instruction.

    Tool results are sent back as ``function_response`` parts; the tool name
    is recovered from the assistant turn that proposed the call.
    """
    contents: list[types.Content] = []
    system_lines: list[str] = []
    names_by_call_id: dict[str, str] = {}

    for msg in messages:
        if msg.role == "system":
            system_lines.append(msg.content)
        elif msg.role == "assistant":
            parts: list[types.Part] = []
            if msg.content:
                parts.append(types.Part(text=msg.content))
            for call in msg.tool_calls or []:
                names_by_call_id[call.tool_call_id] = call.tool_name
                parts.append(types.Part(
                    function_call=types.FunctionCall(id=call.tool_call_id, name=call.tool_name, args=call.args),
                ))
            if parts:
                contents.append(types.Content(role="model", parts=parts))
        elif msg.role == "tool":
            name = names_by_call_id.get(msg.tool_call_id or "", "tool")
            contents.append(types.Content(role="user", parts=[types.Part(
                function_response=types.FunctionResponse(
                    id=msg.tool_call_id, name=name, response={"result": msg.content},
                ),
            )]))
        else:
            contents.append(types.Content(role="user", parts=[types.Part(text=msg.content)]))

    return contents, "\n\n".join(system_lines)


def to_gemini_tool(tools: Sequence[ToolDefinition]) -> types.Tool:
    return types.Tool(function_declarations=[
        types.FunctionDeclaration(
            name=tool.name,
            description=tool.description,
            parameters_json_schema=tool.parameters,
        )
        for tool in tools
    ])


class GeminiGateway:
    """LLM gateway for Gemini models."""

    provider = "google"

    def __init__(self, client: genai.Client, model: str) -> None:
        self._client = client
        self.model = model

    def _config(
        self,
        *,
        json_mode: bool = False,
        tools: Sequence[ToolDefinition] | None = None,
        system_instruction: str = "",
    ) -> types.GenerateContentConfig:
        config = types.GenerateContentConfig()
        if "gemini-3" in self.model:
            config.thinking_config = types.ThinkingConfig(thinking_level="high")
        if json_mode:
            config.response_mime_type = "application/json"
        if tools:
            config.tools = [to_gemini_tool(tools)]
        if system_instruction:
            config.system_instruction = system_instruction
        return config

    async def complete_text(self, prompt: str, *, json_mode: bool = False) -> str:
        config = self._config(json_mode=json_mode)
        try:
            response = await with_retry(
                lambda: self._client.aio.models.generate_content(
                    model=self.model,
                    contents=prompt,
                    config=config,
                )
            )
        except (genai_errors.APIError, httpx.HTTPError) as exc:
            raise ProviderError(self.provider, str(exc)) from exc
        return _response_text(response)

    async def stream_text(
        self,
        messages: Sequence[ChatMessage],
        *,
        tools: Sequence[ToolDefinition] | None = None,
    ) -> AsyncIterator[StreamDelta]:
        contents, system_instruction = to_gemini_contents(messages)
        config = self._config(tools=tools, system_instruction=system_instruction)

        calls: list[ToolCall] = []
        try:
            stream = await with_retry(
                lambda: self._client.aio.models.generate_content_stream(
                    model=self.model,
                    contents=contents,
                    config=config,
                )
            )
            async for chunk in stream:
                for part in _visible_parts(chunk):
                    if part.function_call is not None:
                        call = part.function_call
                        calls.append(ToolCall(
                            tool_call_id=call.id or make_id("call"),
                            tool_name=call.name or "",
                            args=dict(call.args or {}),
                        ))
                    elif part.text and not getattr(part, "thought", False):
                        yield StreamDelta(text=part.text)
        except (genai_errors.APIError, httpx.HTTPError) as exc:
            raise ProviderError(self.provider, str(exc)) from exc

        if calls:
            yield StreamDelta(tool_calls=calls)
