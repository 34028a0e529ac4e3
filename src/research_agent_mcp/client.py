"""HTTP client for the streaming research endpoint.

Posts a request, decodes the line-prefixed body as it arrives, and folds the
events through the reducer so callers can drive a run step by step::

    async with ResearchClient("http://127.0.0.1:8000") as client:
        state = await client.run({"topic": "quantum drug discovery"})
        call = state.pending_tool_calls[0]
        state = await client.call_tool(state, call)
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from typing import Any

import httpx

from .models.events import ResearchEvent
from .models.research import ToolCall
from .protocol import StreamDecoder
from .reducer import ResearchState, reduce

logger = logging.getLogger(__name__)


def _require_open(state: ResearchState) -> None:
    if state.is_finished:
        raise ValueError(f"Run already finished in phase '{state.phase}'; start a new run")


class ResearchClient:
    """Async client for ``POST /research`` and ``POST /chat``."""

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = 120.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._http = httpx.AsyncClient(base_url=base_url, timeout=timeout, transport=transport)

    async def __aenter__(self) -> ResearchClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._http.aclose()

    async def iter_events(self, body: dict[str, Any], *, path: str = "/research") -> AsyncIterator[ResearchEvent]:
        """Stream decoded events for one request, in arrival order."""
        decoder = StreamDecoder()
        async with self._http.stream("POST", path, json=body) as resp:
            resp.raise_for_status()
            async for chunk in resp.aiter_bytes():
                for event in decoder.feed(chunk):
                    yield event
        for event in decoder.flush():
            yield event

    async def run(
        self,
        body: dict[str, Any],
        state: ResearchState | None = None,
        *,
        path: str = "/research",
    ) -> ResearchState:
        """Send one request and return the state after all its events."""
        state = state or ResearchState(topic=body.get("topic") or "")
        async for event in self.iter_events(body, path=path):
            state = reduce(state, event)
        logger.info("Run finished in phase %s", state.phase)
        return state

    async def call_tool(self, state: ResearchState, tool_call: ToolCall, **extra: Any) -> ResearchState:
        """Ask the server to execute a pending tool call."""
        _require_open(state)
        body = {
            "mode": "call-tool",
            "topic": state.topic,
            "toolCall": tool_call.to_wire(),
            "history": [m.to_wire() for m in state.messages],
            **extra,
        }
        return await self.run(body, state)

    async def proceed(self, state: ResearchState, selected_id: str | None = None, **extra: Any) -> ResearchState:
        """Evaluate the ideas and write the report for the selected one."""
        _require_open(state)
        body = {
            "mode": "proceed",
            "topic": state.topic,
            "selectedId": selected_id or state.selected_idea_id,
            "ideas": [idea.to_wire() for idea in state.ideas],
            **extra,
        }
        return await self.run(body, state)
