"""Streaming HTTP routes: ``POST /research``, ``POST /chat``, ``GET /health``.

Each request builds its own agent, runs one sequential operation, and
streams the agent's events as protocol lines. Failures never change the
HTTP status: they are reported in-band as an ``error`` event followed by
``phase: error``, after which the stream closes normally.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator, Awaitable
from typing import Any

from pydantic import Field
from starlette.applications import Starlette
from starlette.requests import Request
from starlette.responses import JSONResponse, StreamingResponse
from starlette.routing import Route

from .agent import ResearchAgent, build_agent
from .config import get_config
from .errors import MissingInputError, error_message
from .models.events import ErrorEvent, PhaseEvent
from .models.research import ChatMessage, Idea, ToolCall, WireModel
from .protocol import encode
from .types import ExecutionMode, Mode, Provider

logger = logging.getLogger(__name__)

MEDIA_TYPE = "text/plain; charset=utf-8"
STREAM_HEADERS = {"X-Content-Type-Options": "nosniff"}


class ResearchRequest(WireModel):
    """Body of ``POST /research``."""

    topic: str | None = None
    mode: Mode = "start"
    selected_id: str | None = None
    ideas: list[Idea] | None = None
    provider: Provider | None = None
    model: str | None = None
    execution_mode: ExecutionMode = "fast"
    history: list[ChatMessage] = Field(default_factory=list)
    tool_call: ToolCall | None = None


class ChatRequest(WireModel):
    """Body of ``POST /chat``."""

    messages: list[ChatMessage] = Field(min_length=1)
    provider: Provider | None = None
    model: str | None = None


def research_operation(agent: ResearchAgent, body: ResearchRequest) -> Awaitable[Any]:
    """Map a request mode to the agent flow that serves it."""
    if body.mode == "start":
        return agent.run_autonomous(body.topic, body.execution_mode, body.history)
    if body.mode == "approve-plan":
        return agent.run_autonomous(body.topic, "fast", body.history)
    if body.mode == "call-tool":
        if body.tool_call is None:
            raise MissingInputError("Missing toolCall for call-tool mode")
        history = list(body.history)
        if not history and body.topic:
            history = [ChatMessage(role="user", content=body.topic)]
        return agent.run_tool_call(body.tool_call, history)
    return agent.run_deep_dive(body.selected_id, body.ideas)


def _streaming(lines: AsyncIterator[bytes]) -> StreamingResponse:
    return StreamingResponse(lines, media_type=MEDIA_TYPE, headers=STREAM_HEADERS)


async def _failure(exc: Exception, *, with_phase: bool) -> AsyncIterator[bytes]:
    yield encode(ErrorEvent(message=error_message(exc)))
    if with_phase:
        yield encode(PhaseEvent(phase="error"))


async def _research_stream(body: ResearchRequest) -> AsyncIterator[bytes]:
    try:
        agent = build_agent(body.provider, body.model)
        operation = research_operation(agent, body)
        async for event in agent.events(operation, timeout=get_config().handler_timeout_seconds):
            yield encode(event)
    except Exception as exc:
        logger.error("Research request failed: %s", exc, exc_info=True)
        async for line in _failure(exc, with_phase=True):
            yield line
    finally:
        logger.info("Research stream closing")


async def _chat_stream(body: ChatRequest) -> AsyncIterator[bytes]:
    try:
        agent = build_agent(body.provider, body.model)
        async for event in agent.events(agent.chat(body.messages), timeout=get_config().chat_timeout_seconds):
            yield encode(event)
    except Exception as exc:
        logger.error("Chat request failed: %s", exc, exc_info=True)
        async for line in _failure(exc, with_phase=False):
            yield line
    finally:
        logger.info("Chat stream closing")


async def research_route(request: Request) -> StreamingResponse:
    # The body is read before streaming starts; the response owns receive() afterwards.
    try:
        body = ResearchRequest.model_validate(await request.json())
    except Exception as exc:
        logger.error("Rejected research request: %s", exc)
        return _streaming(_failure(exc, with_phase=True))
    logger.info("Research request: mode=%s provider=%s model=%s", body.mode, body.provider, body.model)
    return _streaming(_research_stream(body))


async def chat_route(request: Request) -> StreamingResponse:
    try:
        body = ChatRequest.model_validate(await request.json())
    except Exception as exc:
        logger.error("Rejected chat request: %s", exc)
        return _streaming(_failure(exc, with_phase=False))
    logger.info("Chat request: %d message(s), provider=%s", len(body.messages), body.provider)
    return _streaming(_chat_stream(body))


async def health_route(request: Request) -> JSONResponse:
    """Liveness probe."""
    return JSONResponse({"status": "ok", "server": "research-agent-mcp"})


ROUTES: list[Route] = [
    Route("/research", research_route, methods=["POST"]),
    Route("/chat", chat_route, methods=["POST"]),
    Route("/health", health_route, methods=["GET"]),
]


def create_app() -> Starlette:
    """Standalone Starlette app with just the streaming routes."""
    return Starlette(routes=ROUTES)
