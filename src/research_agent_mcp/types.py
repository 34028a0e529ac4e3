"""Shared type aliases and helpers for request and tool parameters."""

from __future__ import annotations

import json
from typing import Annotated, Literal

from pydantic import Field


def coerce_json_param(value: str | dict | list | None, expected_type: type) -> dict | list | None:
    """Parse JSON-string params back to dict/list.

    MCP JSON-RPC transport may serialize dict/list params as JSON strings,
    and some LLMs emit tool arguments the same way. Pydantic v2 rejects
    these, so this helper coerces them back.

    Args:
        value: The parameter value (possibly a JSON string).
        expected_type: Expected Python type (``dict`` or ``list``).

    Returns:
        Parsed value if coercion succeeded, original value otherwise.
    """
    if not isinstance(value, str):
        return value
    try:
        parsed = json.loads(value)
        if isinstance(parsed, expected_type):
            return parsed
    except (json.JSONDecodeError, TypeError):
        pass
    return value

# ── Literal enums ────────────────────────────────────────────────────────────

Provider = Literal["openrouter", "google"]
Mode = Literal["start", "approve-plan", "call-tool", "proceed"]
ExecutionMode = Literal["plan", "fast"]
IdeaStatus = Literal["pending", "accepted", "rejected"]
TaskStatus = Literal["pending", "in-progress", "done"]
MessageRole = Literal["user", "assistant", "tool", "system"]
DebugType = Literal["call", "response"]
Phase = Literal[
    "initial",
    "planning",
    "awaiting-approval",
    "chatting",
    "brainstorming",
    "awaiting-selection",
    "evaluating",
    "deep-diving",
    "complete",
    "error",
]
ToolName = Literal["searchLiterature", "brainstormIdeas"]

TERMINAL_PHASES: frozenset[str] = frozenset({"complete", "error"})

# ── Annotated aliases ────────────────────────────────────────────────────────

TopicParam = Annotated[str, Field(min_length=3, max_length=2000, description="Research topic or question")]
Score = Annotated[float, Field(ge=1, le=10)]
Relevance = Annotated[float, Field(ge=0, le=100)]
