"""Client-side research state and the pure reducer that drives it.

``ResearchState`` is immutable; ``reduce(state, event)`` returns a new state
and never mutates its input. List-valued payloads (ideas, papers, tasks)
replace the previous list wholesale because the agent always sends the full
current list.
"""

from __future__ import annotations

import json
import logging
from typing import Any

from pydantic import BaseModel, ConfigDict

from .models.events import (
    DebugEvent,
    ErrorEvent,
    IdeasEvent,
    LogEvent,
    MessageEvent,
    PapersEvent,
    PhaseEvent,
    ReportEvent,
    SelectionEvent,
    TasksEvent,
    TextEvent,
    ThoughtEvent,
    ToolCallEvent,
    ToolResultEvent,
)
from .models.research import (
    ChatMessage,
    DebugLogEntry,
    Idea,
    Paper,
    Report,
    ResearchTask,
    Thought,
    ToolCall,
)
from .types import TERMINAL_PHASES, IdeaStatus, Phase

logger = logging.getLogger(__name__)


class ResearchState(BaseModel):
    """Everything the dashboard renders, rebuilt only through ``reduce``."""

    model_config = ConfigDict(frozen=True)

    phase: Phase = "initial"
    topic: str = ""
    ideas: tuple[Idea, ...] = ()
    selected_idea_id: str | None = None
    report: Report | None = None
    logs: tuple[str, ...] = ()
    debug_logs: tuple[DebugLogEntry, ...] = ()
    thoughts: tuple[Thought, ...] = ()
    papers: tuple[Paper, ...] = ()
    tasks: tuple[ResearchTask, ...] = ()
    messages: tuple[ChatMessage, ...] = ()
    pending_tool_calls: tuple[ToolCall, ...] = ()
    transcript: str = ""

    @property
    def is_complete(self) -> bool:
        """True once a report has arrived."""
        return self.report is not None

    @property
    def is_finished(self) -> bool:
        """True in a terminal phase; only a fresh run can continue from here."""
        return self.phase in TERMINAL_PHASES

    @property
    def selected_idea(self) -> Idea | None:
        return next((idea for idea in self.ideas if idea.id == self.selected_idea_id), None)


def _tool_result_message(event: ToolResultEvent) -> ChatMessage:
    content = event.result if isinstance(event.result, str) else json.dumps(event.result)
    return ChatMessage(role="tool", content=content, tool_call_id=event.tool_call_id)


def _with_status(ideas: tuple[Idea, ...], idea_id: str, status: IdeaStatus) -> tuple[Idea, ...]:
    return tuple(
        idea.model_copy(update={"status": status}) if idea.id == idea_id else idea
        for idea in ideas
    )


def reduce(state: ResearchState, event: Any) -> ResearchState:
    """Return the state that results from applying *event* to *state*.

    Unrecognised events are logged and leave the state unchanged.
    """
    if isinstance(event, TextEvent):
        return state.model_copy(update={"transcript": state.transcript + event.text})
    if isinstance(event, PhaseEvent):
        return state.model_copy(update={"phase": event.phase})
    if isinstance(event, LogEvent):
        return state.model_copy(update={"logs": (*state.logs, event.message)})
    if isinstance(event, DebugEvent):
        return state.model_copy(update={"debug_logs": (*state.debug_logs, event.log)})
    if isinstance(event, IdeasEvent):
        return state.model_copy(update={"ideas": tuple(event.ideas)})
    if isinstance(event, PapersEvent):
        return state.model_copy(update={"papers": tuple(event.papers)})
    if isinstance(event, TasksEvent):
        return state.model_copy(update={"tasks": tuple(event.tasks)})
    if isinstance(event, SelectionEvent):
        return state.model_copy(update={"selected_idea_id": event.selected_idea_id})
    if isinstance(event, ReportEvent):
        return state.model_copy(update={"report": event.report})
    if isinstance(event, ToolCallEvent):
        return state.model_copy(update={"pending_tool_calls": (*state.pending_tool_calls, event.tool_call)})
    if isinstance(event, ToolResultEvent):
        remaining = tuple(c for c in state.pending_tool_calls if c.tool_call_id != event.tool_call_id)
        if len(remaining) == len(state.pending_tool_calls):
            logger.warning("tool-result for unknown or already resolved call %s", event.tool_call_id)
            return state
        return state.model_copy(update={
            "pending_tool_calls": remaining,
            "messages": (*state.messages, _tool_result_message(event)),
        })
    if isinstance(event, ThoughtEvent):
        return state.model_copy(update={"thoughts": (*state.thoughts, event.thought), "transcript": ""})
    if isinstance(event, MessageEvent):
        return state.model_copy(update={"messages": (*state.messages, event.message)})
    if isinstance(event, ErrorEvent):
        # /research follows with phase "error"; a failed /chat turn leaves the phase alone
        return state.model_copy(update={"logs": (*state.logs, f"ERROR: {event.message}")})

    logger.warning("Ignoring unrecognised event: %r", event)
    return state


def select_idea(state: ResearchState, idea_id: str) -> ResearchState:
    """User picks *idea_id*: record the selection and accept the idea."""
    if not any(idea.id == idea_id for idea in state.ideas):
        logger.warning("Cannot select unknown idea %s", idea_id)
        return state
    return state.model_copy(update={
        "selected_idea_id": idea_id,
        "ideas": _with_status(state.ideas, idea_id, "accepted"),
    })


def discard_idea(state: ResearchState, idea_id: str) -> ResearchState:
    """User discards *idea_id*: mark it rejected and clear it if selected."""
    selected = None if state.selected_idea_id == idea_id else state.selected_idea_id
    return state.model_copy(update={
        "selected_idea_id": selected,
        "ideas": _with_status(state.ideas, idea_id, "rejected"),
    })
