"""Progress events streamed from the agent to the client.

A closed tagged union discriminated on ``type``. ``TextEvent`` travels on
the ``0:`` channel of the wire protocol; every other variant travels on the
``2:`` channel. ``EVENT_ADAPTER`` validates raw dicts at the transport
boundary before they reach the reducer.
"""

from __future__ import annotations

from typing import Annotated, Any, Literal, Union

from pydantic import Field, TypeAdapter

from ..types import Phase
from .research import (
    ChatMessage,
    DebugLogEntry,
    Idea,
    Paper,
    Report,
    ResearchTask,
    Thought,
    ToolCall,
    WireModel,
)


class TextEvent(WireModel):
    """A fragment of the live transcript."""

    type: Literal["text"] = "text"
    text: str


class PhaseEvent(WireModel):
    type: Literal["phase"] = "phase"
    phase: Phase


class LogEvent(WireModel):
    type: Literal["log"] = "log"
    message: str


class DebugEvent(WireModel):
    type: Literal["debug"] = "debug"
    log: DebugLogEntry


class IdeasEvent(WireModel):
    """Full current idea list. Always a replacement, never a delta."""

    type: Literal["ideas"] = "ideas"
    ideas: list[Idea]


class PapersEvent(WireModel):
    type: Literal["papers"] = "papers"
    papers: list[Paper]


class TasksEvent(WireModel):
    type: Literal["tasks"] = "tasks"
    tasks: list[ResearchTask]


class SelectionEvent(WireModel):
    type: Literal["selection"] = "selection"
    selected_idea_id: str


class ReportEvent(WireModel):
    type: Literal["report"] = "report"
    report: Report


class ToolCallEvent(WireModel):
    type: Literal["tool-call"] = "tool-call"
    tool_call: ToolCall


class ToolResultEvent(WireModel):
    type: Literal["tool-result"] = "tool-result"
    tool_call_id: str
    result: Any = None


class ThoughtEvent(WireModel):
    type: Literal["thought"] = "thought"
    thought: Thought


class MessageEvent(WireModel):
    type: Literal["message"] = "message"
    message: ChatMessage


class ErrorEvent(WireModel):
    type: Literal["error"] = "error"
    message: str


ResearchEvent = Annotated[
    Union[
        TextEvent,
        PhaseEvent,
        LogEvent,
        DebugEvent,
        IdeasEvent,
        PapersEvent,
        TasksEvent,
        SelectionEvent,
        ReportEvent,
        ToolCallEvent,
        ToolResultEvent,
        ThoughtEvent,
        MessageEvent,
        ErrorEvent,
    ],
    Field(discriminator="type"),
]

EVENT_ADAPTER: TypeAdapter[ResearchEvent] = TypeAdapter(ResearchEvent)
