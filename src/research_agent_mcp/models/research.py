"""Research domain models: ideas, papers, reports, and the agent's log records.

All models serialize with camelCase keys (``noveltyScore``, ``toolCallId``)
to match the wire format; Python code uses the snake_case attribute names.
Either spelling is accepted on input.
"""

from __future__ import annotations

import itertools
import time
from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

from ..types import DebugType, IdeaStatus, MessageRole, Relevance, Score, TaskStatus

_counter = itertools.count()


def now_ms() -> int:
    """Milliseconds since the epoch, used in generated ids."""
    return int(time.time() * 1000)


def now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def make_id(prefix: str) -> str:
    """Return a process-unique id such as ``thought-1718000000000-7``."""
    return f"{prefix}-{now_ms()}-{next(_counter)}"


def mean_score(novelty: float, feasibility: float, impact: float) -> float:
    """Mean of the three sub-scores, rounded to one decimal place."""
    return round((novelty + feasibility + impact) / 3, 1)


class WireModel(BaseModel):
    """Base model with camelCase aliases on the wire."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_wire(self) -> dict[str, Any]:
        """JSON-ready dict with camelCase keys and unset optionals dropped."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class Idea(WireModel):
    """A candidate research hypothesis with optional evaluation scores."""

    id: str
    title: str
    description: str
    novelty_score: Score | None = None
    feasibility_score: Score | None = None
    impact_score: Score | None = None
    total_score: float | None = None
    reasoning: str | None = None
    status: IdeaStatus = "pending"

    @model_validator(mode="after")
    def _total_requires_all_scores(self) -> Idea:
        scores = (self.novelty_score, self.feasibility_score, self.impact_score)
        if any(s is None for s in scores):
            if self.total_score is not None:
                raise ValueError("totalScore requires novelty, feasibility and impact scores")
        elif self.total_score is None:
            self.total_score = mean_score(*scores)
        return self


class Paper(WireModel):
    """A literature hit. Relevance is filled in by the ranking pass."""

    model_config = ConfigDict(frozen=True)

    id: str
    title: str
    authors: list[str] = Field(default_factory=list)
    year: int
    citation_count: int = 0
    relevance: Relevance = 0
    summary: str = ""
    url: str = "#"


class ReportSection(WireModel):
    heading: str
    content: str


class Report(WireModel):
    """Final research report produced by a deep-dive on one idea."""

    title: str
    summary: str
    sections: list[ReportSection] = Field(min_length=1)
    references: list[str] | None = None


class ResearchTask(WireModel):
    """One step of a proposed research plan."""

    id: str
    title: str
    description: str = ""
    status: TaskStatus = "pending"


class Thought(WireModel):
    """One persisted unit of agent reasoning or commentary."""

    id: str = Field(default_factory=lambda: make_id("thought"))
    timestamp: str = Field(default_factory=now_iso)
    content: str


class DebugLogEntry(WireModel):
    """Raw prompt or response captured for operator tracing."""

    id: str = Field(default_factory=lambda: make_id("debug"))
    timestamp: str = Field(default_factory=now_iso)
    type: DebugType
    step: str
    content: str


class ToolCall(WireModel):
    """A tool invocation proposed by the model, executed by the caller."""

    tool_call_id: str
    tool_name: str
    args: dict[str, Any] = Field(default_factory=dict)


class ChatMessage(WireModel):
    """One turn of the conversation history sent back to the LLM."""

    id: str = Field(default_factory=lambda: make_id("msg"))
    role: MessageRole
    content: str = ""
    tool_calls: list[ToolCall] | None = None
    tool_call_id: str | None = None
