"""Structured output schemas the LLM is asked to produce.

Validated by ``extraction.extract_structured()``; range constraints here are
what turn a malformed response into a ``SchemaError`` and a retry.
"""

from __future__ import annotations

from pydantic import Field

from ..types import Relevance, Score
from .research import WireModel


class IdeaDraft(WireModel):
    title: str = Field(min_length=1)
    description: str


class BrainstormOutput(WireModel):
    """Output schema for the brainstorm step: exactly five ideas."""

    ideas: list[IdeaDraft] = Field(min_length=5, max_length=5)


class IdeaEvaluation(WireModel):
    """Scores for one idea, keyed by its title."""

    title: str
    novelty_score: Score
    feasibility_score: Score
    impact_score: Score
    reasoning: str


class EvaluationOutput(WireModel):
    evaluations: list[IdeaEvaluation]


class PaperRanking(WireModel):
    id: str
    relevance: Relevance


class RankingOutput(WireModel):
    """Output schema for the paper ranking pass, keyed by paper id."""

    rankings: list[PaperRanking]


class PlanTaskDraft(WireModel):
    title: str = Field(min_length=1)
    description: str = ""


class PlanOutput(WireModel):
    """Output schema for plan mode, an ordered list of research tasks."""

    tasks: list[PlanTaskDraft] = Field(min_length=1, max_length=8)
