"""Research tools: 4 tools on a FastMCP sub-server."""

from __future__ import annotations

import logging
from typing import Annotated

from fastmcp import FastMCP
from mcp.types import ToolAnnotations
from pydantic import Field, TypeAdapter

from ..agent import build_agent
from ..errors import MissingInputError, make_tool_error
from ..models.research import Idea, make_id
from ..types import Provider, TopicParam, coerce_json_param

logger = logging.getLogger(__name__)
research_server = FastMCP("research")

_IDEAS = TypeAdapter(list[Idea])

ModelParam = Annotated[str | None, Field(description="Model id override for the chosen provider")]


@research_server.tool(annotations=ToolAnnotations(readOnlyHint=True, openWorldHint=True))
async def research_brainstorm(
    topic: TopicParam,
    provider: Provider | None = None,
    model: ModelParam = None,
) -> dict:
    """Brainstorm five novel research hypotheses on a topic.

    Args:
        topic: Research question or subject area.
        provider: LLM provider, "openrouter" or "google". Defaults from config.
        model: Model id override.

    Returns:
        Dict with topic and ideas (each pending, unscored).
    """
    try:
        agent = build_agent(provider, model)
        ideas = await agent.brainstorm(topic)
        return {"topic": topic, "ideas": [idea.to_wire() for idea in ideas]}
    except Exception as exc:
        return make_tool_error(exc)


@research_server.tool(annotations=ToolAnnotations(readOnlyHint=True, openWorldHint=True))
async def research_evaluate(
    ideas: Annotated[list[dict] | str, Field(description="Ideas to score, as returned by research_brainstorm")],
    provider: Provider | None = None,
    model: ModelParam = None,
) -> dict:
    """Score ideas on novelty, feasibility and impact (1-10).

    Ideas are matched to their scores by exact title; an idea the model
    does not echo back is returned unscored.

    Args:
        ideas: List of idea dicts (id, title, description).
        provider: LLM provider, "openrouter" or "google".
        model: Model id override.

    Returns:
        Dict with the ideas, scored where possible.
    """
    try:
        parsed = _IDEAS.validate_python(coerce_json_param(ideas, list))
        if not parsed:
            raise MissingInputError("No ideas to evaluate")
        agent = build_agent(provider, model)
        scored = await agent.evaluate(parsed)
        return {"ideas": [idea.to_wire() for idea in scored]}
    except Exception as exc:
        return make_tool_error(exc)


@research_server.tool(annotations=ToolAnnotations(readOnlyHint=True, openWorldHint=True))
async def research_search_literature(
    topic: TopicParam,
    provider: Provider | None = None,
    model: ModelParam = None,
) -> dict:
    """Find papers on a topic and rank them by relevance (0-100).

    Args:
        topic: Research question or subject area.
        provider: LLM provider used for ranking.
        model: Model id override.

    Returns:
        Dict with topic and papers, most relevant first.
    """
    try:
        agent = build_agent(provider, model)
        papers = await agent.search_literature(topic)
        return {"topic": topic, "papers": [paper.to_wire() for paper in papers]}
    except Exception as exc:
        return make_tool_error(exc)


@research_server.tool(annotations=ToolAnnotations(readOnlyHint=True, openWorldHint=True))
async def research_deep_dive(
    idea: Annotated[dict | str, Field(description="One idea dict, ideally already evaluated")],
    provider: Provider | None = None,
    model: ModelParam = None,
) -> dict:
    """Write a full research proposal for one idea.

    Args:
        idea: Idea dict (title, description, optional reasoning).
        provider: LLM provider, "openrouter" or "google".
        model: Model id override.

    Returns:
        Dict with title, summary, sections and references.
    """
    try:
        payload = coerce_json_param(idea, dict)
        if isinstance(payload, dict):
            payload = {"id": make_id("idea"), **payload}
        parsed = Idea.model_validate(payload)
        agent = build_agent(provider, model)
        report = await agent.deep_dive(parsed)
        return report.to_wire()
    except Exception as exc:
        return make_tool_error(exc)
