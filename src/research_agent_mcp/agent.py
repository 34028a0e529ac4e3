"""Research orchestrator: sequences LLM and literature calls into research steps.

Every step emits typed progress events (logs, thoughts, debug traces, result
lists). Events reach a consumer only while one is attached through
``ResearchAgent.events()``; a bare ``await agent.brainstorm(...)`` simply
returns its result.
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import AsyncIterator, Awaitable, Sequence
from dataclasses import dataclass, field
from typing import Any, TypeVar

from pydantic import BaseModel

from .errors import (
    HandlerTimeoutError,
    MissingInputError,
    ParseError,
    ProviderError,
    SchemaError,
    StructuredOutputError,
    UnknownToolError,
)
from .config import get_config
from .extraction import extract_structured
from .literature import LiteratureLookup, default_lookup
from .models.events import (
    DebugEvent,
    IdeasEvent,
    LogEvent,
    MessageEvent,
    PapersEvent,
    PhaseEvent,
    ReportEvent,
    ResearchEvent,
    SelectionEvent,
    TasksEvent,
    TextEvent,
    ThoughtEvent,
    ToolCallEvent,
    ToolResultEvent,
)
from .models.outputs import BrainstormOutput, EvaluationOutput, IdeaEvaluation, PlanOutput, RankingOutput
from .models.research import (
    ChatMessage,
    DebugLogEntry,
    Idea,
    Paper,
    Report,
    ResearchTask,
    Thought,
    ToolCall,
    mean_score,
    now_ms,
)
from .prompts.research import (
    BRAINSTORM,
    CHAT_SYSTEM,
    DEEP_DIVE,
    EVALUATE,
    FALLBACK_REPLY,
    PLAN,
    RANK_PAPERS,
    STRUCTURED_SYSTEM,
    STRUCTURED_WRAPPER,
)
from .providers import create_gateway
from .providers.base import LLMGateway, ToolDefinition
from .types import ExecutionMode, Phase, coerce_json_param

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)

_TOPIC_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "topic": {"type": "string", "description": "Research topic or question"},
    },
}

TOOLS: tuple[ToolDefinition, ...] = (
    ToolDefinition(
        name="searchLiterature",
        description="Search academic literature for papers on a topic, ranked by relevance.",
        parameters=_TOPIC_SCHEMA,
    ),
    ToolDefinition(
        name="brainstormIdeas",
        description="Brainstorm five novel research hypotheses on a topic.",
        parameters=_TOPIC_SCHEMA,
    ),
)
TOOL_NAMES = frozenset(tool.name for tool in TOOLS)

RANK_SUMMARY_CHARS = 300
TOOL_MAX_PAPERS = 5
TOOL_SUMMARY_CHARS = 500

_DONE = object()


@dataclass
class ChatTurn:
    """Outcome of one streamed conversational turn."""

    text: str = ""
    tool_calls: list[ToolCall] = field(default_factory=list)


def latest_user_text(history: Sequence[ChatMessage]) -> str:
    """Content of the most recent non-empty user message, or ``""``."""
    for msg in reversed(history):
        if msg.role == "user" and msg.content.strip():
            return msg.content.strip()
    return ""


class ResearchAgent:
    """Autonomous research agent over one LLM gateway and one literature lookup.

    Args:
        gateway: Text-completion capability for every LLM call.
        literature: Paper search backend.
        retries: Extra attempts for a structured step after the first.
        backoff_seconds: Linear backoff unit between structured attempts.
        literature_limit: Papers requested per literature search.
    """

    def __init__(
        self,
        gateway: LLMGateway,
        literature: LiteratureLookup,
        *,
        retries: int = 2,
        backoff_seconds: float = 1.5,
        literature_limit: int = 8,
    ) -> None:
        self.gateway = gateway
        self.literature = literature
        self.retries = retries
        self.backoff_seconds = backoff_seconds
        self.literature_limit = literature_limit
        self._sink: asyncio.Queue[Any] | None = None

    # ── Event plumbing ──────────────────────────────────────────────────────

    def emit(self, event: ResearchEvent) -> None:
        if self._sink is not None:
            self._sink.put_nowait(event)

    def log(self, message: str) -> None:
        logger.info("%s", message)
        self.emit(LogEvent(message=message))

    def think(self, content: str) -> None:
        self.emit(ThoughtEvent(thought=Thought(content=content)))

    def set_phase(self, phase: Phase) -> None:
        logger.info("Phase -> %s", phase)
        self.emit(PhaseEvent(phase=phase))

    def _trace(self, kind: str, step: str, content: str) -> None:
        logger.debug("%s %s: %d chars", kind.upper(), step, len(content))
        self.emit(DebugEvent(log=DebugLogEntry(type=kind, step=step, content=content)))

    async def events(
        self,
        operation: Awaitable[Any],
        *,
        timeout: float | None = None,
    ) -> AsyncIterator[ResearchEvent]:
        """Run *operation* and lazily yield the events it emits, in order.

        The operation's exception, if any, is re-raised after its events
        have been yielded. *timeout* bounds the whole run in wall-clock
        seconds.

        Raises:
            HandlerTimeoutError: The run exceeded *timeout*.
        """
        if self._sink is not None:
            raise RuntimeError("ResearchAgent is already streaming a run")
        queue: asyncio.Queue[Any] = asyncio.Queue()
        self._sink = queue
        task = asyncio.ensure_future(operation)
        task.add_done_callback(lambda _: queue.put_nowait(_DONE))
        loop = asyncio.get_running_loop()
        deadline = None if timeout is None else loop.time() + timeout
        try:
            while True:
                remaining = None if deadline is None else max(deadline - loop.time(), 0.0)
                try:
                    item = await asyncio.wait_for(queue.get(), remaining)
                except asyncio.TimeoutError as exc:
                    raise HandlerTimeoutError(timeout) from exc
                if item is _DONE:
                    break
                yield item
            task.result()
        finally:
            self._sink = None
            if not task.done():
                task.cancel()

    # ── Structured calls ────────────────────────────────────────────────────

    async def call_structured(self, prompt: str, schema: type[M], step: str) -> M:
        """Call the LLM and extract a validated *schema* instance, with retries.

        Parse, schema and provider failures are retried up to ``retries``
        times with a ``backoff_seconds * attempt`` pause; anything else
        propagates immediately.

        Raises:
            StructuredOutputError: Every attempt failed.
        """
        combined = STRUCTURED_WRAPPER.format(system=STRUCTURED_SYSTEM, task=prompt)
        attempts = self.retries + 1
        last_error: Exception | None = None

        for attempt in range(1, attempts + 1):
            try:
                self._trace("call", f"{step} (Attempt {attempt})", combined)
                raw = await self.gateway.complete_text(combined, json_mode=True)
                self._trace("response", step, raw)
                return extract_structured(raw, schema, step)
            except (ParseError, SchemaError, ProviderError) as exc:
                last_error = exc
                logger.warning("[Attempt %d/%d] %s failed: %s", attempt, attempts, step, exc)

            if attempt < attempts:
                self.log(f"Retrying {step}... ({attempt}/{self.retries})")
                await asyncio.sleep(self.backoff_seconds * attempt)

        raise StructuredOutputError(step, attempts, last_error)

    # ── Research operations ─────────────────────────────────────────────────

    async def brainstorm(self, topic: str) -> list[Idea]:
        """Generate five pending ideas on *topic*."""
        self.log(f"Brainstorming research ideas on: {topic}")
        output = await self.call_structured(BRAINSTORM.format(topic=topic), BrainstormOutput, "brainstorm")
        stamp = now_ms()
        ideas = [
            Idea(id=f"idea-{stamp}-{index}", title=draft.title, description=draft.description)
            for index, draft in enumerate(output.ideas)
        ]
        self.log(f"Generated {len(ideas)} ideas")
        return ideas

    async def evaluate(self, ideas: Sequence[Idea]) -> list[Idea]:
        """Score *ideas*, merging results back by exact title.

        An idea whose title the model does not echo back verbatim is
        returned as the same, unscored object.
        """
        if not ideas:
            return []
        self.log(f"Evaluating {len(ideas)} ideas")
        ideas_json = json.dumps(
            [{"title": idea.title, "description": idea.description} for idea in ideas],
            indent=2,
        )
        output = await self.call_structured(EVALUATE.format(ideas_json=ideas_json), EvaluationOutput, "evaluate")

        by_title: dict[str, IdeaEvaluation] = {}
        for evaluation in output.evaluations:
            by_title.setdefault(evaluation.title, evaluation)

        merged: list[Idea] = []
        for idea in ideas:
            evaluation = by_title.get(idea.title)
            if evaluation is None:
                logger.warning("No evaluation returned for idea %r", idea.title)
                merged.append(idea)
                continue
            merged.append(idea.model_copy(update={
                "novelty_score": evaluation.novelty_score,
                "feasibility_score": evaluation.feasibility_score,
                "impact_score": evaluation.impact_score,
                "reasoning": evaluation.reasoning,
                "total_score": mean_score(
                    evaluation.novelty_score, evaluation.feasibility_score, evaluation.impact_score,
                ),
            }))

        scored = [idea for idea in merged if idea.total_score is not None]
        if scored:
            best = max(scored, key=lambda idea: idea.total_score)
            self.think(f"Scored {len(scored)}/{len(merged)} ideas. Strongest: \"{best.title}\" ({best.total_score}/10).")
        return merged

    async def rank_papers(self, topic: str, papers: Sequence[Paper]) -> list[Paper]:
        """Rate *papers* for relevance to *topic*, most relevant first.

        Papers missing from the model's answer get relevance 0.
        """
        if not papers:
            return []
        listing = [
            {"id": paper.id, "title": paper.title, "summary": paper.summary[:RANK_SUMMARY_CHARS]}
            for paper in papers
        ]
        prompt = RANK_PAPERS.format(topic=topic, papers_json=json.dumps(listing, indent=2))
        output = await self.call_structured(prompt, RankingOutput, "rankPapers")

        relevance: dict[str, float] = {}
        for ranking in output.rankings:
            relevance.setdefault(ranking.id, ranking.relevance)

        ranked = [paper.model_copy(update={"relevance": relevance.get(paper.id, 0)}) for paper in papers]
        ranked.sort(key=lambda paper: paper.relevance, reverse=True)
        return ranked

    async def deep_dive(self, idea: Idea) -> Report:
        """Write the full report for one selected idea."""
        self.log(f"Deep diving into: {idea.title}")
        self.think(f"Drafting a full research proposal for \"{idea.title}\".")
        prompt = DEEP_DIVE.format(
            title=idea.title,
            description=idea.description,
            reasoning=idea.reasoning or "Not yet evaluated",
        )
        report = await self.call_structured(prompt, Report, "deepDive")
        self.log(f"Report ready: {report.title} ({len(report.sections)} sections)")
        return report

    async def search_literature(self, topic: str) -> list[Paper]:
        """Look up papers on *topic* and rank them."""
        self.log(f"Searching literature for: {topic}")
        papers = await self.literature.search(topic, limit=self.literature_limit)
        if not papers:
            self.log("No papers found")
            return []
        self.log(f"Found {len(papers)} papers, ranking by relevance")
        return await self.rank_papers(topic, papers)

    # ── Conversational tool mode ────────────────────────────────────────────

    async def chat(self, messages: Sequence[ChatMessage]) -> ChatTurn:
        """Stream one tool-enabled completion over *messages*.

        Text fragments are emitted as they arrive. Proposed tool calls are
        emitted after the stream ends and are never executed here.
        """
        history = list(messages)
        if not history or history[0].role != "system":
            history.insert(0, ChatMessage(role="system", content=CHAT_SYSTEM))

        self._trace("call", "chat", json.dumps([m.to_wire() for m in history], indent=2))
        fragments: list[str] = []
        turn = ChatTurn()
        async for delta in self.gateway.stream_text(history, tools=TOOLS):
            if delta.text:
                fragments.append(delta.text)
                self.emit(TextEvent(text=delta.text))
            turn.tool_calls.extend(delta.tool_calls)
        turn.text = "".join(fragments)
        self._trace("response", "chat", json.dumps({
            "text": turn.text,
            "toolCalls": [call.to_wire() for call in turn.tool_calls],
        }, indent=2))

        if turn.text:
            self.think(turn.text)
        if turn.text or turn.tool_calls:
            self.emit(MessageEvent(message=ChatMessage(
                role="assistant",
                content=turn.text,
                tool_calls=turn.tool_calls or None,
            )))
        for call in turn.tool_calls:
            self.log(f"Proposed tool call: {call.tool_name}")
            self.emit(ToolCallEvent(tool_call=call))
        if not turn.text and not turn.tool_calls:
            logger.warning("Model produced neither text nor tool calls")
            self.emit(MessageEvent(message=ChatMessage(role="assistant", content=FALLBACK_REPLY)))
        return turn

    async def execute_tool(
        self,
        name: str,
        args: dict[str, Any] | str | None = None,
        history: Sequence[ChatMessage] = (),
    ) -> list[Idea] | list[Paper]:
        """Run a tool proposed by the model.

        A missing or empty ``topic`` argument falls back to the most recent
        user message in *history*.

        Raises:
            UnknownToolError: *name* is not a declared tool.
            MissingInputError: No topic could be determined.
        """
        if name not in TOOL_NAMES:
            raise UnknownToolError(name)
        parsed = coerce_json_param(args, dict) if args else {}
        if not isinstance(parsed, dict):
            parsed = {}
        topic = str(parsed.get("topic") or "").strip() or latest_user_text(history)
        if not topic:
            raise MissingInputError(f"{name} needs a topic and no user message is available")

        if name == "searchLiterature":
            papers = await self.search_literature(topic)
            return [
                paper.model_copy(update={"summary": paper.summary[:TOOL_SUMMARY_CHARS]})
                for paper in papers[:TOOL_MAX_PAPERS]
            ]
        return await self.brainstorm(topic)

    # ── Staged flows ────────────────────────────────────────────────────────

    async def run_autonomous(
        self,
        topic: str | None,
        execution_mode: ExecutionMode = "fast",
        history: Sequence[ChatMessage] = (),
    ) -> Phase:
        """Start (or continue) a research conversation on *topic*.

        ``plan`` mode proposes a task plan and pauses at ``awaiting-approval``;
        ``fast`` mode runs one tool-enabled chat turn.
        """
        messages = list(history)
        topic = (topic or "").strip() or latest_user_text(messages)
        if not topic:
            raise MissingInputError("Missing topic")

        if execution_mode == "plan":
            self.set_phase("planning")
            self.log(f"Planning research on: {topic}")
            output = await self.call_structured(PLAN.format(topic=topic), PlanOutput, "plan")
            stamp = now_ms()
            tasks = [
                ResearchTask(id=f"task-{stamp}-{index}", title=draft.title, description=draft.description)
                for index, draft in enumerate(output.tasks)
            ]
            self.emit(TasksEvent(tasks=tasks))
            outline = "\n".join(f"{index + 1}. {task.title}" for index, task in enumerate(tasks))
            self.emit(MessageEvent(message=ChatMessage(
                role="assistant",
                content=f"Proposed research plan:\n{outline}\n\nApprove the plan to begin.",
            )))
            self.set_phase("awaiting-approval")
            return "awaiting-approval"

        self.set_phase("chatting")
        last = messages[-1] if messages else None
        if topic and not (last and last.role == "user" and last.content.strip() == topic):
            user_message = ChatMessage(role="user", content=topic)
            messages.append(user_message)
            self.emit(MessageEvent(message=user_message))
        await self.chat(messages)
        self.set_phase("chatting")
        return "chatting"

    async def run_tool_call(self, tool_call: ToolCall, history: Sequence[ChatMessage] = ()) -> Phase:
        """Execute one proposed tool call and publish its result."""
        is_brainstorm = tool_call.tool_name == "brainstormIdeas"
        if is_brainstorm:
            self.set_phase("brainstorming")
        result = await self.execute_tool(tool_call.tool_name, tool_call.args, history)

        if is_brainstorm:
            self.emit(IdeasEvent(ideas=result))
            self.think(f"Generated {len(result)} candidate ideas. Select one to evaluate and expand.")
        else:
            self.emit(PapersEvent(papers=result))
        self.emit(ToolResultEvent(
            tool_call_id=tool_call.tool_call_id,
            result=[item.to_wire() for item in result],
        ))

        phase: Phase = "awaiting-selection" if is_brainstorm else "chatting"
        self.set_phase(phase)
        return phase

    async def run_deep_dive(self, selected_id: str | None, ideas: Sequence[Idea] | None) -> Phase:
        """Evaluate *ideas* and write the report for the selected one.

        Raises:
            MissingInputError: No selection, no ideas, or an unknown id.
        """
        if not selected_id or not ideas:
            raise MissingInputError("Missing selectedId or ideas")
        if not any(idea.id == selected_id for idea in ideas):
            raise MissingInputError(f"Selected idea not found: {selected_id}")

        self.emit(SelectionEvent(selected_idea_id=selected_id))
        self.set_phase("evaluating")
        evaluated = await self.evaluate(ideas)
        self.emit(IdeasEvent(ideas=evaluated))

        chosen = next(idea for idea in evaluated if idea.id == selected_id)
        self.set_phase("deep-diving")
        report = await self.deep_dive(chosen)
        self.emit(ReportEvent(report=report))
        self.set_phase("complete")
        return "complete"

    async def run_pipeline(self, topic: str) -> Phase:
        """Brainstorm on *topic* directly and pause for a selection."""
        topic = (topic or "").strip()
        if not topic:
            raise MissingInputError("Missing topic")
        self.set_phase("brainstorming")
        ideas = await self.brainstorm(topic)
        self.emit(IdeasEvent(ideas=ideas))
        self.set_phase("awaiting-selection")
        return "awaiting-selection"


def build_agent(provider: str | None = None, model: str | None = None) -> ResearchAgent:
    """Agent wired to the configured gateway and literature backend."""
    cfg = get_config()
    return ResearchAgent(
        create_gateway(provider, model),
        default_lookup(),
        retries=cfg.structured_retries,
        backoff_seconds=cfg.retry_backoff_seconds,
        literature_limit=cfg.literature_limit,
    )
