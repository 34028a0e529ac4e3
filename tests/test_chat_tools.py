"""Tests for the conversational turn and execution of model-proposed tools."""

from __future__ import annotations

import pytest

from research_agent_mcp.agent import TOOL_NAMES, latest_user_text
from research_agent_mcp.errors import MissingInputError, UnknownToolError
from research_agent_mcp.models.events import (
    MessageEvent,
    PapersEvent,
    PhaseEvent,
    TextEvent,
    ThoughtEvent,
    ToolCallEvent,
    ToolResultEvent,
)
from research_agent_mcp.models.research import ChatMessage, Paper, ToolCall
from research_agent_mcp.prompts.research import CHAT_SYSTEM, FALLBACK_REPLY
from research_agent_mcp.providers.base import StreamDelta


def _user(text: str) -> ChatMessage:
    return ChatMessage(role="user", content=text)


class TestChat:
    async def test_streams_text_then_persists_it(self, make_agent, collect):
        agent = make_agent(stream=[StreamDelta(text="CRISPR "), StreamDelta(text="screens help.")])

        events = await collect(agent, agent.chat([_user("tell me about CRISPR")]))

        assert [e.text for e in events if isinstance(e, TextEvent)] == ["CRISPR ", "screens help."]
        thought = next(e for e in events if isinstance(e, ThoughtEvent))
        assert thought.thought.content == "CRISPR screens help."
        messages = [e.message for e in events if isinstance(e, MessageEvent)]
        assert [(m.role, m.content) for m in messages] == [("assistant", "CRISPR screens help.")]
        assert not any(isinstance(e, ToolCallEvent) for e in events)

    async def test_system_prompt_and_tools_sent(self, make_agent, collect):
        agent = make_agent(stream=[StreamDelta(text="ok")])

        await collect(agent, agent.chat([_user("hi")]))

        sent, tools = agent.gateway.stream_calls[0]
        assert sent[0].role == "system" and sent[0].content == CHAT_SYSTEM
        assert {t.name for t in tools} == TOOL_NAMES == {"searchLiterature", "brainstormIdeas"}

    async def test_tool_calls_emitted_after_text(self, make_agent, collect):
        call = ToolCall(tool_call_id="call-9", tool_name="searchLiterature", args={"topic": "MoE"})
        agent = make_agent(stream=[StreamDelta(text="Searching."), StreamDelta(tool_calls=[call])])

        events = await collect(agent, agent.chat([_user("find MoE papers")]))

        types = [e.type for e in events if e.type in ("text", "message", "tool-call")]
        assert types == ["text", "message", "tool-call"]
        assistant = next(e for e in events if isinstance(e, MessageEvent)).message
        assert assistant.tool_calls[0].tool_call_id == "call-9"

    async def test_empty_turn_emits_fallback(self, make_agent, collect):
        agent = make_agent(stream=[])

        events = await collect(agent, agent.chat([_user("hello?")]))

        messages = [e.message for e in events if isinstance(e, MessageEvent)]
        assert len(messages) == 1
        assert messages[0].content == FALLBACK_REPLY
        assert not any(isinstance(e, ThoughtEvent) for e in events)


class TestExecuteTool:
    async def test_unknown_tool_rejected_without_llm_call(self, make_agent):
        agent = make_agent([])

        with pytest.raises(UnknownToolError):
            await agent.execute_tool("deleteEverything", {"topic": "x"})
        assert agent.gateway.prompts == []

    async def test_empty_args_fall_back_to_latest_user_message(self, make_agent):
        papers = [
            Paper(id=f"p{n}", title=f"Paper {n}", year=2020 + n % 5, summary="s" * 900)
            for n in range(8)
        ]
        agent = make_agent([{"rankings": [{"id": f"p{n}", "relevance": n * 10} for n in range(8)]}], papers=papers)
        history = [_user("first question"), ChatMessage(role="assistant", content="..."), _user("sparse attention")]

        result = await agent.execute_tool("searchLiterature", {}, history)

        assert agent.literature.queries[0][0] == "sparse attention"
        assert len(result) == 5
        assert [p.id for p in result] == ["p7", "p6", "p5", "p4", "p3"]
        assert all(len(p.summary) == 500 for p in result)

    async def test_json_string_args_accepted(self, make_agent, brainstorm_payload):
        agent = make_agent([brainstorm_payload])

        ideas = await agent.execute_tool("brainstormIdeas", '{"topic": "coral bleaching"}')

        assert len(ideas) == 5
        assert 'related to: "coral bleaching"' in agent.gateway.prompts[0]

    async def test_no_topic_anywhere(self, make_agent):
        agent = make_agent([])
        with pytest.raises(MissingInputError):
            await agent.execute_tool("brainstormIdeas", {"topic": "  "}, [ChatMessage(role="assistant", content="hi")])


class TestRunToolCall:
    async def test_search_publishes_papers_and_result(self, make_agent, collect):
        agent = make_agent([{"rankings": [{"id": "mock-1", "relevance": 70}, {"id": "mock-2", "relevance": 20}]}])
        call = ToolCall(tool_call_id="call-3", tool_name="searchLiterature", args={"topic": "MoE scaling"})

        events = await collect(agent, agent.run_tool_call(call))

        papers = next(e for e in events if isinstance(e, PapersEvent)).papers
        assert [p.id for p in papers] == ["mock-1", "mock-2"]
        result = next(e for e in events if isinstance(e, ToolResultEvent))
        assert result.tool_call_id == "call-3"
        assert result.result[0]["citationCount"] == 150
        assert [e.phase for e in events if isinstance(e, PhaseEvent)] == ["chatting"]


def test_latest_user_text_skips_blank_messages():
    history = [_user("real question"), ChatMessage(role="assistant", content="a"), _user("   ")]
    assert latest_user_text(history) == "real question"
    assert latest_user_text([]) == ""
