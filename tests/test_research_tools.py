"""Tests for the MCP research tools."""

from __future__ import annotations

import json

import pytest

import research_agent_mcp.tools.research as tools_mod


def unwrap_tool(tool):
    """FastMCP 2.x wraps tools in FunctionTool; 3.x keeps the function."""
    return getattr(tool, "fn", tool)


research_brainstorm = unwrap_tool(tools_mod.research_brainstorm)
research_evaluate = unwrap_tool(tools_mod.research_evaluate)
research_search_literature = unwrap_tool(tools_mod.research_search_literature)
research_deep_dive = unwrap_tool(tools_mod.research_deep_dive)


@pytest.fixture()
def use_agent(monkeypatch):
    built = []

    def _use(agent):
        def factory(provider=None, model=None):
            built.append((provider, model))
            return agent

        monkeypatch.setattr(tools_mod, "build_agent", factory)
        return built

    return _use


class TestResearchBrainstorm:
    async def test_returns_wire_ideas(self, make_agent, use_agent, brainstorm_payload):
        built = use_agent(make_agent([brainstorm_payload]))

        result = await research_brainstorm("marine biology", provider="google", model="gemini-2.5-pro")

        assert result["topic"] == "marine biology"
        assert len(result["ideas"]) == 5
        assert result["ideas"][0]["status"] == "pending"
        assert built == [("google", "gemini-2.5-pro")]

    async def test_failure_returns_tool_error(self, make_agent, use_agent):
        use_agent(make_agent(["nope", "nope", "nope"]))

        result = await research_brainstorm("marine biology")

        assert result["category"] == "STRUCTURED_OUTPUT_FAILED"
        assert result["retryable"] is True


class TestResearchEvaluate:
    async def test_accepts_json_string(self, make_agent, use_agent):
        use_agent(make_agent([{"evaluations": [{
            "title": "Coral", "noveltyScore": 9, "feasibilityScore": 4, "impactScore": 8, "reasoning": "bold",
        }]}]))
        ideas = json.dumps([{"id": "idea-1", "title": "Coral", "description": "reef"}])

        result = await research_evaluate(ideas)

        assert result["ideas"][0]["totalScore"] == 7.0

    async def test_empty_list_is_missing_input(self, make_agent, use_agent):
        use_agent(make_agent([]))

        result = await research_evaluate([])

        assert result["category"] == "MISSING_INPUT"


class TestResearchSearchLiterature:
    async def test_ranked_papers(self, make_agent, use_agent):
        use_agent(make_agent([{"rankings": [{"id": "mock-2", "relevance": 88}, {"id": "mock-1", "relevance": 10}]}]))

        result = await research_search_literature("tokenizers")

        assert [p["id"] for p in result["papers"]] == ["mock-2", "mock-1"]
        assert result["papers"][0]["relevance"] == 88


class TestResearchDeepDive:
    async def test_idea_without_id(self, make_agent, use_agent):
        agent = make_agent([{"title": "R", "summary": "S", "sections": [{"heading": "H", "content": "C"}]}])
        use_agent(agent)

        result = await research_deep_dive({"title": "Coral", "description": "reef", "reasoning": "bold"})

        assert result["title"] == "R"
        assert result["sections"] == [{"heading": "H", "content": "C"}]
        assert "Reasoning behind selection: bold" in agent.gateway.prompts[0]

    async def test_unknown_provider(self):
        result = await research_deep_dive({"title": "Coral", "description": "reef"}, provider="anthropic")

        assert result["category"] == "UNKNOWN"
        assert "Unknown provider" in result["error"]
