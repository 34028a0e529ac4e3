"""Shared test fixtures for research-agent-mcp."""

from __future__ import annotations

import json
from typing import Any

import pytest

from research_agent_mcp.agent import ResearchAgent
from research_agent_mcp.literature import MOCK_PAPERS
from research_agent_mcp.models.research import Paper

_ENV_VARS = (
    "OPENROUTER_API_KEY",
    "OPENROUTER_BASE_URL",
    "OPENROUTER_MODEL",
    "GEMINI_API_KEY",
    "GEMINI_MODEL",
    "RESEARCH_PROVIDER",
    "RESEARCH_STRUCTURED_RETRIES",
    "RESEARCH_RETRY_BACKOFF",
    "RESEARCH_RETRY_MAX_ATTEMPTS",
    "RESEARCH_RETRY_BASE_DELAY",
    "RESEARCH_RETRY_MAX_DELAY",
    "RESEARCH_HANDLER_TIMEOUT",
    "RESEARCH_CHAT_TIMEOUT",
    "RESEARCH_MOCK_LITERATURE",
    "SEMANTIC_SCHOLAR_URL",
    "RESEARCH_LITERATURE_LIMIT",
    "RESEARCH_HOST",
    "RESEARCH_PORT",
)


class FakeGateway:
    """Scripted LLM gateway.

    ``responses`` are consumed one per ``complete_text`` call: strings are
    returned verbatim, dicts/lists are JSON-encoded, exceptions are raised.
    ``stream`` is the list of StreamDelta objects every ``stream_text`` yields.
    """

    provider = "fake"

    def __init__(self, responses: list[Any] | None = None, stream: list[Any] | None = None) -> None:
        self.model = "fake-model"
        self.responses = list(responses or [])
        self.stream = list(stream or [])
        self.prompts: list[str] = []
        self.stream_calls: list[tuple[list, Any]] = []

    async def complete_text(self, prompt: str, *, json_mode: bool = False) -> str:
        self.prompts.append(prompt)
        if not self.responses:
            raise AssertionError(f"Unexpected LLM call #{len(self.prompts)}")
        item = self.responses.pop(0)
        if isinstance(item, Exception):
            raise item
        return item if isinstance(item, str) else json.dumps(item)

    async def stream_text(self, messages, *, tools=None):
        self.stream_calls.append((list(messages), tools))
        for delta in self.stream:
            yield delta


class FakeLiterature:
    """Literature lookup returning a fixed paper list and recording queries."""

    def __init__(self, papers: list[Paper]) -> None:
        self.papers = papers
        self.queries: list[tuple[str, int]] = []

    async def search(self, query: str, limit: int = 8) -> list[Paper]:
        self.queries.append((query, limit))
        return list(self.papers[:limit])


@pytest.fixture(autouse=True)
def _isolate_env(monkeypatch):
    """Start every test from a known environment with dummy API keys."""
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("OPENROUTER_API_KEY", "test-key-not-real")
    monkeypatch.setenv("GEMINI_API_KEY", "test-key-not-real")


@pytest.fixture(autouse=True)
def _isolate_dotenv(tmp_path, monkeypatch):
    """Prevent tests from loading the user's real ~/.config/research-agent-mcp/.env."""
    monkeypatch.setattr(
        "research_agent_mcp.config.DEFAULT_ENV_PATH",
        tmp_path / "nonexistent.env",
    )


@pytest.fixture(autouse=True)
def clean_config():
    """Reset the config singleton between tests."""
    import research_agent_mcp.config as cfg_mod

    cfg_mod._config = None
    yield
    cfg_mod._config = None


@pytest.fixture(autouse=True)
def _reset_provider_clients():
    """Drop pooled SDK clients so no test sees another test's client."""
    from research_agent_mcp.providers import ProviderClients

    yield
    ProviderClients._openrouter.clear()
    ProviderClients._gemini.clear()


@pytest.fixture()
def sample_papers() -> list[Paper]:
    return list(MOCK_PAPERS)


@pytest.fixture()
def make_agent(sample_papers):
    """Factory for a ResearchAgent over a FakeGateway and FakeLiterature."""

    def _make(
        responses: list[Any] | None = None,
        stream: list[Any] | None = None,
        papers: list[Paper] | None = None,
        **kwargs: Any,
    ) -> ResearchAgent:
        kwargs.setdefault("backoff_seconds", 0)
        gateway = FakeGateway(responses, stream)
        literature = FakeLiterature(sample_papers if papers is None else papers)
        return ResearchAgent(gateway, literature, **kwargs)

    return _make


@pytest.fixture()
def collect():
    """Run an agent operation to completion and return its events."""

    async def _collect(agent: ResearchAgent, operation, timeout: float | None = None) -> list:
        return [event async for event in agent.events(operation, timeout=timeout)]

    return _collect


@pytest.fixture()
def brainstorm_payload() -> dict:
    return {
        "ideas": [
            {"title": f"Idea {n}", "description": f"Hypothesis number {n}"}
            for n in range(1, 6)
        ]
    }
