"""Literature lookup: Semantic Scholar paper search, or a fixed mock.

The mock is the default (``RESEARCH_MOCK_LITERATURE=true``): it returns the
same two sample papers for every query.
"""

from __future__ import annotations

import logging
import uuid
from datetime import date
from typing import Any, Protocol

import httpx

from .config import get_config
from .models.research import Paper

logger = logging.getLogger(__name__)

SEARCH_FIELDS = "paperId,title,authors,year,citationCount,abstract,url,externalIds"

MOCK_PAPERS: tuple[Paper, ...] = (
    Paper(
        id="mock-1",
        title="Efficient Training of Large Language Models with MoE",
        authors=["AI Researcher", "Expert Dev"],
        year=2024,
        citation_count=150,
        relevance=95,
        summary="This paper explores scaling laws for Mixture-of-Experts models...",
        url="https://arxiv.org/abs/example1",
    ),
    Paper(
        id="mock-2",
        title="Optimizing Tokenization for Neural Machine Translation",
        authors=["Language Pro", "Comp Sci"],
        year=2023,
        citation_count=45,
        relevance=80,
        summary="A study on how different tokenization strategies impact translation quality...",
        url="https://arxiv.org/abs/example2",
    ),
)


class LiteratureLookup(Protocol):
    async def search(self, query: str, limit: int = 8) -> list[Paper]:
        ...


class MockLiteratureLookup:
    """Returns the fixed sample papers regardless of query."""

    async def search(self, query: str, limit: int = 8) -> list[Paper]:
        logger.info("Mock literature search for %r", query)
        return list(MOCK_PAPERS[:limit])


def paper_from_semantic_scholar(item: dict[str, Any]) -> Paper:
    """Map one Semantic Scholar search hit to a Paper (relevance unset)."""
    external_ids = item.get("externalIds") or {}
    arxiv_id = external_ids.get("ArXiv")
    authors = [a.get("name", "") for a in item.get("authors") or [] if a.get("name")]
    return Paper(
        id=item.get("paperId") or f"paper-{uuid.uuid4().hex[:12]}",
        title=item.get("title") or "Untitled",
        authors=authors or ["Unknown"],
        year=item.get("year") or date.today().year,
        citation_count=item.get("citationCount") or 0,
        relevance=0,
        summary=item.get("abstract") or "No abstract available.",
        url=f"https://arxiv.org/abs/{arxiv_id}" if arxiv_id else (item.get("url") or "#"),
    )


class SemanticScholarLookup:
    """Paper search against the Semantic Scholar Graph API."""

    def __init__(self, base_url: str | None = None, *, transport: httpx.AsyncBaseTransport | None = None) -> None:
        self._base_url = base_url or get_config().semantic_scholar_url
        self._transport = transport

    async def search(self, query: str, limit: int = 8) -> list[Paper]:
        """Search papers; HTTP and network failures are logged and yield ``[]``."""
        params = {"query": query, "limit": str(limit), "fields": SEARCH_FIELDS}
        logger.info("Semantic Scholar search for %r (limit=%d)", query, limit)
        try:
            async with httpx.AsyncClient(timeout=30, transport=self._transport) as client:
                resp = await client.get(self._base_url, params=params)
                resp.raise_for_status()
                data = resp.json()
        except httpx.HTTPStatusError as exc:
            logger.error("Semantic Scholar API error %d: %s", exc.response.status_code, exc.response.text[:200])
            return []
        except (httpx.HTTPError, ValueError) as exc:
            logger.error("Semantic Scholar search failed: %s", exc)
            return []

        return [paper_from_semantic_scholar(item) for item in data.get("data") or []]


def default_lookup() -> LiteratureLookup:
    """The lookup selected by configuration."""
    if get_config().mock_literature:
        return MockLiteratureLookup()
    return SemanticScholarLookup()
