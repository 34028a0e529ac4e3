"""Main FastMCP server: research tools plus the streaming HTTP routes."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastmcp import FastMCP

from .config import get_config
from .providers import ProviderClients
from .routes import chat_route, health_route, research_route
from .tools.research import research_server

logger = logging.getLogger(__name__)


@asynccontextmanager
async def _lifespan(server: FastMCP):
    """Startup/shutdown hook: tears down shared provider clients."""
    yield {}
    closed = await ProviderClients.close_all()
    logger.info("Lifespan shutdown: closed %d client(s)", closed)


app = FastMCP(
    "research-agent",
    instructions=(
        "Autonomous research agent: brainstorm hypotheses, score them, rank "
        "literature and write a research proposal. Streaming dashboard updates "
        "are served at POST /research and POST /chat."
    ),
    lifespan=_lifespan,
)

app.mount(research_server)

app.custom_route("/research", methods=["POST"])(research_route)
app.custom_route("/chat", methods=["POST"])(chat_route)
app.custom_route("/health", methods=["GET"])(health_route)


def main() -> None:
    """Entry-point for ``research-agent-mcp`` console script."""
    cfg = get_config()
    logger.info("Serving research agent on http://%s:%d", cfg.host, cfg.port)
    app.run(transport="http", host=cfg.host, port=cfg.port)


if __name__ == "__main__":
    main()
