"""Provider client pool and gateway factory.

SDK clients are created once per API key and shared read-only across
requests; gateways are cheap per-request wrappers binding a client to a model.
"""

from __future__ import annotations

import logging

import openai
from google import genai

from ..config import get_config
from ..errors import ProviderError
from .base import LLMGateway, StreamDelta, ToolDefinition
from .gemini import GeminiGateway
from .openrouter import OpenRouterGateway

logger = logging.getLogger(__name__)

__all__ = [
    "GeminiGateway",
    "LLMGateway",
    "OpenRouterGateway",
    "ProviderClients",
    "StreamDelta",
    "ToolDefinition",
    "create_gateway",
]


class ProviderClients:
    """Process-wide SDK client pool (one client per provider and API key)."""

    _openrouter: dict[str, openai.AsyncOpenAI] = {}
    _gemini: dict[str, genai.Client] = {}

    @classmethod
    def openrouter(cls, api_key: str | None = None) -> openai.AsyncOpenAI:
        """Return (or create) the shared OpenRouter client for *api_key*."""
        cfg = get_config()
        key = api_key or cfg.openrouter_api_key
        if not key:
            raise ProviderError("openrouter", "No API key; set OPENROUTER_API_KEY")
        if key not in cls._openrouter:
            # Transient failures are retried by with_retry, not the SDK.
            cls._openrouter[key] = openai.AsyncOpenAI(
                api_key=key,
                base_url=cfg.openrouter_base_url,
                max_retries=0,
            )
            logger.info("Created OpenRouter client (key …%s)", key[-4:])
        return cls._openrouter[key]

    @classmethod
    def gemini(cls, api_key: str | None = None) -> genai.Client:
        """Return (or create) the shared Gemini client for *api_key*."""
        key = api_key or get_config().gemini_api_key
        if not key:
            raise ProviderError("google", "No API key; set GEMINI_API_KEY")
        if key not in cls._gemini:
            cls._gemini[key] = genai.Client(api_key=key)
            logger.info("Created Gemini client (key …%s)", key[-4:])
        return cls._gemini[key]

    @classmethod
    async def close_all(cls) -> int:
        """Shut down all shared clients. Returns count closed."""
        count = 0
        for client in list(cls._openrouter.values()):
            try:
                await client.close()
            except Exception:
                logger.debug("OpenRouter client close failed", exc_info=True)
            count += 1
        for client in list(cls._gemini.values()):
            try:
                await client.aio.aclose()
            except Exception:
                logger.debug("Gemini client close failed", exc_info=True)
            count += 1
        cls._openrouter.clear()
        cls._gemini.clear()
        logger.info("Closed %d provider client(s)", count)
        return count


def create_gateway(provider: str | None = None, model: str | None = None) -> LLMGateway:
    """Build a gateway for *provider* and *model*, defaulting both from config.

    Raises:
        ProviderError: Unknown provider or missing API key.
    """
    cfg = get_config()
    resolved = (provider or cfg.default_provider).strip().lower()
    resolved_model = model or cfg.model_for(resolved)
    if resolved == "openrouter":
        return OpenRouterGateway(ProviderClients.openrouter(), resolved_model)
    if resolved == "google":
        return GeminiGateway(ProviderClients.gemini(), resolved_model)
    raise ProviderError(resolved, "Unknown provider; use 'openrouter' or 'google'")
