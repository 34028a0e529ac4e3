"""Server configuration via environment variables."""

from __future__ import annotations

import logging
import os
from pathlib import Path

from dotenv import load_dotenv
from pydantic import BaseModel, Field, field_validator

logger = logging.getLogger(__name__)

VALID_PROVIDERS = {"openrouter", "google"}

DEFAULT_ENV_PATH = Path.home() / ".config" / "research-agent-mcp" / ".env"
DEFAULT_OPENROUTER_BASE_URL = "https://openrouter.ai/api/v1"
DEFAULT_SEMANTIC_SCHOLAR_URL = "https://api.semanticscholar.org/graph/v1/paper/search"


def _env_flag(name: str, default: str) -> bool:
    """Read a boolean flag (``1``/``true``/``yes`` are truthy)."""
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes")


class ServerConfig(BaseModel):
    """Runtime configuration resolved from environment."""

    openrouter_api_key: str = Field(default="")
    openrouter_base_url: str = Field(default=DEFAULT_OPENROUTER_BASE_URL)
    openrouter_model: str = Field(default="openai/gpt-4o-mini")
    gemini_api_key: str = Field(default="")
    gemini_model: str = Field(default="gemini-3-flash-preview")
    default_provider: str = Field(default="openrouter")
    structured_retries: int = Field(default=2)
    retry_backoff_seconds: float = Field(default=1.5)
    retry_max_attempts: int = Field(default=3)
    retry_base_delay: float = Field(default=1.0)
    retry_max_delay: float = Field(default=30.0)
    handler_timeout_seconds: float = Field(default=60.0)
    chat_timeout_seconds: float = Field(default=30.0)
    mock_literature: bool = Field(default=True)
    semantic_scholar_url: str = Field(default=DEFAULT_SEMANTIC_SCHOLAR_URL)
    literature_limit: int = Field(default=8)
    host: str = Field(default="127.0.0.1")
    port: int = Field(default=8000)

    @field_validator("default_provider")
    @classmethod
    def validate_provider(cls, value: str) -> str:
        provider = value.strip().lower()
        if provider not in VALID_PROVIDERS:
            allowed = ", ".join(sorted(VALID_PROVIDERS))
            raise ValueError(f"Invalid provider '{value}'. Allowed: {allowed}")
        return provider

    @field_validator("structured_retries")
    @classmethod
    def validate_structured_retries(cls, value: int) -> int:
        if value < 0:
            raise ValueError("structured_retries must be >= 0")
        return value

    @field_validator("retry_max_attempts", "literature_limit", "port")
    @classmethod
    def validate_positive_ints(cls, value: int) -> int:
        if value < 1:
            raise ValueError("Configuration values must be >= 1")
        return value

    @field_validator(
        "retry_backoff_seconds",
        "retry_base_delay",
        "retry_max_delay",
        "handler_timeout_seconds",
        "chat_timeout_seconds",
    )
    @classmethod
    def validate_positive_delays(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("Delays and timeouts must be > 0")
        return value

    @classmethod
    def from_env(cls) -> ServerConfig:
        """Build config from environment variables."""
        return cls(
            openrouter_api_key=os.getenv("OPENROUTER_API_KEY", ""),
            openrouter_base_url=os.getenv("OPENROUTER_BASE_URL", DEFAULT_OPENROUTER_BASE_URL),
            openrouter_model=os.getenv("OPENROUTER_MODEL", "openai/gpt-4o-mini"),
            gemini_api_key=os.getenv("GEMINI_API_KEY", ""),
            gemini_model=os.getenv("GEMINI_MODEL", "gemini-3-flash-preview"),
            default_provider=os.getenv("RESEARCH_PROVIDER", "openrouter"),
            structured_retries=int(os.getenv("RESEARCH_STRUCTURED_RETRIES", "2")),
            retry_backoff_seconds=float(os.getenv("RESEARCH_RETRY_BACKOFF", "1.5")),
            retry_max_attempts=int(os.getenv("RESEARCH_RETRY_MAX_ATTEMPTS", "3")),
            retry_base_delay=float(os.getenv("RESEARCH_RETRY_BASE_DELAY", "1.0")),
            retry_max_delay=float(os.getenv("RESEARCH_RETRY_MAX_DELAY", "30.0")),
            handler_timeout_seconds=float(os.getenv("RESEARCH_HANDLER_TIMEOUT", "60")),
            chat_timeout_seconds=float(os.getenv("RESEARCH_CHAT_TIMEOUT", "30")),
            mock_literature=_env_flag("RESEARCH_MOCK_LITERATURE", "true"),
            semantic_scholar_url=os.getenv("SEMANTIC_SCHOLAR_URL", DEFAULT_SEMANTIC_SCHOLAR_URL),
            literature_limit=int(os.getenv("RESEARCH_LITERATURE_LIMIT", "8")),
            host=os.getenv("RESEARCH_HOST", "127.0.0.1"),
            port=int(os.getenv("RESEARCH_PORT", "8000")),
        )

    def model_for(self, provider: str) -> str:
        """Default model identifier for *provider*."""
        return self.gemini_model if provider == "google" else self.openrouter_model


_config: ServerConfig | None = None


def get_config() -> ServerConfig:
    """Return the global config singleton, creating it on first access.

    Loads ``~/.config/research-agent-mcp/.env`` before reading env vars.
    Process environment always takes precedence over the config file.
    """
    global _config
    if _config is None:
        if load_dotenv(DEFAULT_ENV_PATH, override=False):
            logger.info("Loaded environment overrides from %s", DEFAULT_ENV_PATH)
        _config = ServerConfig.from_env()
    return _config
