"""Tests for configuration parsing and the config singleton."""

from __future__ import annotations

import os

import pytest
from pydantic import ValidationError

import research_agent_mcp.config as cfg_mod
from research_agent_mcp.config import ServerConfig, get_config


class TestServerConfigDefaults:
    def test_defaults(self):
        cfg = ServerConfig.from_env()
        assert cfg.default_provider == "openrouter"
        assert cfg.openrouter_model == "openai/gpt-4o-mini"
        assert cfg.gemini_model == "gemini-3-flash-preview"
        assert cfg.structured_retries == 2
        assert cfg.retry_backoff_seconds == 1.5
        assert cfg.handler_timeout_seconds == 60
        assert cfg.chat_timeout_seconds == 30
        assert cfg.mock_literature is True
        assert cfg.literature_limit == 8

    def test_model_for_provider(self):
        cfg = ServerConfig.from_env()
        assert cfg.model_for("google") == "gemini-3-flash-preview"
        assert cfg.model_for("openrouter") == "openai/gpt-4o-mini"


class TestServerConfigFromEnv:
    def test_provider_is_normalized(self, monkeypatch):
        monkeypatch.setenv("RESEARCH_PROVIDER", "  Google ")
        assert ServerConfig.from_env().default_provider == "google"

    def test_unknown_provider_rejected(self, monkeypatch):
        monkeypatch.setenv("RESEARCH_PROVIDER", "anthropic")
        with pytest.raises(ValidationError, match="Invalid provider"):
            ServerConfig.from_env()

    def test_zero_retries_allowed(self, monkeypatch):
        monkeypatch.setenv("RESEARCH_STRUCTURED_RETRIES", "0")
        assert ServerConfig.from_env().structured_retries == 0

    def test_negative_retries_rejected(self, monkeypatch):
        monkeypatch.setenv("RESEARCH_STRUCTURED_RETRIES", "-1")
        with pytest.raises(ValidationError):
            ServerConfig.from_env()

    @pytest.mark.parametrize("var", ["RESEARCH_HANDLER_TIMEOUT", "RESEARCH_RETRY_BACKOFF", "RESEARCH_RETRY_MAX_DELAY"])
    def test_non_positive_delays_rejected(self, monkeypatch, var):
        monkeypatch.setenv(var, "0")
        with pytest.raises(ValidationError, match="must be > 0"):
            ServerConfig.from_env()

    @pytest.mark.parametrize("value,expected", [("false", False), ("0", False), ("YES", True), ("1", True)])
    def test_mock_literature_flag(self, monkeypatch, value, expected):
        monkeypatch.setenv("RESEARCH_MOCK_LITERATURE", value)
        assert ServerConfig.from_env().mock_literature is expected


class TestGetConfig:
    def test_singleton(self):
        assert get_config() is get_config()

    def test_dotenv_file_loaded(self, tmp_path, monkeypatch):
        env_file = tmp_path / ".env"
        env_file.write_text("OPENROUTER_MODEL=meta-llama/llama-3-70b\n")
        monkeypatch.setattr(cfg_mod, "DEFAULT_ENV_PATH", env_file)
        monkeypatch.delenv("OPENROUTER_MODEL", raising=False)

        try:
            assert get_config().openrouter_model == "meta-llama/llama-3-70b"
        finally:
            os.environ.pop("OPENROUTER_MODEL", None)

    def test_process_env_wins_over_dotenv(self, tmp_path, monkeypatch):
        env_file = tmp_path / ".env"
        env_file.write_text("GEMINI_MODEL=from-file\n")
        monkeypatch.setattr(cfg_mod, "DEFAULT_ENV_PATH", env_file)
        monkeypatch.setenv("GEMINI_MODEL", "from-process")

        assert get_config().gemini_model == "from-process"
