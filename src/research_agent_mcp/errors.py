"""Structured error handling: exception taxonomy, classification, and tool error model."""

from __future__ import annotations

from enum import Enum

import httpx
from pydantic import BaseModel


class ResearchAgentError(Exception):
    """Base class for every failure raised by the research agent."""


class ParseError(ResearchAgentError):
    """LLM output did not contain syntactically valid JSON."""


class SchemaError(ResearchAgentError):
    """LLM output was valid JSON but had the wrong shape or ranges."""


class ProviderError(ResearchAgentError):
    """Transport, auth, or rate-limit failure from an LLM provider."""

    def __init__(self, provider: str, message: str) -> None:
        self.provider = provider
        super().__init__(f"{provider}: {message}")


class UnknownToolError(ResearchAgentError):
    """A tool call referenced a tool that was never declared."""

    def __init__(self, tool_name: str) -> None:
        self.tool_name = tool_name
        super().__init__(f"Unknown tool: {tool_name}")


class MissingInputError(ResearchAgentError):
    """A required request field was absent."""


class StructuredOutputError(ResearchAgentError):
    """All attempts of a structured LLM call failed."""

    def __init__(self, step: str, attempts: int, last_error: Exception | None) -> None:
        self.step = step
        self.attempts = attempts
        self.last_error = last_error
        detail = str(last_error) if last_error else "Schema mismatch or parsing error"
        super().__init__(f"Research step '{step}' failed after {attempts} attempts. Error: {detail}")


class HandlerTimeoutError(ResearchAgentError):
    """A request exceeded its wall-clock ceiling."""

    def __init__(self, seconds: float) -> None:
        self.seconds = seconds
        super().__init__(f"Research run exceeded the {seconds:g}s time limit")


class ErrorCategory(str, Enum):
    """Categories of errors for diagnostics."""

    PARSE_FAILED = "PARSE_FAILED"
    SCHEMA_MISMATCH = "SCHEMA_MISMATCH"
    STRUCTURED_OUTPUT_FAILED = "STRUCTURED_OUTPUT_FAILED"
    API_PERMISSION_DENIED = "API_PERMISSION_DENIED"
    API_QUOTA_EXCEEDED = "API_QUOTA_EXCEEDED"
    API_KEY_MISSING = "API_KEY_MISSING"
    PROVIDER_UNAVAILABLE = "PROVIDER_UNAVAILABLE"
    NETWORK_ERROR = "NETWORK_ERROR"
    UNKNOWN_TOOL = "UNKNOWN_TOOL"
    MISSING_INPUT = "MISSING_INPUT"
    TIMEOUT = "TIMEOUT"
    UNKNOWN = "UNKNOWN"


class ToolError(BaseModel):
    """Structured error returned from any tool."""

    error: str
    category: str
    hint: str
    retryable: bool = False
    retry_after_seconds: int | None = None


def categorize_error(error: Exception) -> tuple[ErrorCategory, str]:
    """Map an exception to an ErrorCategory + human-readable hint."""
    if isinstance(error, UnknownToolError):
        return (
            ErrorCategory.UNKNOWN_TOOL,
            "Only searchLiterature and brainstormIdeas can be executed",
        )
    if isinstance(error, MissingInputError):
        return (ErrorCategory.MISSING_INPUT, str(error))
    if isinstance(error, HandlerTimeoutError):
        return (
            ErrorCategory.TIMEOUT,
            "The run hit its time limit; retry with a narrower topic or a faster model",
        )
    if isinstance(error, ParseError):
        return (ErrorCategory.PARSE_FAILED, "The model did not return valid JSON")
    if isinstance(error, SchemaError):
        return (ErrorCategory.SCHEMA_MISMATCH, "The model returned JSON of the wrong shape")
    if isinstance(error, StructuredOutputError):
        return (
            ErrorCategory.STRUCTURED_OUTPUT_FAILED,
            "The model kept returning unusable output; try another model",
        )
    if isinstance(error, (httpx.TimeoutException, TimeoutError)):
        return (
            ErrorCategory.NETWORK_ERROR,
            "Request timed out; try again or check connectivity",
        )
    if isinstance(error, httpx.NetworkError):
        return (
            ErrorCategory.NETWORK_ERROR,
            "Network failure; check connectivity",
        )

    s = str(error).lower()

    if "api key" in s and ("no " in s or "missing" in s):
        return (
            ErrorCategory.API_KEY_MISSING,
            "Set OPENROUTER_API_KEY or GEMINI_API_KEY for the selected provider",
        )
    if "401" in s or "403" in s or "permission" in s or "unauthorized" in s:
        return (
            ErrorCategory.API_PERMISSION_DENIED,
            "API key rejected or lacks access to the requested model",
        )
    if "429" in s or "quota" in s or "resource_exhausted" in s or "rate limit" in s:
        return (
            ErrorCategory.API_QUOTA_EXCEEDED,
            "Rate limit hit; wait and retry, or switch to another model",
        )
    if "503" in s or "unavailable" in s or "overloaded" in s:
        return (
            ErrorCategory.PROVIDER_UNAVAILABLE,
            "Provider temporarily unavailable; retry shortly",
        )
    if "timeout" in s or "timed out" in s:
        return (
            ErrorCategory.NETWORK_ERROR,
            "Request timed out; try again or check connectivity",
        )

    return (ErrorCategory.UNKNOWN, str(error))


def make_tool_error(error: Exception) -> dict:
    """Create a serialisable ToolError dict from an exception."""
    cat, hint = categorize_error(error)
    retryable = cat in {
        ErrorCategory.API_QUOTA_EXCEEDED,
        ErrorCategory.NETWORK_ERROR,
        ErrorCategory.PROVIDER_UNAVAILABLE,
        ErrorCategory.STRUCTURED_OUTPUT_FAILED,
        ErrorCategory.TIMEOUT,
    }
    return ToolError(
        error=str(error),
        category=cat.value,
        hint=hint,
        retryable=retryable,
        retry_after_seconds=60 if cat == ErrorCategory.API_QUOTA_EXCEEDED else None,
    ).model_dump(mode="json")


def error_message(error: Exception) -> str:
    """Human-readable message for an ``error`` stream event."""
    return str(error) or error.__class__.__name__
