"""Backoff for transient provider failures.

A failure is transient when the SDK reports a retryable HTTP status
(``openai.APIStatusError.status_code``, ``google.genai`` ``APIError.code``),
when the connection itself failed, or, for errors that carry neither, when
the message names a rate limit, overload or timeout.
"""

from __future__ import annotations

import asyncio
import logging
import random
from collections.abc import Awaitable, Callable
from typing import TypeVar

import httpx
import openai
from google.genai import errors as genai_errors

from .config import get_config

logger = logging.getLogger(__name__)

T = TypeVar("T")

RETRYABLE_STATUS: frozenset[int] = frozenset({408, 409, 429, 500, 502, 503, 504})

_RETRYABLE_PATTERNS: tuple[str, ...] = (
    "429",
    "rate limit",
    "quota",
    "resource_exhausted",
    "timeout",
    "timed out",
    "502",
    "503",
    "service unavailable",
    "overloaded",
)


def _status_code(exc: Exception) -> int | None:
    if isinstance(exc, openai.APIStatusError):
        return exc.status_code
    if isinstance(exc, genai_errors.APIError):
        return exc.code
    if isinstance(exc, httpx.HTTPStatusError):
        return exc.response.status_code
    return None


def _is_retryable(exc: Exception) -> bool:
    """Classify a provider failure as transient or permanent."""
    status = _status_code(exc)
    if status is not None:
        return status in RETRYABLE_STATUS
    if isinstance(exc, (httpx.TransportError, openai.APIConnectionError)):
        return True
    msg = str(exc).lower()
    return any(p in msg for p in _RETRYABLE_PATTERNS)


async def with_retry(coro_factory: Callable[[], Awaitable[T]]) -> T:
    """Await ``coro_factory()`` until it succeeds or fails permanently.

    Delays grow as ``retry_base_delay * 2**attempt`` plus up to one second of
    jitter, capped at ``retry_max_delay``. ``coro_factory`` must return a
    fresh awaitable on every call.
    """
    cfg = get_config()
    max_attempts = cfg.retry_max_attempts

    for attempt in range(max_attempts):
        try:
            return await coro_factory()
        except Exception as exc:
            if not _is_retryable(exc) or attempt == max_attempts - 1:
                raise
            delay = min(cfg.retry_base_delay * (2 ** attempt) + random.random(), cfg.retry_max_delay)
            logger.warning(
                "%s from provider, retry %d/%d in %.1fs: %s",
                type(exc).__name__, attempt + 1, max_attempts - 1, delay, exc,
            )
            await asyncio.sleep(delay)
    raise RuntimeError("with_retry exhausted without a result")
