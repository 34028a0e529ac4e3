"""JSON extraction and validation for free-form LLM output.

Models wrap JSON in markdown fences, prepend chatter, or return a bare
array where a wrapper object was requested. ``extract_structured`` repairs
the common cases and raises ``ParseError`` / ``SchemaError`` for the rest,
which the agent's retry loop treats as retryable.
"""

from __future__ import annotations

import json
import logging
from typing import Any, TypeVar

from pydantic import BaseModel, ValidationError

from .errors import ParseError, SchemaError

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)

FENCE = "```"

# Key a bare JSON array is wrapped under, per step.
WRAPPER_KEYS: dict[str, str] = {
    "brainstorm": "ideas",
    "evaluate": "evaluations",
    "rankPapers": "rankings",
    "plan": "tasks",
}


def extract_json_text(raw_text: str) -> str:
    """Return the JSON-looking portion of *raw_text*.

    Prefers a ```` ```json ```` fence, then the first fenced segment that
    starts with ``{`` or ``[``, then the whole trimmed text.
    """
    text = raw_text.strip()
    tagged = FENCE + "json"
    if tagged in text:
        return text.split(tagged, 1)[1].split(FENCE, 1)[0].strip()
    if FENCE in text:
        for segment in text.split(FENCE):
            candidate = segment.strip()
            if candidate.startswith(("{", "[")):
                return candidate
    return text


def parse_json(raw_text: str) -> Any:
    """De-fence and parse *raw_text*.

    Raises:
        ParseError: If the extracted text is not valid JSON.
    """
    json_text = extract_json_text(raw_text)
    try:
        return json.loads(json_text)
    except json.JSONDecodeError as exc:
        raise ParseError(f"LLM output is not valid JSON ({exc.msg}): {json_text[:200]!r}") from exc


def extract_structured(raw_text: str, schema: type[M], step: str) -> M:
    """Extract, repair, and validate one JSON object from *raw_text*.

    Args:
        raw_text: Raw completion text.
        schema: Pydantic model the payload must satisfy.
        step: Step name; selects the wrapper key for bare arrays.

    Returns:
        Validated instance of *schema*.

    Raises:
        ParseError: Output is not JSON.
        SchemaError: Output is JSON but does not match *schema*.
    """
    parsed = parse_json(raw_text)

    if isinstance(parsed, list) and step in WRAPPER_KEYS:
        logger.debug("%s: wrapping bare array under %r", step, WRAPPER_KEYS[step])
        parsed = {WRAPPER_KEYS[step]: parsed}

    try:
        return schema.model_validate(parsed)
    except ValidationError as exc:
        raise SchemaError(f"{step}: {exc.error_count()} validation error(s): {exc}") from exc
