"""Line-prefixed update stream: encoder and incremental decoder.

Wire format, one event per ``\\n``-terminated line:

- ``0:<json-string>``: text fragment appended to the live transcript.
- ``2:<json-object>``: discriminated progress event (``type`` key).

The decoder tolerates arbitrary fragmentation of the byte stream: a line is
only parsed once its terminating newline has arrived, so a split inside a
line (or inside a multi-byte UTF-8 character) is held back until the next
read. Malformed lines are logged and skipped.
"""

from __future__ import annotations

import json
import logging
from collections.abc import AsyncIterable, AsyncIterator

from pydantic import ValidationError

from .models.events import EVENT_ADAPTER, ResearchEvent, TextEvent

logger = logging.getLogger(__name__)

TEXT_PREFIX = "0:"
EVENT_PREFIX = "2:"


def encode(event: ResearchEvent) -> bytes:
    """Serialize one event as a single protocol line."""
    if isinstance(event, TextEvent):
        line = TEXT_PREFIX + json.dumps(event.text)
    else:
        line = EVENT_PREFIX + event.model_dump_json(by_alias=True, exclude_none=True)
    return (line + "\n").encode("utf-8")


def decode_line(line: str) -> ResearchEvent | None:
    """Parse one complete line; returns ``None`` (and logs) when malformed."""
    line = line.strip()
    if not line:
        return None
    prefix, sep, payload = line.partition(":")
    if not sep:
        logger.warning("Skipping stream line without prefix: %.80r", line)
        return None
    try:
        data = json.loads(payload)
    except json.JSONDecodeError as exc:
        logger.warning("Skipping unparseable stream line (%s): %.80r", exc.msg, line)
        return None

    if prefix + ":" == TEXT_PREFIX:
        if not isinstance(data, str):
            logger.warning("Skipping non-string text fragment: %.80r", line)
            return None
        return TextEvent(text=data)
    if prefix + ":" == EVENT_PREFIX:
        try:
            return EVENT_ADAPTER.validate_python(data)
        except ValidationError as exc:
            logger.warning("Skipping invalid event (%d error(s)): %.80r", exc.error_count(), line)
            return None

    logger.warning("Skipping stream line with unknown prefix %r", prefix)
    return None


class StreamDecoder:
    """Incremental decoder fed with raw byte chunks as they arrive."""

    def __init__(self) -> None:
        self._buffer = b""

    def feed(self, chunk: bytes) -> list[ResearchEvent]:
        """Consume *chunk*; return the events completed by it."""
        self._buffer += chunk
        *lines, self._buffer = self._buffer.split(b"\n")
        return self._decode_all(lines)

    def flush(self) -> list[ResearchEvent]:
        """Decode whatever unterminated tail remains at end of stream."""
        tail, self._buffer = self._buffer, b""
        return self._decode_all([tail]) if tail.strip() else []

    @staticmethod
    def _decode_all(lines: list[bytes]) -> list[ResearchEvent]:
        events: list[ResearchEvent] = []
        for raw in lines:
            try:
                text = raw.decode("utf-8")
            except UnicodeDecodeError:
                logger.warning("Skipping stream line with invalid UTF-8 (%d bytes)", len(raw))
                continue
            event = decode_line(text)
            if event is not None:
                events.append(event)
        return events


async def decode_stream(chunks: AsyncIterable[bytes]) -> AsyncIterator[ResearchEvent]:
    """Decode an async byte stream into events, in order."""
    decoder = StreamDecoder()
    async for chunk in chunks:
        for event in decoder.feed(chunk):
            yield event
    for event in decoder.flush():
        yield event
