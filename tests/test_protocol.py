"""Tests for the line-prefixed update stream encoder and decoder."""

from __future__ import annotations

import json

from research_agent_mcp.models.events import (
    ErrorEvent,
    IdeasEvent,
    LogEvent,
    PhaseEvent,
    TextEvent,
    ToolCallEvent,
)
from research_agent_mcp.models.research import Idea, ToolCall
from research_agent_mcp.protocol import StreamDecoder, decode_line, decode_stream, encode

EVENTS = [
    PhaseEvent(phase="chatting"),
    TextEvent(text="Hello, "),
    TextEvent(text="wörld — ünïcode ✓\nnewline inside"),
    LogEvent(message="Brainstorming research ideas on: μ-opioid receptors"),
    IdeasEvent(ideas=[Idea(id="idea-1-0", title="Ïdea", description="δ", novelty_score=7, feasibility_score=5, impact_score=8)]),
    ToolCallEvent(tool_call=ToolCall(tool_call_id="c1", tool_name="brainstormIdeas", args={"topic": "x"})),
    ErrorEvent(message="boom"),
]


def _wire() -> bytes:
    return b"".join(encode(e) for e in EVENTS)


class TestEncode:
    def test_text_uses_channel_zero(self):
        assert encode(TextEvent(text='say "hi"\n')) == b'0:"say \\"hi\\"\\n"\n'

    def test_events_use_channel_two_with_camel_case(self):
        line = encode(ToolCallEvent(tool_call=ToolCall(tool_call_id="c1", tool_name="searchLiterature")))
        assert line.startswith(b"2:") and line.endswith(b"\n")
        payload = json.loads(line[2:])
        assert payload == {
            "type": "tool-call",
            "toolCall": {"toolCallId": "c1", "toolName": "searchLiterature", "args": {}},
        }

    def test_one_line_per_event(self):
        assert _wire().count(b"\n") == len(EVENTS)


class TestStreamDecoder:
    def test_whole_stream(self):
        decoder = StreamDecoder()
        assert decoder.feed(_wire()) + decoder.flush() == EVENTS

    def test_split_at_every_offset_matches_whole_stream(self):
        wire = _wire()
        for offset in range(len(wire) + 1):
            decoder = StreamDecoder()
            events = decoder.feed(wire[:offset]) + decoder.feed(wire[offset:]) + decoder.flush()
            assert events == EVENTS, f"split at byte {offset}"

    def test_byte_by_byte(self):
        decoder = StreamDecoder()
        events = []
        for byte in _wire():
            events.extend(decoder.feed(bytes([byte])))
        assert events == EVENTS

    def test_partial_line_held_back(self):
        decoder = StreamDecoder()
        assert decoder.feed(b'2:{"type":"log","mess') == []
        assert decoder.feed(b'age":"hi"}\n') == [LogEvent(message="hi")]

    def test_unterminated_tail_decoded_on_flush(self):
        decoder = StreamDecoder()
        assert decoder.feed(b'0:"tail"') == []
        assert decoder.flush() == [TextEvent(text="tail")]
        assert decoder.flush() == []

    def test_malformed_lines_skipped(self, caplog):
        wire = b"".join([
            encode(PhaseEvent(phase="brainstorming")),
            b"garbage without prefix\n",
            b"2:{not json}\n",
            b'2:{"type":"teleport"}\n',
            b'9:"unknown channel"\n',
            b"0:42\n",
            b"\xff\xfe:bad utf8\n",
            b"\n",
            encode(PhaseEvent(phase="awaiting-selection")),
        ])
        decoder = StreamDecoder()
        events = decoder.feed(wire) + decoder.flush()
        assert events == [PhaseEvent(phase="brainstorming"), PhaseEvent(phase="awaiting-selection")]
        assert "Skipping" in caplog.text


def test_decode_line_rejects_invalid_phase():
    assert decode_line('2:{"type":"phase","phase":"sleeping"}') is None


async def test_decode_stream_async():
    wire = _wire()

    async def chunks():
        for i in range(0, len(wire), 7):
            yield wire[i:i + 7]

    assert [e async for e in decode_stream(chunks())] == EVENTS
