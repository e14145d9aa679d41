"""
Tests for the NDJSON / SSE line parsers and the base provider's stream readers.
Run with: pytest tests/test_streaming.py
"""

import pytest

from agentchat.providers.base import BaseProvider
from agentchat.providers.streaming import SSEDecoder, parse_ndjson_line


def _sse(lines):
    decoder = SSEDecoder()
    events = [decoder.decode(line) for line in lines]
    return decoder, [e for e in events if e is not None]


# ---------------------------------------------------------------------------
# NDJSON
# ---------------------------------------------------------------------------

def test_ndjson_parses_object_line():
    assert parse_ndjson_line('{"message":{"content":"Hel"}}') == {"message": {"content": "Hel"}}


def test_ndjson_skips_malformed_lines():
    """Garbage, blank and non-object lines give None instead of raising."""
    assert parse_ndjson_line("not json at all") is None
    assert parse_ndjson_line("[1,2]") is None
    assert parse_ndjson_line("   ") is None
    assert parse_ndjson_line('{"b":2}\r') == {"b": 2}


# ---------------------------------------------------------------------------
# SSE
# ---------------------------------------------------------------------------

def test_sse_strips_data_prefix():
    _, events = _sse(['data: {"text":"Hi"}', ""])
    assert len(events) == 1
    assert events[0].data == {"text": "Hi"}


def test_sse_tracks_event_names():
    """event: lines name the following data line; type is the fallback."""
    _, events = _sse([
        "event: content_block_delta",
        'data: {"type":"content_block_delta","delta":{"text":"a"}}',
        "",
        'data: {"type":"ping"}',
        "",
    ])
    assert [e.event for e in events] == ["content_block_delta", "ping"]


def test_sse_skips_malformed_data_and_comments():
    _, events = _sse(['data: {"n":1}', "", "data: {oops", "", ": keepalive", 'data: {"n":2}'])
    assert [e.data["n"] for e in events] == [1, 2]


def test_sse_done_sentinel_stops_decoding():
    decoder, events = _sse(['data: {"n":1}', "", "data: [DONE]", "", 'data: {"n":2}'])
    assert [e.data["n"] for e in events] == [1]
    assert decoder.done
    assert decoder.decode('data: {"n":3}') is None


# ---------------------------------------------------------------------------
# Reading response bodies split across network reads
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_iter_ndjson_line_split_across_reads(stream_response_factory):
    resp = stream_response_factory(['{"message":{"content":"Hel"}}\n{"mess', 'age":{"content":"lo"}}\n{"done":true}'])
    items = [item async for item in BaseProvider._iter_ndjson(resp)]
    assert items == [{"message": {"content": "Hel"}}, {"message": {"content": "lo"}}, {"done": True}]


@pytest.mark.asyncio
async def test_iter_sse_split_inside_prefix(stream_response_factory):
    """Reads can split anywhere, even inside 'data:' or a CRLF."""
    resp = stream_response_factory(
        ["da", 'ta: {"n"', ':1}\r', '\n\r\ndata: {"n":2}\n\ndata: [DONE]\n\ndata: {"n":3}\n\n'],
        content_type="text/event-stream",
    )
    events = [event async for event in BaseProvider._iter_sse(resp)]
    assert [e.data for e in events] == [{"n": 1}, {"n": 2}]
