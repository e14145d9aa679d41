"""
Shared fixtures: wire-level fakes for provider HTTP traffic.

Providers accept an httpx transport, so tests swap in httpx.MockTransport
and script the bytes a server would send, read by read.
"""

import copy
import json

import httpx
import pytest

from agentchat.config import DEFAULTS


class ChunkStream(httpx.AsyncByteStream):
    """Response body delivered as the given reads, in order."""

    def __init__(self, chunks):
        self.chunks = chunks

    async def __aiter__(self):
        for chunk in self.chunks:
            yield chunk.encode() if isinstance(chunk, str) else chunk


class FakeServer:
    """
    Records requests and answers them from a handler.
    `handler(request)` returns an httpx.Response or raises an httpx error.
    """

    def __init__(self, handler=None):
        self.requests: list[httpx.Request] = []
        self.handler = handler

    def _handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.handler is None:
            raise AssertionError(f"Unexpected request to {request.url}")
        return self.handler(request)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self._handle)

    def last_json(self) -> dict:
        return json.loads(self.requests[-1].content)


def stream_response(chunks, status_code=200, content_type="application/x-ndjson"):
    return httpx.Response(
        status_code,
        headers={"content-type": content_type},
        stream=ChunkStream(chunks),
    )


@pytest.fixture
def server():
    return FakeServer()


@pytest.fixture
def settings(monkeypatch):
    """Built-in defaults with no credentials leaking in from the environment."""
    monkeypatch.delenv("ANTHROPIC_API_KEY", raising=False)
    monkeypatch.delenv("GEMINI_API_KEY", raising=False)
    cfg = copy.deepcopy(DEFAULTS)
    cfg["providers"]["anthropic"]["api_key"] = ""
    cfg["providers"]["gemini"]["api_key"] = ""
    cfg["providers"]["ollama"]["url"] = "http://fake-ollama:11434"
    return cfg


@pytest.fixture
def stream_response_factory():
    return stream_response
