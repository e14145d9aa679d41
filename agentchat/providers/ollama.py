"""
Ollama provider — local LLM inference via Ollama's native /api/chat.
No API key. Streaming responses are newline-delimited JSON.
"""

from __future__ import annotations

import logging

from agentchat.errors import ProviderError
from agentchat.providers.base import BaseProvider, ChatResult, StreamEvent, Usage

logger = logging.getLogger(__name__)


class OllamaProvider(BaseProvider):
    """Provider for local Ollama instances."""

    label = "Ollama"
    requires_credentials = False

    def __init__(self, *args, probe_timeout: float = 3, **kwargs):
        super().__init__(*args, **kwargs)
        self.probe_timeout = probe_timeout

    def _body(self, messages: list[dict], system_prompt: str, max_tokens: int, stream: bool) -> dict:
        return {
            "model": self.model,
            "messages": [{"role": "system", "content": system_prompt}] + [
                {"role": m["role"], "content": m["content"]} for m in messages
            ],
            "stream": stream,
            "options": {"num_predict": max_tokens},
        }

    def _connection_hint(self, exc: Exception) -> str:
        return (
            f"Cannot connect to Ollama at {self.url}. "
            f"Make sure Ollama is running (ollama serve). ({str(exc) or type(exc).__name__})"
        )

    @staticmethod
    def _usage(data: dict) -> Usage:
        return Usage(
            input_tokens=data.get("prompt_eval_count") or 0,
            output_tokens=data.get("eval_count") or 0,
        )

    async def chat(self, messages: list[dict], system_prompt: str, max_tokens: int) -> ChatResult:
        """Send a non-streaming request to Ollama."""
        body = self._body(messages, system_prompt, max_tokens, stream=False)
        async with self._transport_errors():
            async with self._client() as client:
                resp = await client.post(f"{self.url}/api/chat", json=body)
                await self._raise_for_status(resp)
                data = self._json(resp)

        if data.get("error"):
            raise ProviderError(f"Ollama: {data['error']}")
        return ChatResult(
            content=(data.get("message") or {}).get("content", ""),
            usage=self._usage(data),
            model=data.get("model") or self.model,
            stop_reason=data.get("done_reason"),
        )

    async def _stream(self, messages: list[dict], system_prompt: str, max_tokens: int):
        """Stream a request to Ollama, decoding NDJSON as bytes arrive."""
        body = self._body(messages, system_prompt, max_tokens, stream=True)

        async with self._transport_errors():
            async with self._client() as client:
                async with client.stream("POST", f"{self.url}/api/chat", json=body) as resp:
                    await self._raise_for_status(resp)
                    async for item in self._iter_ndjson(resp):
                        for event in self._events(item):
                            yield event

    def _events(self, item: dict) -> list[StreamEvent]:
        if item.get("error"):
            raise ProviderError(f"Ollama: {item['error']}")
        events = []
        content = (item.get("message") or {}).get("content")
        if content:
            events.append(StreamEvent(type="text", text=content))
        if item.get("done"):
            events.append(StreamEvent(
                type="meta",
                usage=self._usage(item),
                model=item.get("model"),
                stop_reason=item.get("done_reason"),
            ))
        return events

    async def is_available(self) -> bool:
        """Check Ollama is reachable. Any failure, timeout included, means no."""
        try:
            async with self._client(timeout=self.probe_timeout) as client:
                resp = await client.get(f"{self.url}/api/tags")
                return resp.status_code == 200
        except Exception as e:
            logger.debug("Ollama probe at %s failed: %s", self.url, e)
            return False

    async def list_models(self) -> list[dict]:
        """Fetch installed models from Ollama."""
        try:
            async with self._client(timeout=10) as client:
                resp = await client.get(f"{self.url}/api/tags")
                resp.raise_for_status()
                data = resp.json()
                models = []
                for m in data.get("models", []):
                    name = m.get("name") or m.get("model") or ""
                    if name:
                        models.append({"id": name, "name": name, "size": m.get("size")})
                return models
        except Exception as e:
            logger.warning("Failed to list Ollama models from '%s': %s", self.url, e)
            return []
