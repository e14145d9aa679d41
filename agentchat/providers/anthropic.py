"""
Anthropic provider — Claude models over the Messages API.
Buffered JSON responses, or server-sent events when streaming.
"""

from __future__ import annotations

import logging

from agentchat.errors import AuthError, ProviderError, RateLimited
from agentchat.providers.base import BaseProvider, ChatResult, StreamEvent, Usage

logger = logging.getLogger(__name__)

ANTHROPIC_VERSION = "2023-06-01"


class AnthropicProvider(BaseProvider):
    """Provider for the Anthropic Messages API."""

    label = "Anthropic"
    requires_credentials = True

    def _headers(self) -> dict:
        return {
            "Content-Type": "application/json",
            "x-api-key": self.api_key,
            "anthropic-version": ANTHROPIC_VERSION,
        }

    def _body(self, messages: list[dict], system_prompt: str, max_tokens: int) -> dict:
        return {
            "model": self.model,
            "max_tokens": max_tokens,
            "system": system_prompt,
            "messages": [{"role": m["role"], "content": m["content"]} for m in messages],
        }

    @staticmethod
    def _usage(usage: dict | None) -> Usage:
        usage = usage or {}
        return Usage(
            input_tokens=usage.get("input_tokens") or 0,
            output_tokens=usage.get("output_tokens") or 0,
        )

    async def chat(self, messages: list[dict], system_prompt: str, max_tokens: int) -> ChatResult:
        """Send a non-streaming request to the Messages API."""
        self._require_credentials()
        body = self._body(messages, system_prompt, max_tokens)

        async with self._transport_errors():
            async with self._client() as client:
                resp = await client.post(
                    f"{self.url}/v1/messages",
                    headers=self._headers(),
                    json=body,
                )
                await self._raise_for_status(resp)
                data = self._json(resp)

        text = "\n".join(
            block.get("text", "")
            for block in data.get("content", [])
            if block.get("type") == "text"
        )
        return ChatResult(
            content=text,
            usage=self._usage(data.get("usage")),
            model=data.get("model") or self.model,
            stop_reason=data.get("stop_reason"),
        )

    async def _stream(self, messages: list[dict], system_prompt: str, max_tokens: int):
        """Stream a request, translating Messages API SSE events."""
        self._require_credentials()
        body = self._body(messages, system_prompt, max_tokens)
        body["stream"] = True
        input_tokens = 0

        async with self._transport_errors():
            async with self._client() as client:
                async with client.stream(
                    "POST",
                    f"{self.url}/v1/messages",
                    headers=self._headers(),
                    json=body,
                ) as resp:
                    await self._raise_for_status(resp)
                    async for sse in self._iter_sse(resp):
                        data = sse.data
                        if sse.event == "error":
                            raise self._stream_error(data.get("error") or {})
                        if sse.event == "message_start":
                            message = data.get("message") or {}
                            input_tokens = self._usage(message.get("usage")).input_tokens
                            yield StreamEvent(type="meta", model=message.get("model"))
                        elif sse.event == "content_block_delta":
                            delta = data.get("delta") or {}
                            if delta.get("type") == "text_delta":
                                yield StreamEvent(type="text", text=delta.get("text", ""))
                        elif sse.event == "message_delta":
                            # input_tokens only arrives on message_start
                            usage = self._usage(data.get("usage"))
                            yield StreamEvent(
                                type="meta",
                                usage=Usage(input_tokens or usage.input_tokens, usage.output_tokens),
                                stop_reason=(data.get("delta") or {}).get("stop_reason"),
                            )

    @staticmethod
    def _stream_error(err: dict):
        """Classify an error event delivered inside an open stream."""
        message = err.get("message") or err.get("type") or ""
        kind = err.get("type", "")
        if kind == "authentication_error":
            return AuthError(message)
        if kind == "rate_limit_error":
            return RateLimited(message)
        return ProviderError(f"Anthropic: {message}")
