"""
Gemini provider — Google's Generative Language API.
generateContent for buffered exchanges, streamGenerateContent?alt=sse for
streaming. Gemini calls the assistant role "model".
"""

from __future__ import annotations

import logging

from agentchat.errors import AuthError, ProviderError
from agentchat.providers.base import BaseProvider, ChatResult, StreamEvent, Usage

logger = logging.getLogger(__name__)

_ROLES = {"user": "user", "assistant": "model"}


class GeminiProvider(BaseProvider):
    """Provider for the Gemini API."""

    label = "Gemini"
    requires_credentials = True

    def _headers(self) -> dict:
        return {
            "Content-Type": "application/json",
            "x-goog-api-key": self.api_key,
        }

    def _body(self, messages: list[dict], system_prompt: str, max_tokens: int) -> dict:
        return {
            "contents": [
                {"role": _ROLES.get(m["role"], "user"), "parts": [{"text": m["content"]}]}
                for m in messages
            ],
            "systemInstruction": {"parts": [{"text": system_prompt}]},
            "generationConfig": {"maxOutputTokens": max_tokens},
        }

    @staticmethod
    def _usage(data: dict) -> Usage | None:
        meta = data.get("usageMetadata")
        if not meta:
            return None
        return Usage(
            input_tokens=meta.get("promptTokenCount") or 0,
            output_tokens=meta.get("candidatesTokenCount") or 0,
        )

    @staticmethod
    def _candidate(data: dict) -> dict:
        candidates = data.get("candidates") or []
        return candidates[0] if candidates else {}

    @classmethod
    def _text(cls, data: dict) -> str:
        parts = (cls._candidate(data).get("content") or {}).get("parts") or []
        return "".join(p.get("text", "") for p in parts)

    async def _raise_for_status(self, resp):
        # Gemini reports a bad key as HTTP 400 with reason API_KEY_INVALID
        if resp.status_code == 400:
            if not resp.is_closed:
                await resp.aread()
            if "API_KEY_INVALID" in resp.text:
                raise AuthError(self._error_message(resp.text))
        await super()._raise_for_status(resp)

    def _check_blocked(self, data: dict):
        feedback = data.get("promptFeedback") or {}
        if feedback.get("blockReason") and not data.get("candidates"):
            raise ProviderError(f"Gemini blocked the prompt: {feedback['blockReason']}")

    async def chat(self, messages: list[dict], system_prompt: str, max_tokens: int) -> ChatResult:
        """Send a non-streaming generateContent request."""
        self._require_credentials()
        body = self._body(messages, system_prompt, max_tokens)

        async with self._transport_errors():
            async with self._client() as client:
                resp = await client.post(
                    f"{self.url}/models/{self.model}:generateContent",
                    headers=self._headers(),
                    json=body,
                )
                await self._raise_for_status(resp)
                data = self._json(resp)

        self._check_blocked(data)
        return ChatResult(
            content=self._text(data),
            usage=self._usage(data) or Usage(),
            model=data.get("modelVersion") or self.model,
            stop_reason=self._candidate(data).get("finishReason"),
        )

    async def _stream(self, messages: list[dict], system_prompt: str, max_tokens: int):
        """Stream a streamGenerateContent request over SSE."""
        self._require_credentials()
        body = self._body(messages, system_prompt, max_tokens)

        async with self._transport_errors():
            async with self._client() as client:
                async with client.stream(
                    "POST",
                    f"{self.url}/models/{self.model}:streamGenerateContent",
                    params={"alt": "sse"},
                    headers=self._headers(),
                    json=body,
                ) as resp:
                    await self._raise_for_status(resp)
                    async for sse in self._iter_sse(resp):
                        data = sse.data
                        if data.get("error"):
                            raise ProviderError(f"Gemini: {self._error_message_from(data)}")
                        self._check_blocked(data)
                        yield StreamEvent(type="text", text=self._text(data))
                        yield StreamEvent(
                            type="meta",
                            usage=self._usage(data),
                            model=data.get("modelVersion"),
                            stop_reason=self._candidate(data).get("finishReason"),
                        )

    @staticmethod
    def _error_message_from(data: dict) -> str:
        err = data.get("error")
        if isinstance(err, dict):
            return str(err.get("message") or err.get("status") or err)
        return str(err)
