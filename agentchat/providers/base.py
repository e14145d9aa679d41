"""
Base provider abstraction.
All providers implement this interface so the orchestrator can treat them
uniformly, whatever wire protocol sits underneath.

Subclasses implement `chat` and `_stream`. The base class turns `_stream`
into the public streaming API and owns text accumulation, so the final
`ChatResult.content` is always the exact concatenation of the fragments a
caller saw.
"""

from __future__ import annotations

import abc
import inspect
import json
import logging
from contextlib import aclosing, asynccontextmanager
from dataclasses import asdict, dataclass, field
from typing import AsyncIterator, Awaitable, Callable

import httpx

from agentchat.errors import (
    CredentialsMissing,
    InvalidResponse,
    ProviderConnectionError,
    error_for_status,
)
from agentchat.providers.streaming import SSEDecoder, SSEEvent, parse_ndjson_line

logger = logging.getLogger(__name__)


@dataclass
class Usage:
    """Token-like consumption counters. Zero when the provider doesn't say."""
    input_tokens: int = 0
    output_tokens: int = 0


@dataclass
class ChatResult:
    """Standardized result of one exchange with any provider."""
    content: str
    usage: Usage = field(default_factory=Usage)
    model: str = ""
    stop_reason: str | None = None

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class StreamEvent:
    """
    One event of a streaming exchange.

    type="text"  incremental fragment in `text`
    type="meta"  usage/model/stop_reason update (internal to providers)
    type="done"  final event, `result` holds the ChatResult
    """
    type: str
    text: str = ""
    usage: Usage | None = None
    model: str | None = None
    stop_reason: str | None = None
    result: ChatResult | None = None


ChunkCallback = Callable[[StreamEvent], "Awaitable[None] | None"]


class BaseProvider(abc.ABC):
    """
    Abstract base for LLM providers.
    Each provider knows how to run a buffered and a streamed exchange, and
    how to report whether it is usable.
    """

    label = "provider"
    requires_credentials = False

    def __init__(
        self,
        name: str,
        url: str,
        model: str,
        api_key: str = "",
        timeout: float = 300,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.name = name
        self.url = url.rstrip("/")
        self.model = model
        self.api_key = api_key or ""
        self.timeout = timeout
        self._transport = transport

    # ------------------------------------------------------------------
    # Contract
    # ------------------------------------------------------------------

    @abc.abstractmethod
    async def chat(
        self, messages: list[dict], system_prompt: str, max_tokens: int
    ) -> ChatResult:
        """Run one buffered exchange and return the complete reply."""
        ...

    @abc.abstractmethod
    def _stream(
        self, messages: list[dict], system_prompt: str, max_tokens: int
    ) -> AsyncIterator[StreamEvent]:
        """Yield "text" and "meta" events in the order the transport produces them."""
        ...

    async def is_available(self) -> bool:
        """Credential providers are available when a key is configured."""
        return self.has_credentials

    async def list_models(self) -> list[dict]:
        return []

    # ------------------------------------------------------------------
    # Streaming
    # ------------------------------------------------------------------

    async def iter_chat(
        self, messages: list[dict], system_prompt: str, max_tokens: int
    ) -> AsyncIterator[StreamEvent]:
        """
        Stream an exchange as an async iterator.
        Yields every non-empty text fragment, then exactly one "done" event.
        """
        parts: list[str] = []
        usage = Usage()
        model = self.model
        stop_reason = None

        async with aclosing(self._stream(messages, system_prompt, max_tokens)) as events:
            async for event in events:
                if event.type == "text":
                    if not event.text:
                        continue
                    parts.append(event.text)
                    yield event
                elif event.type == "meta":
                    if event.usage is not None:
                        usage = event.usage
                    if event.model:
                        model = event.model
                    if event.stop_reason:
                        stop_reason = event.stop_reason

        result = ChatResult(
            content="".join(parts),
            usage=usage,
            model=model,
            stop_reason=stop_reason,
        )
        logger.debug(
            "%s stream finished: %d fragments, %d chars",
            self.name, len(parts), len(result.content),
        )
        yield StreamEvent(type="done", result=result)

    async def stream_chat(
        self,
        messages: list[dict],
        system_prompt: str,
        max_tokens: int,
        on_chunk: ChunkCallback | None = None,
    ) -> ChatResult:
        """Callback form of iter_chat. `on_chunk` may be sync or async."""
        result: ChatResult | None = None
        async for event in self.iter_chat(messages, system_prompt, max_tokens):
            if event.type == "done":
                result = event.result
            elif on_chunk is not None:
                outcome = on_chunk(event)
                if inspect.isawaitable(outcome):
                    await outcome
        return result

    # ------------------------------------------------------------------
    # Helpers for subclasses
    # ------------------------------------------------------------------

    @property
    def has_credentials(self) -> bool:
        return bool(self.api_key)

    def _require_credentials(self):
        if self.requires_credentials and not self.api_key:
            raise CredentialsMissing(f"No API key configured for {self.label}")

    def _client(self, timeout: float | None = None) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=self.timeout if timeout is None else timeout,
            transport=self._transport,
        )

    @asynccontextmanager
    async def _transport_errors(self):
        """Turn httpx transport failures into ProviderConnectionError."""
        try:
            yield
        except httpx.TimeoutException as e:
            logger.warning("%s '%s' timed out: %s", self.label, self.name, e)
            raise ProviderConnectionError(
                f"{self.label} timed out after {self.timeout}s"
            ) from e
        except httpx.TransportError as e:
            logger.warning("%s '%s' unreachable: %s", self.label, self.name, e)
            raise ProviderConnectionError(self._connection_hint(e)) from e

    def _connection_hint(self, exc: Exception) -> str:
        return f"Cannot reach {self.label} at {self.url}: {str(exc) or type(exc).__name__}"

    @staticmethod
    def _error_message(body: str) -> str:
        """Pull a human-readable message out of an error envelope."""
        try:
            data = json.loads(body)
        except ValueError:
            return body[:200]
        if isinstance(data, list) and data:
            data = data[0]
        if isinstance(data, dict):
            err = data.get("error", data)
            if isinstance(err, dict):
                return str(err.get("message") or err.get("status") or err)[:200]
            return str(err)[:200]
        return body[:200]

    async def _raise_for_status(self, resp: httpx.Response):
        """Raise a taxonomy error for a non-2xx response."""
        if resp.status_code < 400:
            return
        if not resp.is_closed:
            await resp.aread()
        message = self._error_message(resp.text)
        logger.warning(
            "%s '%s' returned HTTP %d: %s",
            self.label, self.name, resp.status_code, message,
        )
        raise error_for_status(resp.status_code, message)

    @staticmethod
    async def _iter_ndjson(resp: httpx.Response) -> AsyncIterator[dict]:
        """Decode an NDJSON body line by line, in arrival order."""
        async for line in resp.aiter_lines():
            item = parse_ndjson_line(line)
            if item is not None:
                yield item

    @staticmethod
    async def _iter_sse(resp: httpx.Response) -> AsyncIterator[SSEEvent]:
        """Decode an SSE body line by line, stopping at the [DONE] sentinel."""
        decoder = SSEDecoder()
        async for line in resp.aiter_lines():
            event = decoder.decode(line)
            if decoder.done:
                return
            if event is not None:
                yield event

    @staticmethod
    def _json(resp: httpx.Response) -> dict:
        try:
            data = resp.json()
        except ValueError as e:
            raise InvalidResponse(f"Response is not JSON: {resp.text[:200]}") from e
        if not isinstance(data, dict):
            raise InvalidResponse("Response is not a JSON object")
        return data

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} name={self.name!r} url={self.url!r} model={self.model!r}>"
