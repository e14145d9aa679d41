"""
Chat orchestrator — session lifecycle on top of the active provider.

    start_chat ──► Active ──► clear_chat ──► gone
                   │   ▲
                   └───┘ send_message / stream_message / iter_message

Every exchange runs under the session's lock, so overlapping calls on one
session are serialized instead of interleaving the message log. Calls on
different sessions never contend.

History bookkeeping:
  - the user's text is appended before the exchange and kept if it fails,
    so the caller can retry with text=None without retyping
  - the assistant reply is appended only on success
  - an exchange on an empty conversation with no text sends BOOTSTRAP_MESSAGE
    and records it alongside the greeting

Errors always surface as agentchat.errors.ChatError subclasses.
"""

from __future__ import annotations

import inspect
import json
import logging
import re
from contextlib import aclosing
from typing import AsyncIterator
from uuid import uuid4

import httpx

from agentchat.config import get_config
from agentchat.errors import (
    ChatError,
    CredentialsMissing,
    InvalidResponse,
    ProviderConnectionError,
    ProviderError,
    ProviderNotConfigured,
    error_for_status,
)
from agentchat.provider_config import ProviderConfigStore
from agentchat.providers.base import BaseProvider, ChatResult, ChunkCallback, StreamEvent
from agentchat.providers.registry import PROVIDERS, active_provider_name, create_provider
from agentchat.store import Conversation, ConversationStore

logger = logging.getLogger(__name__)

BOOTSTRAP_MESSAGE = "Hello, please introduce yourself and tell me how you can help."

SYSTEM_PROMPT_TEMPLATE = """You are operating as an agent persona. Your complete agent definition follows below.
Read it carefully and adopt the persona, role, and behavior described.

IMPORTANT RULES:
- Stay in character at all times
- Follow your activation-instructions
- Use your defined commands when the user invokes them with * prefix
- Be helpful, concise, and follow your persona's style
- When referencing tasks or checklists, describe them clearly

--- AGENT DEFINITION START ---
{agent_definition}
--- AGENT DEFINITION END ---

You are now {agent_name}. Greet the user briefly and await their instructions."""


def build_system_prompt(agent_definition: str, agent_name: str) -> str:
    """Wrap an agent definition, verbatim, in the persona instructions."""
    return SYSTEM_PROMPT_TEMPLATE.format(
        agent_definition=agent_definition,
        agent_name=agent_name,
    )


def _slug(name: str) -> str:
    return re.sub(r"[^A-Za-z0-9_-]+", "-", name).strip("-").lower() or "agent"


def _positive_int(key: str, value) -> int:
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise ValueError(f"{key} must be an integer, got {value!r}")
    if number <= 0:
        raise ValueError(f"{key} must be positive")
    return number


class ChatOrchestrator:
    """Runs chat sessions against whichever provider is configured."""

    def __init__(
        self,
        store: ConversationStore | None = None,
        config_store: ProviderConfigStore | None = None,
        settings: dict | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.settings = settings or get_config()
        chat_cfg = self.settings.get("chat", {})
        self.store = store or ConversationStore(
            preview_length=chat_cfg.get("preview_length", 100)
        )
        self.config_store = config_store or ProviderConfigStore(
            self.settings.get("paths", {}).get("provider_config", "~/.agentchat/ai-config.json")
        )
        self._transport = transport
        # (provider, max_tokens), swapped as one tuple on config updates
        self._active: tuple[BaseProvider | None, int] = (None, 4096)
        self._reload_provider()

    # ------------------------------------------------------------------
    # Provider resolution
    # ------------------------------------------------------------------

    def _reload_provider(self):
        cfg = self.config_store.load()
        max_tokens = int(self.settings.get("chat", {}).get("max_tokens", 4096))
        if cfg.get("max_tokens") is not None:
            try:
                max_tokens = _positive_int("max_tokens", cfg["max_tokens"])
            except ValueError as e:
                logger.warning("Ignoring persisted max_tokens, using %d: %s", max_tokens, e)
        try:
            provider = create_provider(cfg, self.settings, transport=self._transport)
        except ProviderNotConfigured as e:
            logger.warning("No usable provider: %s", e)
            provider = None
        self._active = (provider, max_tokens)
        if provider:
            logger.info("Active provider: %s (model %s)", provider.name, provider.model)

    @property
    def provider(self) -> BaseProvider | None:
        return self._active[0]

    @property
    def max_tokens(self) -> int:
        return self._active[1]

    def _require_provider(self) -> tuple[BaseProvider, int]:
        provider, max_tokens = self._active
        if provider is None:
            raise ProviderNotConfigured()
        if provider.requires_credentials and not provider.has_credentials:
            raise CredentialsMissing(f"No API key configured for {provider.label}")
        return provider, max_tokens

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    async def start_chat(
        self, agent_name: str, agent_definition: str, display_name: str | None = None
    ) -> dict:
        """
        Open a session for an agent persona and fetch its greeting.
        A failed greeting removes the session again.
        """
        display = display_name or agent_name
        session_id = f"chat-{_slug(agent_name)}-{uuid4().hex[:12]}"
        self.store.create(session_id, build_system_prompt(agent_definition, display), display)

        try:
            result = await self.send_message(session_id, None)
        except ChatError as e:
            self.store.remove(session_id)
            logger.warning("Chat with %s failed to start: [%s] %s", agent_name, e.code, e)
            raise
        except BaseException:
            # Cancelled while waiting for the greeting
            self.store.remove(session_id)
            raise

        logger.info("Started chat %s with agent %s", session_id, agent_name)
        return {
            "session_id": session_id,
            "agent_name": agent_name,
            "agent_title": display,
            "greeting": result.content,
            "usage": result.to_dict()["usage"],
            "model": result.model,
        }

    def _prepare(self, conv: Conversation, text: str | None) -> tuple[list[dict], bool]:
        """Record the user's turn; return wire messages and whether this is the bootstrap."""
        if text:
            self.store.append(conv.session_id, "user", text)
        if conv.messages:
            return [m.to_wire() for m in conv.messages], False
        return [{"role": "user", "content": BOOTSTRAP_MESSAGE}], True

    def _record(self, session_id: str, content: str, bootstrap: bool):
        if session_id not in self.store:
            logger.info("Session %s was cleared mid-exchange, reply not recorded", session_id)
            return
        if bootstrap:
            self.store.append(session_id, "user", BOOTSTRAP_MESSAGE)
        self.store.append(session_id, "assistant", content)

    async def send_message(self, session_id: str, text: str | None = None) -> ChatResult:
        """Send the user's text (or nothing, to re-request a reply) and wait for the answer."""
        async with self.store.lock(session_id):
            conv = self.store.get(session_id)
            provider, max_tokens = self._require_provider()
            messages, bootstrap = self._prepare(conv, text)
            logger.debug("%s → %s (%d messages)", session_id, provider.name, len(messages))
            try:
                result = await provider.chat(messages, conv.system_prompt, max_tokens)
            except Exception as e:
                err = self._handle_error(e)
                if err is e:
                    raise
                raise err from e
            self._record(session_id, result.content, bootstrap)
            return result

    async def iter_message(
        self, session_id: str, text: str | None = None
    ) -> AsyncIterator[StreamEvent]:
        """
        Streaming exchange as an async iterator: "text" events in arrival
        order, then one "done" event carrying the ChatResult. History is
        updated before "done" is yielded.

        The session stays locked until the iterator finishes, so a caller
        that may stop early should wrap it in `contextlib.aclosing`.
        """
        async with self.store.lock(session_id):
            conv = self.store.get(session_id)
            provider, max_tokens = self._require_provider()
            messages, bootstrap = self._prepare(conv, text)
            logger.debug("%s ⇉ %s (%d messages)", session_id, provider.name, len(messages))
            try:
                async with aclosing(provider.iter_chat(messages, conv.system_prompt, max_tokens)) as events:
                    async for event in events:
                        if event.type == "done":
                            self._record(session_id, event.result.content, bootstrap)
                        yield event
            except Exception as e:
                err = self._handle_error(e)
                if err is e:
                    raise
                raise err from e

    async def stream_message(
        self,
        session_id: str,
        text: str | None = None,
        on_chunk: ChunkCallback | None = None,
    ) -> ChatResult:
        """Callback form of iter_message. `on_chunk` may be sync or async."""
        result: ChatResult | None = None
        async with aclosing(self.iter_message(session_id, text)) as events:
            async for event in events:
                if event.type == "done":
                    result = event.result
                elif on_chunk is not None:
                    outcome = on_chunk(event)
                    if inspect.isawaitable(outcome):
                        await outcome
        return result

    def clear_chat(self, session_id: str) -> dict:
        if self.store.remove(session_id):
            logger.info("Cleared chat %s", session_id)
        return {"success": True}

    def get_history(self, session_id: str) -> list[dict]:
        return [m.to_dict() for m in self.store.get(session_id).messages]

    def list_chats(self) -> list[dict]:
        return self.store.list()

    # ------------------------------------------------------------------
    # Configuration
    # ------------------------------------------------------------------

    def get_config(self) -> dict:
        """Provider config with secrets redacted."""
        provider, max_tokens = self._active
        cfg = self.config_store.load()
        defaults = {
            "provider": active_provider_name(cfg, self.settings),
            "model": provider.model if provider else None,
            "max_tokens": max_tokens,
            "ollama_url": self.settings.get("providers", {}).get("ollama", {}).get("url"),
        }
        view = self.config_store.safe_view(defaults, has_credentials=self.is_configured())
        view["max_tokens"] = max_tokens
        return view

    def update_config(self, partial: dict) -> dict:
        """
        Persist a partial config update and switch to the resulting provider.
        Exchanges already running keep the provider they started with.
        """
        partial = dict(partial)
        if "provider" in partial and partial["provider"] not in PROVIDERS:
            raise ProviderNotConfigured(
                f"Unknown provider '{partial['provider']}'. Choose one of: {', '.join(PROVIDERS)}"
            )
        if "max_tokens" in partial:
            partial["max_tokens"] = _positive_int("max_tokens", partial["max_tokens"])

        current = self.config_store.load()
        switching = (
            "provider" in partial
            and partial["provider"] != active_provider_name(current, self.settings)
        )
        if switching and "model" not in partial:
            # A model id from the previous provider means nothing to the new one
            partial["model"] = ""

        self.config_store.save(partial)
        self._reload_provider()
        return self.get_config()

    def is_configured(self) -> bool:
        provider = self.provider
        if provider is None:
            return False
        return provider.has_credentials or not provider.requires_credentials

    async def probe_local_provider(self) -> dict:
        """Check the local Ollama server, whichever provider is active."""
        ollama = create_provider(
            self.config_store.load(), self.settings, name="ollama", transport=self._transport
        )
        available = await ollama.is_available()
        models = await ollama.list_models() if available else []
        return {"available": available, "url": ollama.url, "models": models}

    async def list_models(self) -> list[dict]:
        provider = self.provider
        if provider is None:
            return []
        return await provider.list_models()

    # ------------------------------------------------------------------
    # Errors
    # ------------------------------------------------------------------

    @staticmethod
    def _handle_error(exc: Exception) -> ChatError:
        """Funnel any failure into the ChatError taxonomy."""
        if isinstance(exc, ChatError):
            return exc
        if isinstance(exc, httpx.HTTPStatusError):
            return error_for_status(exc.response.status_code, str(exc))
        if isinstance(exc, httpx.TimeoutException):
            return ProviderConnectionError(f"Provider timed out: {exc}")
        if isinstance(exc, httpx.TransportError):
            return ProviderConnectionError(str(exc) or type(exc).__name__)
        if isinstance(exc, json.JSONDecodeError):
            return InvalidResponse(str(exc))
        logger.exception("Unexpected provider failure")
        return ProviderError(str(exc) or type(exc).__name__)
