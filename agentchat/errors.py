"""
Error taxonomy for agentchat.

Every failure that reaches a caller is one of the ChatError subclasses below,
whatever provider is active. `code` is a stable string the UI layer can switch
on to route the user to the right fix (enter a key vs. start the local server).
"""

from __future__ import annotations


class ChatError(Exception):
    """Base for all errors surfaced by the chat layer."""

    code = "CHAT_ERROR"
    default_message = "Chat request failed"

    def __init__(self, message: str = ""):
        # Some transports raise with an empty message; never propagate that.
        self.message = (message or "").strip() or self.default_message
        super().__init__(self.message)

    def to_dict(self) -> dict:
        return {"code": self.code, "message": self.message}


class CredentialsMissing(ChatError):
    code = "API_KEY_MISSING"
    default_message = "No API key configured for this provider"


class ProviderNotConfigured(ChatError):
    code = "PROVIDER_NOT_CONFIGURED"
    default_message = "No chat provider is configured"


class SessionNotFound(ChatError):
    code = "SESSION_NOT_FOUND"
    default_message = "Chat session not found"


class DuplicateSession(ChatError):
    code = "DUPLICATE_SESSION"
    default_message = "Chat session already exists"


class ProviderConnectionError(ChatError):
    code = "CONNECTION_ERROR"
    default_message = "Could not connect to the provider"


class AuthError(ChatError):
    code = "INVALID_API_KEY"
    default_message = "The provider rejected the API key"


class RateLimited(ChatError):
    code = "RATE_LIMITED"
    default_message = "The provider is rate limiting requests"


class ProviderError(ChatError):
    code = "API_ERROR"
    default_message = "The provider returned an error"


class InvalidResponse(ChatError):
    code = "INVALID_RESPONSE"
    default_message = "The provider returned an unparseable response"


def error_for_status(status_code: int, message: str = "") -> ChatError:
    """Map an HTTP error status from a provider to the taxonomy."""
    if status_code in (401, 403):
        return AuthError(message)
    if status_code == 429:
        return RateLimited(message)
    detail = message or "no details"
    return ProviderError(f"HTTP {status_code}: {detail}")
