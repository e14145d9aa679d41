"""
Provider registry — builds the active provider from configuration.

Two layers feed a provider:
  - application settings (config.yaml `providers.<name>`): base URL, default
    model, timeouts, optional api_key (usually an ${ENV_VAR} reference)
  - the user's persisted provider config (ai-config.json): provider choice,
    model, ollama_url and API keys entered through the settings screen

Persisted values win over application settings.
"""

from __future__ import annotations

import logging
import os

import httpx

from agentchat.errors import ProviderNotConfigured
from agentchat.providers.anthropic import AnthropicProvider
from agentchat.providers.base import BaseProvider
from agentchat.providers.gemini import GeminiProvider
from agentchat.providers.ollama import OllamaProvider

logger = logging.getLogger(__name__)

# Provider name → provider class
PROVIDERS: dict[str, type[BaseProvider]] = {
    "ollama": OllamaProvider,
    "anthropic": AnthropicProvider,
    "gemini": GeminiProvider,
}

# Persisted config key holding each provider's credentials
CREDENTIAL_KEYS: dict[str, str] = {
    "anthropic": "anthropic_api_key",
    "gemini": "gemini_api_key",
}

# Environment fallback when neither config layer has a key
CREDENTIAL_ENV: dict[str, str] = {
    "anthropic": "ANTHROPIC_API_KEY",
    "gemini": "GEMINI_API_KEY",
}


def _resolve_env(value: str) -> str:
    """Resolve a whole-value ${ENV_VAR} reference."""
    if value and value.startswith("${") and value.endswith("}"):
        return os.environ.get(value[2:-1], "")
    return value


def resolve_api_key(provider: str, provider_config: dict, settings: dict) -> str:
    """Find the API key for a provider, persisted config first."""
    key_name = CREDENTIAL_KEYS.get(provider)
    if not key_name:
        return ""
    prov_settings = settings.get("providers", {}).get(provider, {})
    candidates = (
        provider_config.get(key_name, ""),
        prov_settings.get("api_key", ""),
        os.environ.get(CREDENTIAL_ENV[provider], ""),
    )
    for candidate in candidates:
        value = _resolve_env(str(candidate or ""))
        if value:
            return value
    return ""


def active_provider_name(provider_config: dict, settings: dict) -> str:
    return provider_config.get("provider") or settings.get("chat", {}).get("default_provider", "ollama")


def create_provider(
    provider_config: dict,
    settings: dict,
    name: str | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> BaseProvider:
    """
    Instantiate a provider from config.
    `name` overrides the configured provider choice (used to probe Ollama
    while another provider is active).
    """
    configured = active_provider_name(provider_config, settings)
    provider = name or configured
    cls = PROVIDERS.get(provider)
    if not cls:
        raise ProviderNotConfigured(
            f"Unknown provider '{provider}'. Choose one of: {', '.join(PROVIDERS)}"
        )

    prov_settings = settings.get("providers", {}).get(provider, {})
    # The persisted model belongs to the configured provider only
    model = provider_config.get("model") if provider == configured else None
    url = prov_settings.get("url", "")
    if provider == "ollama":
        url = provider_config.get("ollama_url") or url

    kwargs = {
        "name": provider,
        "url": url,
        "model": model or prov_settings.get("default_model", ""),
        "api_key": resolve_api_key(provider, provider_config, settings),
        "timeout": prov_settings.get("timeout", 300),
        "transport": transport,
    }
    if provider == "ollama":
        kwargs["probe_timeout"] = prov_settings.get("probe_timeout", 3)

    instance = cls(**kwargs)
    logger.debug("Resolved provider %r", instance)
    return instance
