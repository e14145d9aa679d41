"""
Provider configuration persisted as one JSON object per user.

    {
      "provider": "ollama" | "anthropic" | "gemini",
      "model": "...",
      "max_tokens": 4096,
      "ollama_url": "http://localhost:11434",
      "anthropic_api_key": "...",
      "gemini_api_key": "..."
    }

Saves are read-modify-write with a shallow merge, so a partial update never
erases unrelated settings. A missing or corrupt file reads as {} — no config
yet is the normal first-run state.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path

logger = logging.getLogger(__name__)

SECRET_KEYS = ("anthropic_api_key", "gemini_api_key")


def preview_secret(secret: str) -> str | None:
    """First 10 and last 4 characters of a secret; less for short ones."""
    if not secret:
        return None
    if len(secret) < 20:
        return f"{secret[:2]}..."
    return f"{secret[:10]}...{secret[-4:]}"


class ProviderConfigStore:
    """Loads, merges and saves the provider config file."""

    def __init__(self, path: str | Path):
        self.path = Path(path).expanduser()

    def load(self) -> dict:
        if not self.path.exists():
            return {}
        try:
            with open(self.path, encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            logger.warning("Ignoring unreadable provider config %s: %s", self.path, e)
            return {}
        if not isinstance(data, dict):
            logger.warning("Ignoring provider config %s: not a JSON object", self.path)
            return {}
        return data

    def save(self, partial: dict) -> dict:
        """Merge `partial` over the stored config and write it back."""
        merged = {**self.load(), **partial}
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, "w", encoding="utf-8") as f:
            json.dump(merged, f, indent=2)
            f.write("\n")
        changed = sorted(k for k in partial if k not in SECRET_KEYS)
        logger.info(
            "Saved provider config to %s (keys: %s%s)",
            self.path,
            ", ".join(changed) or "-",
            ", secrets" if any(k in partial for k in SECRET_KEYS) else "",
        )
        return merged

    def safe_view(self, defaults: dict | None = None, has_credentials: bool | None = None) -> dict:
        """
        Config with secrets replaced by presence flags and previews.
        `defaults` fills provider/model/max_tokens/ollama_url when unset.
        `has_credentials` reports whether the active provider is usable.
        """
        defaults = defaults or {}
        data = self.load()
        anthropic_key = data.get("anthropic_api_key") or ""
        gemini_key = data.get("gemini_api_key") or ""
        view = {
            "provider": data.get("provider") or defaults.get("provider"),
            "model": data.get("model") or defaults.get("model"),
            "max_tokens": data.get("max_tokens") or defaults.get("max_tokens"),
            "ollama_url": data.get("ollama_url") or defaults.get("ollama_url"),
            "has_api_key": bool(anthropic_key),
            "api_key_preview": preview_secret(anthropic_key),
            "has_gemini_api_key": bool(gemini_key),
            "gemini_api_key_preview": preview_secret(gemini_key),
        }
        if has_credentials is not None:
            view["has_credentials"] = has_credentials
        return view
