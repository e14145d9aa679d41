"""
Config loader for agentchat.
Reads config.yaml once and caches it. Built-in defaults sit underneath the
file, so a missing file or a missing key never breaks startup.

Provider choice, model and API keys are user settings and live in the JSON
file managed by agentchat.provider_config, not here.
"""

import copy
import logging
import os
import re
from pathlib import Path

import yaml
from dotenv import load_dotenv

load_dotenv()

_CONFIG_PATH = Path(__file__).parent.parent / "config.yaml"

DEFAULTS: dict = {
    "paths": {
        "provider_config": "~/.agentchat/ai-config.json",
    },
    "logging": {
        "level": "INFO",
        "file": "",
    },
    "chat": {
        "default_provider": "ollama",
        "max_tokens": 4096,
        "preview_length": 100,
    },
    "providers": {
        "ollama": {
            "url": "http://localhost:11434",
            "default_model": "llama3.1",
            "timeout": 300,
            "probe_timeout": 3,
        },
        "anthropic": {
            "url": "https://api.anthropic.com",
            "default_model": "claude-sonnet-4-20250514",
            "timeout": 300,
            "api_key": "${ANTHROPIC_API_KEY}",
        },
        "gemini": {
            "url": "https://generativelanguage.googleapis.com/v1beta",
            "default_model": "gemini-2.0-flash",
            "timeout": 300,
            "api_key": "${GEMINI_API_KEY}",
        },
    },
}

_config: dict | None = None


def _resolve_env_vars(value: str) -> str:
    """Replace ${ENV_VAR} patterns with actual environment variable values."""
    def replacer(match):
        var_name = match.group(1)
        return os.environ.get(var_name, "")
    return re.sub(r"\$\{(\w+)\}", replacer, value)


def _walk_and_resolve(obj):
    """Recursively resolve env vars in all string values."""
    if isinstance(obj, dict):
        return {k: _walk_and_resolve(v) for k, v in obj.items()}
    elif isinstance(obj, list):
        return [_walk_and_resolve(v) for v in obj]
    elif isinstance(obj, str):
        return _resolve_env_vars(obj)
    return obj


def _deep_merge(base: dict, override: dict) -> dict:
    """Merge override into a copy of base, recursing into nested dicts."""
    merged = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def load_config(path: Path | None = None) -> dict:
    """
    Load and cache config from YAML file.
    An explicit path (argument or AGENTCHAT_CONFIG) must exist; the default
    repo-root config.yaml is optional.
    """
    global _config
    if _config is not None and path is None:
        return _config

    explicit = path or os.environ.get("AGENTCHAT_CONFIG")
    config_path = Path(explicit).expanduser() if explicit else _CONFIG_PATH

    raw: dict = {}
    if config_path.exists():
        with open(config_path) as f:
            raw = yaml.safe_load(f) or {}
    elif explicit:
        raise FileNotFoundError(f"Config not found: {config_path}")
    else:
        logging.getLogger(__name__).debug(
            "No config.yaml at %s, using built-in defaults", config_path
        )

    _config = _walk_and_resolve(_deep_merge(DEFAULTS, raw))
    return _config


def get_config() -> dict:
    """Return cached base config, loading if necessary."""
    if _config is None:
        return load_config()
    return _config


def reset_config():
    """Drop the cached config so the next get_config() reloads."""
    global _config
    _config = None


def setup_logging(cfg: dict):
    log_cfg = cfg.get("logging", {})
    level = getattr(logging, str(log_cfg.get("level", "INFO")).upper(), logging.INFO)
    log_file = log_cfg.get("file")

    handlers: list[logging.Handler] = [logging.StreamHandler()]
    if log_file:
        Path(log_file).expanduser().parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(Path(log_file).expanduser()))

    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        handlers=handlers,
    )
