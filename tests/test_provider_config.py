"""
Tests for provider config persistence.
Uses a temp file for each test.
"""

import json

import pytest

from agentchat.provider_config import ProviderConfigStore, preview_secret


@pytest.fixture
def config_store(tmp_path):
    return ProviderConfigStore(tmp_path / "nested" / "ai-config.json")


def test_load_missing_file(config_store):
    """No file yet is the normal first-run state."""
    assert config_store.load() == {}


def test_load_corrupt_file(config_store):
    config_store.path.parent.mkdir(parents=True)
    config_store.path.write_text("{not json")
    assert config_store.load() == {}


def test_load_non_object(config_store):
    config_store.path.parent.mkdir(parents=True)
    config_store.path.write_text("[1, 2, 3]")
    assert config_store.load() == {}


def test_save_creates_parent_dir(config_store):
    merged = config_store.save({"provider": "ollama"})
    assert merged == {"provider": "ollama"}
    assert config_store.path.exists()
    # Pretty-printed
    assert "\n  " in config_store.path.read_text()


def test_save_merges(config_store):
    """A partial save keeps unrelated keys."""
    config_store.save({"provider": "anthropic", "model": "claude-x"})
    merged = config_store.save({"max_tokens": 8000})

    assert merged == {"provider": "anthropic", "model": "claude-x", "max_tokens": 8000}
    assert json.loads(config_store.path.read_text()) == merged


def test_save_overwrites_matching_keys(config_store):
    config_store.save({"model": "a", "max_tokens": 1})
    assert config_store.save({"model": "b"}) == {"model": "b", "max_tokens": 1}


def test_safe_view_redacts_secrets(config_store):
    key = "sk-ant-REDACTED"
    config_store.save({"provider": "anthropic", "anthropic_api_key": key})

    view = config_store.safe_view()

    assert view["has_api_key"] is True
    assert view["api_key_preview"] == "sk-ant-api...WXYZ"
    assert view["has_gemini_api_key"] is False
    assert view["gemini_api_key_preview"] is None
    assert key not in json.dumps(view)


def test_safe_view_defaults(config_store):
    view = config_store.safe_view(
        {"provider": "ollama", "model": "llama3.1", "max_tokens": 4096, "ollama_url": "http://x"},
        has_credentials=True,
    )
    assert view["provider"] == "ollama"
    assert view["model"] == "llama3.1"
    assert view["max_tokens"] == 4096
    assert view["ollama_url"] == "http://x"
    assert view["has_credentials"] is True


def test_preview_short_secret():
    """Short secrets don't leak through the head+tail preview."""
    assert preview_secret("") is None
    assert preview_secret("abc123") == "ab..."
    assert preview_secret("0123456789abcdefghij") == "0123456789...ghij"
