"""
Tests for the YAML config loader.
"""

import pytest

from agentchat import config as config_mod


@pytest.fixture(autouse=True)
def fresh_config():
    config_mod.reset_config()
    yield
    config_mod.reset_config()


def test_defaults_when_no_file(tmp_path, monkeypatch):
    monkeypatch.delenv("AGENTCHAT_CONFIG", raising=False)
    monkeypatch.setattr(config_mod, "_CONFIG_PATH", tmp_path / "absent.yaml")

    cfg = config_mod.get_config()

    assert cfg["chat"]["max_tokens"] == 4096
    assert cfg["providers"]["ollama"]["url"] == "http://localhost:11434"


def test_file_overrides_merge_with_defaults(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text(
        "chat:\n"
        "  default_provider: gemini\n"
        "providers:\n"
        "  ollama:\n"
        "    url: http://gpu-box:11434\n"
    )

    cfg = config_mod.load_config(path)

    assert cfg["chat"]["default_provider"] == "gemini"
    assert cfg["chat"]["max_tokens"] == 4096
    assert cfg["providers"]["ollama"]["url"] == "http://gpu-box:11434"
    assert cfg["providers"]["ollama"]["default_model"] == "llama3.1"


def test_env_var_resolution(tmp_path, monkeypatch):
    monkeypatch.setenv("TEST_AGENTCHAT_KEY_123", "sk-from-env")
    path = tmp_path / "config.yaml"
    path.write_text("providers:\n  anthropic:\n    api_key: ${TEST_AGENTCHAT_KEY_123}\n")

    cfg = config_mod.load_config(path)

    assert cfg["providers"]["anthropic"]["api_key"] == "sk-from-env"


def test_explicit_missing_file_raises(tmp_path):
    with pytest.raises(FileNotFoundError):
        config_mod.load_config(tmp_path / "nope.yaml")


def test_env_config_path(tmp_path, monkeypatch):
    path = tmp_path / "alt.yaml"
    path.write_text("chat:\n  max_tokens: 123\n")
    monkeypatch.setenv("AGENTCHAT_CONFIG", str(path))

    assert config_mod.get_config()["chat"]["max_tokens"] == 123


def test_defaults_not_mutated(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text("chat:\n  max_tokens: 1\n")
    config_mod.load_config(path)
    assert config_mod.DEFAULTS["chat"]["max_tokens"] == 4096
