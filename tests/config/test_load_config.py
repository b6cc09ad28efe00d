"""
Integration tests for load_config.

Tests the full phase sequence: YAML load, environment key injection, server
overrides and validation into AppConfig.
"""

import pytest

from livetranslate.config import AppConfig, load_config


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    for name in (
        "LIVETRANSLATE_CONFIG",
        "AZURE_API_KEY",
        "AZURE_SPEECH_KEY",
        "AZURE_REGION",
        "AZURE_SPEECH_REGION",
        "OPENAI_API_KEY",
        "GEMINI_API_KEY",
        "GOOGLE_API_KEY",
        "DEEPGRAM_API_KEY",
        "DEEPGRAM_KEY",
        "LIVETRANSLATE_HOST",
        "LIVETRANSLATE_PORT",
        "LIVETRANSLATE_CORS_ORIGINS",
    ):
        monkeypatch.delenv(name, raising=False)


def test_explicit_file_with_env_keys(tmp_path, monkeypatch):
    monkeypatch.setenv("AZURE_API_KEY", "azure-key")
    monkeypatch.setenv("AZURE_REGION", "westeurope")
    config_file = tmp_path / "lt.yaml"
    config_file.write_text(
        "router:\n  word_threshold: 5\nstreaming:\n  retry_max_attempts: 2\nplayback:\n  guard_interval_ms: 100\n"
    )

    config = load_config(str(config_file))

    assert isinstance(config, AppConfig)
    assert config.router.word_threshold == 5
    assert config.streaming.retry_max_attempts == 2
    assert config.playback.guard_interval_ms == 100
    assert config.azure.api_key == "azure-key"
    assert config.azure.region == "westeurope"
    assert config.openai.api_key is None


def test_explicit_missing_file_is_an_error(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_config(str(tmp_path / "nope.yaml"))


def test_missing_default_file_uses_builtin_defaults(tmp_path, monkeypatch):
    monkeypatch.setenv("LIVETRANSLATE_CONFIG", str(tmp_path / "absent.yaml"))

    config = load_config()

    assert config.router.short_backend == "openai"
    assert config.router.long_backend == "gemini"
    assert config.streaming.retry_base_delay_sec == 1.0
    assert config.streaming.retry_max_attempts == 5
    assert config.credentials.client_cache_ttl_sec == 540.0
    assert config.playback.poll_interval_ms == 100


def test_server_overrides_applied(tmp_path, monkeypatch):
    monkeypatch.setenv("LIVETRANSLATE_CONFIG", str(tmp_path / "absent.yaml"))
    monkeypatch.setenv("LIVETRANSLATE_PORT", "8123")

    config = load_config()

    assert config.server.port == 8123


def test_yaml_api_key_never_used(tmp_path):
    config_file = tmp_path / "lt.yaml"
    config_file.write_text("openai:\n  api_key: sk-leaked\n")

    config = load_config(str(config_file))

    assert config.openai.api_key is None
