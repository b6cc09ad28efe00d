"""
Configuration for the livetranslate service and interpreter client.

Pydantic v2 models validate the merged configuration; ``load_config`` builds it
from YAML (with ``${VAR}`` expansion) plus environment-only secrets.
"""

import os
from typing import List, Optional

from pydantic import BaseModel, Field

from livetranslate.config.loaders import (
    DEFAULT_CONFIG_PATH,
    load_yaml_with_env_expansion,
    resolve_config_path,
)
from livetranslate.config.security import apply_server_overrides, inject_provider_api_keys
from livetranslate.logging_config import get_logger

logger = get_logger(__name__)


class AzureSpeechConfig(BaseModel):
    region: Optional[str] = None
    api_key: Optional[str] = None
    # Azure STS tokens are valid for 10 minutes
    token_lifetime_sec: float = Field(default=600.0)
    synthesis_output_format: str = Field(default="riff-24khz-16bit-mono-pcm")
    default_voice: Optional[str] = None


class DeepgramConfig(BaseModel):
    api_key: Optional[str] = None
    base_url: str = Field(default="https://api.deepgram.com")
    token_ttl_sec: float = Field(default=30.0)


class OpenAIConfig(BaseModel):
    api_key: Optional[str] = None
    base_url: str = Field(default="https://api.openai.com/v1")
    responses_model: str = Field(default="gpt-5-mini")
    chat_model: str = Field(default="gpt-4o-mini")
    organization: Optional[str] = None


class GeminiConfig(BaseModel):
    api_key: Optional[str] = None
    base_url: str = Field(default="https://generativelanguage.googleapis.com/v1beta")
    model: str = Field(default="gemini-2.0-flash")


class RouterConfig(BaseModel):
    # Inputs with more words than this go to the long-input backend
    word_threshold: int = Field(default=3)
    short_backend: str = Field(default="openai")
    long_backend: str = Field(default="gemini")


class StreamingConfig(BaseModel):
    request_timeout_sec: float = Field(default=30.0)
    retry_base_delay_sec: float = Field(default=1.0)
    retry_max_attempts: int = Field(default=5, ge=1)
    simulated_slice_chars: int = Field(default=8, ge=1)
    simulated_slice_delay_sec: float = Field(default=0.05, ge=0.0)
    fallback_message: str = Field(default="Sorry, an error occurred during translation.")


class CredentialConfig(BaseModel):
    timeout_sec: float = Field(default=10.0)
    # Cached tokens expire this fraction before the issuer-declared lifetime
    ttl_safety_margin: float = Field(default=0.1, ge=0.0, lt=1.0)
    client_cache_ttl_sec: float = Field(default=540.0)


class PlaybackConfig(BaseModel):
    guard_interval_ms: int = Field(default=250)
    poll_interval_ms: int = Field(default=100)
    active_epsilon_sec: float = Field(default=0.01)
    sample_rate_hz: int = Field(default=24000)
    output: str = Field(default="virtual")  # virtual | sounddevice
    device: Optional[str] = None
    synthesis_timeout_sec: float = Field(default=15.0)


class ServerConfig(BaseModel):
    host: str = Field(default="127.0.0.1")
    port: int = Field(default=8000)
    cors_origins: List[str] = Field(default_factory=lambda: ["*"])


class LoggingConfig(BaseModel):
    level: str = Field(default="info")  # debug|info|warning|error|critical


class AppConfig(BaseModel):
    azure: AzureSpeechConfig = Field(default_factory=AzureSpeechConfig)
    deepgram: DeepgramConfig = Field(default_factory=DeepgramConfig)
    openai: OpenAIConfig = Field(default_factory=OpenAIConfig)
    gemini: GeminiConfig = Field(default_factory=GeminiConfig)
    router: RouterConfig = Field(default_factory=RouterConfig)
    streaming: StreamingConfig = Field(default_factory=StreamingConfig)
    credentials: CredentialConfig = Field(default_factory=CredentialConfig)
    playback: PlaybackConfig = Field(default_factory=PlaybackConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


def load_config(path: Optional[str] = None) -> AppConfig:
    """
    Load and validate configuration.

    Phases:
      1. Resolve the path and load YAML with environment variable expansion.
         With no explicit path, a missing default file means built-in defaults.
      2. Security: inject API keys from the environment only.
      3. Apply server overrides from the environment.
      4. Validate and return.

    Raises:
        FileNotFoundError: If an explicitly requested file doesn't exist
        yaml.YAMLError: If YAML parsing fails
    """
    explicit = path is not None
    resolved = resolve_config_path(path or os.getenv("LIVETRANSLATE_CONFIG", DEFAULT_CONFIG_PATH))
    if explicit or os.path.exists(resolved):
        config_data = load_yaml_with_env_expansion(resolved)
    else:
        logger.info("No configuration file found; using defaults", path=resolved)
        config_data = {}

    inject_provider_api_keys(config_data)
    apply_server_overrides(config_data)

    return AppConfig(**config_data)


__all__ = [
    "AzureSpeechConfig",
    "DeepgramConfig",
    "OpenAIConfig",
    "GeminiConfig",
    "RouterConfig",
    "StreamingConfig",
    "CredentialConfig",
    "PlaybackConfig",
    "ServerConfig",
    "LoggingConfig",
    "AppConfig",
    "load_config",
]
