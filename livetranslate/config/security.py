"""
Security-critical configuration injection.

SECURITY POLICY:
- API keys MUST NEVER be in YAML files
- All credentials MUST come from environment variables only
- Non-secret settings (e.g. the Azure region) may come from YAML, env wins
"""

import os
from typing import Any, Dict, Optional


def _is_nonempty_string(val: Any) -> bool:
    """Check if value is a string with non-whitespace content."""
    return isinstance(val, str) and val.strip() != ""


def _env(*names: str) -> Optional[str]:
    """Return the first non-empty environment variable among ``names``."""
    for name in names:
        value = os.getenv(name)
        if _is_nonempty_string(value):
            return value.strip()
    return None


def _section(config_data: Dict[str, Any], name: str) -> Dict[str, Any]:
    block = config_data.get(name)
    if not isinstance(block, dict):
        block = {}
    config_data[name] = block
    return block


def inject_provider_api_keys(config_data: Dict[str, Any]) -> None:
    """
    Inject provider API keys from environment variables ONLY.

    Any ``api_key`` present in YAML is discarded. A missing variable leaves the
    key unset, which marks that provider or backend unavailable downstream.

    Environment variables:
    - AZURE_API_KEY (or AZURE_SPEECH_KEY): Azure Speech subscription key
    - AZURE_REGION (or AZURE_SPEECH_REGION): Azure region, overrides YAML
    - DEEPGRAM_API_KEY (or DEEPGRAM_KEY): Deepgram key
    - OPENAI_API_KEY: OpenAI key
    - GEMINI_API_KEY (or GOOGLE_API_KEY): Gemini key

    Args:
        config_data: Configuration dictionary to modify in-place
    """
    azure = _section(config_data, 'azure')
    azure['api_key'] = _env('AZURE_API_KEY', 'AZURE_SPEECH_KEY')
    region = _env('AZURE_REGION', 'AZURE_SPEECH_REGION')
    if region:
        azure['region'] = region

    deepgram = _section(config_data, 'deepgram')
    deepgram['api_key'] = _env('DEEPGRAM_API_KEY', 'DEEPGRAM_KEY')

    openai = _section(config_data, 'openai')
    openai['api_key'] = _env('OPENAI_API_KEY')

    gemini = _section(config_data, 'gemini')
    gemini['api_key'] = _env('GEMINI_API_KEY', 'GOOGLE_API_KEY')


def apply_server_overrides(config_data: Dict[str, Any]) -> None:
    """
    Apply HTTP server overrides from the environment.

    Environment variables:
    - LIVETRANSLATE_HOST / LIVETRANSLATE_PORT
    - LIVETRANSLATE_CORS_ORIGINS: comma-separated list, or '*'
    """
    server = _section(config_data, 'server')
    host = _env('LIVETRANSLATE_HOST')
    if host:
        server['host'] = host
    port = _env('LIVETRANSLATE_PORT')
    if port:
        server['port'] = int(port)
    origins = _env('LIVETRANSLATE_CORS_ORIGINS')
    if origins:
        server['cors_origins'] = [o.strip() for o in origins.split(',') if o.strip()]
