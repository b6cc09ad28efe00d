"""Generation backends and speech synthesis adapters."""

from __future__ import annotations

from typing import Callable, Dict, Optional

import aiohttp

from livetranslate.config import AppConfig
from livetranslate.errors import ConfigurationError
from livetranslate.logging_config import get_logger
from livetranslate.pipelines.base import GenerationBackend
from livetranslate.pipelines.gemini import GeminiStreamBackend
from livetranslate.pipelines.openai import OpenAIChatBackend, OpenAIResponsesBackend

logger = get_logger(__name__)


def build_generation_backends(
    config: AppConfig,
    session_factory: Optional[Callable[[], aiohttp.ClientSession]] = None,
) -> Dict[str, GenerationBackend]:
    """Instantiate every backend whose API key is configured, keyed by ``backend_id``."""
    factories = (
        lambda: OpenAIResponsesBackend(config.openai, session_factory=session_factory),
        lambda: GeminiStreamBackend(config.gemini, session_factory=session_factory),
        lambda: OpenAIChatBackend(config.openai, session_factory=session_factory),
    )
    backends: Dict[str, GenerationBackend] = {}
    for factory in factories:
        try:
            backend = factory()
        except ConfigurationError as exc:
            logger.info("Generation backend unavailable", backend=exc.provider, reason=str(exc))
            continue
        backends[backend.backend_id] = backend
        logger.info("Generation backend registered", backend=backend.backend_id, style=backend.style)
    return backends


__all__ = [
    "GenerationBackend",
    "GeminiStreamBackend",
    "OpenAIChatBackend",
    "OpenAIResponsesBackend",
    "build_generation_backends",
]
