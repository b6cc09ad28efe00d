"""
Backend routing.

The routing policy is one pure function ``classify(text) -> backend_id``. The
default is a word-count heuristic: short fragments go to the low-latency backend,
longer ones to the higher-quality backend. Any other callable with the same shape
can be passed to ``GenerationRouter`` instead.
"""

from __future__ import annotations

from typing import Callable, Dict, List, Mapping

from livetranslate.config import RouterConfig
from livetranslate.errors import ConfigurationError
from livetranslate.logging_config import get_logger
from livetranslate.pipelines.base import GenerationBackend

logger = get_logger(__name__)

Classifier = Callable[[str], str]


def word_count(text: str) -> int:
    return len(text.split())


def make_word_count_classifier(threshold: int, short_backend: str, long_backend: str) -> Classifier:
    def classify(text: str) -> str:
        return long_backend if word_count(text) > threshold else short_backend

    return classify


def default_classifier(config: RouterConfig) -> Classifier:
    return make_word_count_classifier(config.word_threshold, config.short_backend, config.long_backend)


class GenerationRouter:
    def __init__(self, backends: Mapping[str, GenerationBackend], classify: Classifier):
        self._backends: Dict[str, GenerationBackend] = dict(backends)
        self._classify = classify

    @property
    def backend_ids(self) -> List[str]:
        return list(self._backends.keys())

    def select(self, text: str) -> GenerationBackend:
        """
        Pick the backend for ``text``.

        When the classified backend is not registered, falls back to the first
        registered backend.

        Raises:
            ConfigurationError: If no generation backend is registered
        """
        if not self._backends:
            raise ConfigurationError("No generation backends are configured")
        backend_id = self._classify(text)
        backend = self._backends.get(backend_id)
        if backend is None:
            fallback_id = next(iter(self._backends))
            logger.warning(
                "Routed backend unavailable, using fallback",
                requested=backend_id,
                fallback=fallback_id,
            )
            backend = self._backends[fallback_id]
        logger.debug("Routed translation request", backend=backend.backend_id, words=word_count(text))
        return backend

    async def close(self) -> None:
        for backend in self._backends.values():
            stop = getattr(backend, "stop", None)
            if stop is not None:
                await stop()
