"""Backend routing, retry policy and stream normalization."""

from livetranslate.generation.normalizer import StreamNormalizer
from livetranslate.generation.retry import backoff_delay
from livetranslate.generation.router import GenerationRouter, default_classifier, make_word_count_classifier

__all__ = [
    "GenerationRouter",
    "StreamNormalizer",
    "backoff_delay",
    "default_classifier",
    "make_word_count_classifier",
]
