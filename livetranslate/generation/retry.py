"""Exponential back-off for transient generation failures."""

from typing import Optional

from livetranslate.errors import GenerationError, TransientGenerationError

BACKOFF_FACTOR: float = 2.0


def backoff_delay(retry: int, base_delay: float, max_delay: Optional[float] = None) -> float:
    """
    Delay before the ``retry``-th retry (1-based): ``base_delay * 2 ** (retry - 1)``.

    With the defaults (base 1.0 s, five attempts) the waits are 1, 2, 4 and 8 seconds.
    """
    if retry < 1:
        raise ValueError("retry numbers start at 1")
    delay = base_delay * (BACKOFF_FACTOR ** (retry - 1))
    if max_delay is not None:
        delay = min(delay, max_delay)
    return delay


def is_retryable(exc: BaseException) -> bool:
    """True for 429/5xx, timeouts and dropped connections; every other 4xx is final."""
    return isinstance(exc, TransientGenerationError)


def describe_failure(exc: GenerationError) -> str:
    status = f" status={exc.status}" if exc.status is not None else ""
    return f"{type(exc).__name__}{status}: {exc}"
