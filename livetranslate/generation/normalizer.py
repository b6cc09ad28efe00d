"""
Stream normalization.

Every backend style (delta, accumulated, batch) is reduced to one sequence of
accumulated-text updates, then turned into ``StreamEvent`` objects:

- ``sequence`` strictly increases from 0 for each call.
- ``accumulated_text`` never shrinks; ``delta`` is the literal suffix it gained.
- Exactly one event has ``is_final=True`` and it is always the last one.

Events are emitted with one update of lookahead so the last content-bearing
event is the one flagged final. When the backend cannot be reached after
retries, or fails permanently, the final event carries the fallback message
with ``is_fallback=True`` instead.
"""

from __future__ import annotations

import inspect
from contextlib import aclosing
from typing import Any, AsyncIterator, Awaitable, Callable, Optional

from prometheus_client import Counter

from livetranslate.config import StreamingConfig
from livetranslate.core.cancellation import CancellationToken, cancellable_sleep
from livetranslate.core.models import StreamEvent
from livetranslate.errors import ConfigurationError, GenerationError, ParseError, StreamCancelled
from livetranslate.generation.retry import backoff_delay, describe_failure, is_retryable
from livetranslate.generation.router import GenerationRouter
from livetranslate.logging_config import get_logger
from livetranslate.pipelines.base import STYLE_ACCUMULATED, STYLE_BATCH, STYLE_DELTA, GenerationBackend
from livetranslate.pipelines.prompts import build_instruction

logger = get_logger(__name__)

SleepFn = Callable[[float, Optional[CancellationToken]], Awaitable[None]]
EventCallback = Callable[[StreamEvent], Any]

_GENERATION_ATTEMPTS = Counter(
    "livetranslate_generation_attempts_total",
    "Upstream generation requests started",
    labelnames=("backend",),
)
_GENERATION_RETRIES = Counter(
    "livetranslate_generation_retries_total",
    "Generation requests retried after a transient failure",
    labelnames=("backend",),
)
_GENERATION_FALLBACKS = Counter(
    "livetranslate_generation_fallbacks_total",
    "Translation streams that ended with the fallback message",
    labelnames=("backend",),
)


def simulated_slices(text: str, slice_chars: int):
    """Prefixes of ``text`` growing by ``slice_chars`` characters."""
    for end in range(slice_chars, len(text) + slice_chars, slice_chars):
        yield text[: min(end, len(text))]


class StreamNormalizer:
    def __init__(
        self,
        router: GenerationRouter,
        config: StreamingConfig,
        *,
        sleep: SleepFn = cancellable_sleep,
    ):
        self._router = router
        self._config = config
        self._sleep = sleep

    @property
    def fallback_message(self) -> str:
        return self._config.fallback_message

    async def close(self) -> None:
        await self._router.close()

    async def _accumulate(
        self,
        backend: GenerationBackend,
        instruction: str,
        cancel: Optional[CancellationToken],
    ) -> AsyncIterator[str]:
        """One upstream attempt, as a sequence of strictly growing accumulated texts."""
        accumulated = ""
        async with aclosing(backend.generate(instruction, self._config.request_timeout_sec)) as pieces:
            async for piece in pieces:
                if cancel is not None:
                    cancel.raise_if_cancelled()
                if backend.style == STYLE_DELTA:
                    if not piece:
                        continue
                    accumulated += piece
                    yield accumulated
                elif backend.style == STYLE_ACCUMULATED:
                    if not piece.startswith(accumulated):
                        err = ParseError("Accumulated update does not extend previous text", raw=piece[:120])
                        logger.warning(
                            "Skipping non-monotonic stream update",
                            backend=backend.backend_id,
                            error=str(err),
                        )
                        continue
                    if len(piece) == len(accumulated):
                        continue
                    accumulated = piece
                    yield accumulated
                elif backend.style == STYLE_BATCH:
                    first = True
                    for prefix in simulated_slices(piece, self._config.simulated_slice_chars):
                        if not first:
                            await self._sleep(self._config.simulated_slice_delay_sec, cancel)
                        first = False
                        accumulated = prefix
                        yield accumulated
                    # A batch backend answers once; anything after is ignored
                    return
                else:
                    raise ConfigurationError(f"Unknown backend style '{backend.style}'", provider=backend.backend_id)

    async def _updates(
        self,
        backend: GenerationBackend,
        instruction: str,
        cancel: Optional[CancellationToken],
    ) -> AsyncIterator[str]:
        """Accumulated updates with retries while nothing has been received yet."""
        max_attempts = self._config.retry_max_attempts
        attempt = 0
        while True:
            attempt += 1
            received = False
            if cancel is not None:
                cancel.raise_if_cancelled()
            _GENERATION_ATTEMPTS.labels(backend=backend.backend_id).inc()
            try:
                async with aclosing(self._accumulate(backend, instruction, cancel)) as updates:
                    async for accumulated in updates:
                        received = True
                        yield accumulated
                return
            except GenerationError as exc:
                if received or not is_retryable(exc) or attempt >= max_attempts:
                    raise
                delay = backoff_delay(attempt, self._config.retry_base_delay_sec)
                _GENERATION_RETRIES.labels(backend=backend.backend_id).inc()
                logger.warning(
                    "Transient generation failure, retrying",
                    backend=backend.backend_id,
                    attempt=attempt,
                    max_attempts=max_attempts,
                    delay_sec=delay,
                    error=describe_failure(exc),
                )
                await self._sleep(delay, cancel)

    async def iter_events(
        self,
        text: str,
        source_lang: str,
        target_lang: str,
        cancel: Optional[CancellationToken] = None,
    ) -> AsyncIterator[StreamEvent]:
        """Translate ``text`` and yield normalized events, always ending with a final one."""
        sequence = 0
        emitted = ""
        pending: Optional[str] = None
        backend_id = "none"

        try:
            backend = self._router.select(text)
            backend_id = backend.backend_id
            instruction = build_instruction(text, source_lang, target_lang)
            logger.info(
                "Translation stream starting",
                backend=backend_id,
                style=backend.style,
                source_lang=source_lang,
                target_lang=target_lang,
            )
            async with aclosing(self._updates(backend, instruction, cancel)) as updates:
                async for accumulated in updates:
                    if pending is not None:
                        yield StreamEvent(sequence, pending, pending[len(emitted):])
                        sequence += 1
                        emitted = pending
                    pending = accumulated
        except StreamCancelled as exc:
            final = pending if pending is not None else emitted
            logger.info("Translation stream cancelled", backend=backend_id, reason=str(exc), chars=len(final))
            yield StreamEvent(sequence, final, final[len(emitted):], is_final=True)
            return
        except (GenerationError, ConfigurationError) as exc:
            _GENERATION_FALLBACKS.labels(backend=backend_id).inc()
            logger.error(
                "Translation failed, sending fallback message",
                backend=backend_id,
                error=str(exc),
                partial_chars=len(pending or emitted),
            )
            message = self._config.fallback_message
            yield StreamEvent(sequence, message, message, is_final=True, is_fallback=True)
            return
        except Exception as exc:
            # Anything an adapter lets through still ends the stream with a final event
            _GENERATION_FALLBACKS.labels(backend=backend_id).inc()
            logger.error(
                "Unexpected backend failure, sending fallback message",
                backend=backend_id,
                error=str(exc),
                error_type=type(exc).__name__,
                exc_info=True,
            )
            message = self._config.fallback_message
            yield StreamEvent(sequence, message, message, is_final=True, is_fallback=True)
            return

        final = pending if pending is not None else emitted
        logger.info("Translation stream completed", backend=backend_id, events=sequence + 1, chars=len(final))
        yield StreamEvent(sequence, final, final[len(emitted):], is_final=True)

    async def stream(
        self,
        text: str,
        source_lang: str,
        target_lang: str,
        on_event: Optional[EventCallback] = None,
        cancel: Optional[CancellationToken] = None,
    ) -> str:
        """Drive ``iter_events``, pushing each event to ``on_event``; returns the final text."""
        final_text = ""
        async with aclosing(self.iter_events(text, source_lang, target_lang, cancel)) as events:
            async for event in events:
                if on_event is not None:
                    result = on_event(event)
                    if inspect.isawaitable(result):
                        await result
                if event.is_final:
                    final_text = event.accumulated_text
        return final_text
