"""
Gapless audio scheduling.

All scheduling hangs on one watermark, ``last_scheduled_end``. Each enqueue
synthesizes and decodes its text concurrently with the others, then, inside a
critical section, starts the segment at ``max(now, watermark)`` and advances the
watermark by the segment duration plus a guard interval. Segments therefore play
back to back in the order their synthesis completes, never overlapping.

``stop()`` only moves the watermark to "now": buffers already handed to the
output keep playing.
"""

from __future__ import annotations

import asyncio
import inspect
from typing import Any, Callable, List, Optional, Protocol, Set

from prometheus_client import Gauge

from livetranslate.audio.decode import DecodedAudio, decode_wav
from livetranslate.audio.output import AudioOutput
from livetranslate.config import PlaybackConfig
from livetranslate.core.models import AudioSegment, QueueState, QueueStatus
from livetranslate.errors import DecodeError, SynthesisError
from livetranslate.logging_config import get_logger

logger = get_logger(__name__)

_PLAYBACK_REMAINING = Gauge(
    "livetranslate_playback_remaining_seconds",
    "Seconds of audio scheduled but not yet played",
)
_PLAYBACK_MAX_SPAN = Gauge(
    "livetranslate_playback_max_span_seconds",
    "Largest queued span observed in the current playback burst",
)

StatusCallback = Callable[[QueueStatus], Any]


class Synthesizer(Protocol):
    async def synthesize(
        self, text: str, *, language: Optional[str] = None, voice_hint: Optional[str] = None
    ) -> bytes: ...


class AudioQueueScheduler:
    def __init__(
        self,
        synthesizer: Synthesizer,
        output: AudioOutput,
        config: Optional[PlaybackConfig] = None,
        *,
        decoder: Callable[[bytes], DecodedAudio] = decode_wav,
    ):
        config = config or PlaybackConfig()
        self._synthesizer = synthesizer
        self._output = output
        self._decoder = decoder
        self._guard_sec = config.guard_interval_ms / 1000.0
        self._poll_interval_sec = config.poll_interval_ms / 1000.0
        self._epsilon = config.active_epsilon_sec
        self._state = QueueState()
        self._lock = asyncio.Lock()
        self._segments: List[AudioSegment] = []
        self._submitted: Set[asyncio.Task] = set()
        self._observers: Set[asyncio.Task] = set()

    @property
    def state(self) -> QueueState:
        return self._state

    @property
    def guard_interval(self) -> float:
        return self._guard_sec

    async def _prepare(self, text: str, language: Optional[str], voice_hint: Optional[str]) -> DecodedAudio:
        raw = await self._synthesizer.synthesize(text, language=language, voice_hint=voice_hint)
        decoded = self._decoder(raw)
        if decoded.sample_rate != self._output.sample_rate:
            raise DecodeError(
                f"Decoded audio is {decoded.sample_rate} Hz but the output runs at {self._output.sample_rate} Hz"
            )
        return decoded

    async def enqueue(
        self,
        text: str,
        *,
        language: Optional[str] = None,
        voice_hint: Optional[str] = None,
    ) -> AudioSegment:
        """
        Synthesize ``text`` and schedule it right after everything already queued.

        Raises:
            SynthesisError: If speech synthesis fails
            DecodeError: If the synthesized audio cannot be decoded for the output
        """
        decoded = await self._prepare(text, language, voice_hint)

        async with self._lock:
            now = self._output.now()
            self._prune_finished(now)
            if self._state.last_scheduled_end - now <= self._epsilon:
                # Idle queue: a new burst starts
                self._state.max_observed_span = 0.0
            start = max(now, self._state.last_scheduled_end)
            self._output.schedule(decoded.pcm, start)
            self._state.last_scheduled_end = start + decoded.duration + self._guard_sec
            span = self._state.last_scheduled_end - now
            self._state.max_observed_span = max(self._state.max_observed_span, span)
            segment = AudioSegment(
                pcm=decoded.pcm,
                sample_rate=decoded.sample_rate,
                scheduled_start=start,
                duration=decoded.duration,
                text=text,
                language=language,
            )
            self._segments.append(segment)

        _PLAYBACK_REMAINING.set(span)
        _PLAYBACK_MAX_SPAN.set(self._state.max_observed_span)
        logger.info(
            "Audio segment scheduled",
            language=language,
            start=round(start, 3),
            duration=round(decoded.duration, 3),
            delay=round(start - now, 3),
        )
        return segment

    async def _run_submitted(
        self, text: str, language: Optional[str], voice_hint: Optional[str]
    ) -> Optional[AudioSegment]:
        try:
            return await self.enqueue(text, language=language, voice_hint=voice_hint)
        except (SynthesisError, DecodeError) as exc:
            logger.error("Audio segment dropped", language=language, error=str(exc), error_type=type(exc).__name__)
            return None

    def submit(
        self,
        text: str,
        *,
        language: Optional[str] = None,
        voice_hint: Optional[str] = None,
    ) -> "asyncio.Task[Optional[AudioSegment]]":
        """Fire-and-forget ``enqueue``. Failures are logged and the task resolves to None."""
        task = asyncio.create_task(self._run_submitted(text, language, voice_hint))
        self._submitted.add(task)
        task.add_done_callback(self._submitted.discard)
        return task

    def status(self) -> QueueStatus:
        remaining = max(self._state.last_scheduled_end - self._output.now(), 0.0)
        _PLAYBACK_REMAINING.set(remaining)
        return QueueStatus(
            remaining=remaining,
            max_observed_span=self._state.max_observed_span,
            is_active=remaining > self._epsilon,
        )

    def observe(self, on_update: StatusCallback, interval: Optional[float] = None) -> asyncio.Task:
        """Poll ``status()`` into ``on_update`` until the returned task is cancelled."""
        period = self._poll_interval_sec if interval is None else interval

        async def _poll() -> None:
            while True:
                result = on_update(self.status())
                if inspect.isawaitable(result):
                    await result
                await asyncio.sleep(period)

        task = asyncio.create_task(_poll())
        self._observers.add(task)
        task.add_done_callback(self._observers.discard)
        return task

    def _prune_finished(self, now: float) -> None:
        self._segments = [s for s in self._segments if s.scheduled_end > now]

    def segments(self) -> List[AudioSegment]:
        """Segments that have not finished playing."""
        self._prune_finished(self._output.now())
        return list(self._segments)

    def stop(self) -> None:
        """Stop chaining onto queued audio. Already scheduled buffers still play."""
        now = self._output.now()
        self._state.last_scheduled_end = now
        _PLAYBACK_REMAINING.set(0.0)
        logger.info("Audio queue stopped", at=round(now, 3))

    async def wait_idle(self) -> None:
        """Wait for submitted work to settle and scheduled audio to finish."""
        pending = [t for t in self._submitted if not t.done()]
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
        remaining = self.status().remaining
        if remaining > 0:
            await asyncio.sleep(remaining)

    async def close(self) -> None:
        tasks = list(self._submitted) + list(self._observers)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._output.close()
