"""
Audio outputs with a device clock.

The scheduler computes absolute start times on ``now()`` of the output and hands
fully decoded buffers to ``schedule``. Outputs never reorder or delay buffers on
their own; gapless playback is the scheduler's job.
"""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, List, Optional, Protocol, runtime_checkable

from livetranslate.errors import ConfigurationError
from livetranslate.logging_config import get_logger

logger = get_logger(__name__)


@runtime_checkable
class AudioOutput(Protocol):
    sample_rate: int

    def now(self) -> float: ...

    def schedule(self, pcm: bytes, start_at: float) -> None: ...

    def close(self) -> None: ...


@dataclass
class ScheduledBuffer:
    start_at: float
    pcm: bytes


class VirtualAudioOutput:
    """Headless output: a monotonic clock plus a record of the buffers still playing."""

    def __init__(self, sample_rate: int = 24000, clock: Callable[[], float] = time.monotonic):
        self.sample_rate = sample_rate
        self._clock = clock
        self._origin = clock()
        self.scheduled: List[ScheduledBuffer] = []
        self.closed = False

    def now(self) -> float:
        return self._clock() - self._origin

    def schedule(self, pcm: bytes, start_at: float) -> None:
        # Only buffers that are still playing are kept
        now = self.now()
        self.scheduled = [b for b in self.scheduled if b.start_at + len(b.pcm) / (2.0 * self.sample_rate) > now]
        self.scheduled.append(ScheduledBuffer(start_at=start_at, pcm=pcm))

    def close(self) -> None:
        self.closed = True


class SoundDeviceOutput:
    """
    Plays scheduled buffers through a sounddevice ``RawOutputStream``.

    The callback copies each pending buffer into the block at its start frame, so
    the device clock is frames rendered divided by the sample rate. Buffers
    scheduled in the past start at the next rendered frame.
    """

    def __init__(self, sample_rate: int = 24000, device: Optional[Any] = None, blocksize: int = 0):
        try:
            import sounddevice as sd
        except ImportError as e:
            raise ConfigurationError(
                "sounddevice is not installed. Install with: python -m pip install 'livetranslate[audio]'"
            ) from e

        self.sample_rate = int(sample_rate)
        self._lock = threading.Lock()
        self._frames_rendered = 0
        self._pending: List[List[Any]] = []  # [start_frame, pcm, offset_bytes]
        self._stream = sd.RawOutputStream(
            samplerate=self.sample_rate,
            channels=1,
            dtype="int16",
            device=device,
            blocksize=blocksize,
            callback=self._callback,
        )
        self._stream.start()
        logger.info("Audio output started", sample_rate=self.sample_rate, device=device)

    def now(self) -> float:
        with self._lock:
            return self._frames_rendered / float(self.sample_rate)

    def schedule(self, pcm: bytes, start_at: float) -> None:
        with self._lock:
            start_frame = max(int(round(start_at * self.sample_rate)), self._frames_rendered)
            self._pending.append([start_frame, pcm, 0])

    def _callback(self, outdata, frames, time_info, status) -> None:
        if status:
            logger.debug("Audio output status", status=str(status))
        block = bytearray(frames * 2)
        with self._lock:
            block_start = self._frames_rendered
            block_end = block_start + frames
            remaining = []
            for item in self._pending:
                start_frame, pcm, offset = item
                if start_frame >= block_end:
                    remaining.append(item)
                    continue
                dest = (start_frame - block_start) * 2 if start_frame > block_start else 0
                take = min(len(block) - dest, len(pcm) - offset)
                block[dest:dest + take] = pcm[offset:offset + take]
                item[2] = offset + take
                if item[2] < len(pcm):
                    # Continues at the start of the next block
                    item[0] = block_end
                    remaining.append(item)
            self._pending = remaining
            self._frames_rendered = block_end
        outdata[:] = bytes(block)

    def close(self) -> None:
        self._stream.stop()
        self._stream.close()
        logger.info("Audio output closed")


def build_audio_output(kind: str, sample_rate: int, device: Optional[Any] = None) -> AudioOutput:
    if kind == "virtual":
        return VirtualAudioOutput(sample_rate=sample_rate)
    if kind == "sounddevice":
        return SoundDeviceOutput(sample_rate=sample_rate, device=device)
    raise ConfigurationError(f"Unknown playback output '{kind}' (use 'virtual' or 'sounddevice')")
