"""Decode synthesized RIFF/WAVE audio to mono PCM16 for the output device."""

from __future__ import annotations

import sys
import wave
from array import array
from dataclasses import dataclass
from io import BytesIO

from livetranslate.errors import DecodeError


@dataclass(frozen=True)
class DecodedAudio:
    pcm: bytes  # mono PCM16 little-endian
    sample_rate: int
    channels: int  # channel count of the source file
    sample_width: int
    duration: float


def _downmix_stereo(frames: bytes) -> bytes:
    samples = array("h")
    samples.frombytes(frames)
    if sys.byteorder == "big":
        samples.byteswap()
    mono = array("h", ((samples[i] + samples[i + 1]) // 2 for i in range(0, len(samples) - 1, 2)))
    if sys.byteorder == "big":
        mono.byteswap()
    return mono.tobytes()


def decode_wav(raw: bytes) -> DecodedAudio:
    """
    Decode a PCM16 mono or stereo WAV payload. Stereo is averaged down to mono.

    Raises:
        DecodeError: If the payload is not RIFF/WAVE, is not 16-bit PCM, or holds no frames
    """
    if not (raw[:4] == b"RIFF" and raw[8:12] == b"WAVE"):
        raise DecodeError(f"Expected RIFF/WAVE audio but received bytes starting with {raw[:12]!r}")
    try:
        with wave.open(BytesIO(raw), "rb") as wf:
            channels = wf.getnchannels()
            sample_width = wf.getsampwidth()
            sample_rate = wf.getframerate()
            frames = wf.readframes(wf.getnframes())
    except (wave.Error, EOFError) as exc:
        raise DecodeError(f"Failed to decode WAV payload: {exc}") from exc

    if sample_width != 2:
        raise DecodeError(f"Only 16-bit PCM WAV is supported (got {sample_width * 8}-bit)")
    if channels == 2:
        frames = _downmix_stereo(frames)
    elif channels != 1:
        raise DecodeError(f"Only mono or stereo WAV is supported (got {channels} channels)")
    if not frames:
        raise DecodeError("WAV payload contains no audio frames")

    return DecodedAudio(
        pcm=frames,
        sample_rate=sample_rate,
        channels=channels,
        sample_width=sample_width,
        duration=len(frames) / (2.0 * sample_rate),
    )
