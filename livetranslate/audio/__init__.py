"""Decode, output and gapless scheduling of synthesized speech."""

from livetranslate.audio.decode import DecodedAudio, decode_wav
from livetranslate.audio.output import AudioOutput, SoundDeviceOutput, VirtualAudioOutput, build_audio_output
from livetranslate.audio.scheduler import AudioQueueScheduler

__all__ = [
    "AudioOutput",
    "AudioQueueScheduler",
    "DecodedAudio",
    "SoundDeviceOutput",
    "VirtualAudioOutput",
    "build_audio_output",
    "decode_wav",
]
