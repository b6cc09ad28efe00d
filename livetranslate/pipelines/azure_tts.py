"""
Azure Speech text-to-speech over REST.

The synthesizer never holds a subscription key: it asks a credential source for a
short-lived Azure token (the broker in-process, or ``AccessTokenClient`` against a
remote ``/token``) and sends SSML with a Bearer header.
"""

from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, Dict, Optional
from xml.sax.saxutils import escape

import aiohttp

from livetranslate.config import AzureSpeechConfig
from livetranslate.core.models import CredentialRecord
from livetranslate.errors import LiveTranslateError, SynthesisError
from livetranslate.logging_config import get_logger

logger = get_logger(__name__)

CredentialSource = Callable[[Optional[str]], Awaitable[CredentialRecord]]

AZURE_PROVIDER = "azure-speech"

DEFAULT_VOICES: Dict[str, str] = {
    "en-US": "en-US-JennyNeural",
    "en-GB": "en-GB-SoniaNeural",
    "es-ES": "es-ES-ElviraNeural",
    "es-MX": "es-MX-DaliaNeural",
    "fr-FR": "fr-FR-DeniseNeural",
    "fr-CA": "fr-CA-SylvieNeural",
    "de-DE": "de-DE-KatjaNeural",
    "it-IT": "it-IT-ElsaNeural",
    "pt-BR": "pt-BR-FranciscaNeural",
    "pt-PT": "pt-PT-RaquelNeural",
    "ru-RU": "ru-RU-SvetlanaNeural",
    "ja-JP": "ja-JP-NanamiNeural",
    "ko-KR": "ko-KR-SunHiNeural",
    "zh-CN": "zh-CN-XiaoxiaoNeural",
    "zh-TW": "zh-TW-HsiaoChenNeural",
    "ar-SA": "ar-SA-ZariyahNeural",
    "hi-IN": "hi-IN-SwaraNeural",
    "nl-NL": "nl-NL-ColetteNeural",
    "pl-PL": "pl-PL-AgnieszkaNeural",
    "tr-TR": "tr-TR-EmelNeural",
    "vi-VN": "vi-VN-HoaiMyNeural",
}
FALLBACK_VOICE = "en-US-JennyNeural"


def _clamp(value: float, low: float = 0.5, high: float = 2.0) -> float:
    return max(low, min(high, value))


def build_ssml(
    text: str,
    *,
    voice: str,
    language: str = "en-US",
    rate: Optional[float] = None,
    pitch: Optional[float] = None,
) -> str:
    """SSML document for one utterance. ``rate``/``pitch`` are clamped to 0.5-2.0."""
    parts = [
        f'<speak version="1.0" xmlns="http://www.w3.org/2001/10/synthesis" xml:lang="{escape(language)}">',
        f'<voice name="{escape(voice)}">',
    ]
    prosody = rate is not None or pitch is not None
    if prosody:
        attrs = ""
        if rate is not None:
            attrs += f' rate="{_clamp(rate)}"'
        if pitch is not None:
            attrs += f' pitch="{_clamp(pitch)}"'
        parts.append(f"<prosody{attrs}>")
    parts.append(escape(text, {'"': "&quot;", "'": "&apos;"}))
    if prosody:
        parts.append("</prosody>")
    parts.append("</voice></speak>")
    return "".join(parts)


class AzureSpeechSynthesizer:
    def __init__(
        self,
        credential_source: CredentialSource,
        config: AzureSpeechConfig,
        *,
        timeout_sec: float = 15.0,
        session_factory: Optional[Callable[[], aiohttp.ClientSession]] = None,
    ):
        self._credential_source = credential_source
        self._config = config
        self._timeout_sec = timeout_sec
        self._session_factory = session_factory
        self._session: Optional[aiohttp.ClientSession] = None

    @property
    def output_format(self) -> str:
        return self._config.synthesis_output_format

    def voice_for(self, language: Optional[str], voice_hint: Optional[str] = None) -> str:
        if voice_hint:
            return voice_hint
        if language and language in DEFAULT_VOICES:
            return DEFAULT_VOICES[language]
        return self._config.default_voice or FALLBACK_VOICE

    async def _ensure_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            factory = self._session_factory or aiohttp.ClientSession
            self._session = factory()
        return self._session

    async def synthesize(
        self,
        text: str,
        *,
        language: Optional[str] = None,
        voice_hint: Optional[str] = None,
        rate: Optional[float] = None,
        pitch: Optional[float] = None,
    ) -> bytes:
        """Return the raw audio bytes (RIFF/WAVE for the default output format)."""
        try:
            credential = await self._credential_source(AZURE_PROVIDER)
        except LiveTranslateError as exc:
            raise SynthesisError(f"Could not obtain Azure Speech credential: {exc}") from exc

        region = credential.auxiliary.get("region") or self._config.region
        if not region:
            raise SynthesisError("Azure Speech credential carries no region")

        voice = self.voice_for(language, voice_hint)
        ssml = build_ssml(text, voice=voice, language=language or "en-US", rate=rate, pitch=pitch)
        url = f"https://{region}.tts.speech.microsoft.com/cognitiveservices/v1"
        headers = {
            "Authorization": f"Bearer {credential.secret}",
            "Content-Type": "application/ssml+xml",
            "X-Microsoft-OutputFormat": self.output_format,
            "User-Agent": "livetranslate",
        }

        session = await self._ensure_session()
        try:
            async with session.post(
                url,
                data=ssml.encode("utf-8"),
                headers=headers,
                timeout=aiohttp.ClientTimeout(total=self._timeout_sec),
            ) as resp:
                if resp.status >= 400:
                    body = await resp.text()
                    logger.error(
                        "Azure TTS request failed",
                        status=resp.status,
                        voice=voice,
                        body_preview=(body or "")[:256],
                    )
                    raise SynthesisError(f"Azure TTS request failed (status {resp.status})", status=resp.status)
                audio = await resp.read()
        except asyncio.TimeoutError as exc:
            raise SynthesisError(f"Azure TTS timed out after {self._timeout_sec:.1f}s") from exc
        except aiohttp.ClientError as exc:
            raise SynthesisError(f"Azure TTS connection error: {exc}") from exc

        if not audio:
            raise SynthesisError("Azure TTS returned no audio")
        logger.info("Azure TTS synthesis completed", voice=voice, language=language, bytes=len(audio))
        return audio

    async def close(self) -> None:
        if self._session and not self._session.closed:
            await self._session.close()
        self._session = None
