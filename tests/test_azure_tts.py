import asyncio

import pytest

from livetranslate.config import AzureSpeechConfig
from livetranslate.core.models import CredentialRecord
from livetranslate.errors import CredentialIssuanceError, SynthesisError
from livetranslate.pipelines.azure_tts import AzureSpeechSynthesizer, build_ssml


class _FakeResponse:
    def __init__(self, body=b"RIFF....WAVE", status=200):
        self._body = body
        self.status = status

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        return False

    async def read(self):
        return self._body

    async def text(self):
        return self._body.decode("utf-8", errors="ignore")


class _TimeoutResponse:
    async def __aenter__(self):
        raise asyncio.TimeoutError()

    async def __aexit__(self, exc_type, exc, tb):
        return False


class _FakeSession:
    def __init__(self, response):
        self._response = response
        self.closed = False
        self.requests = []

    def post(self, url, data=None, headers=None, timeout=None):
        self.requests.append({"url": url, "data": data, "headers": headers})
        return self._response

    async def close(self):
        self.closed = True


def _credential_source(region="westeurope", calls=None):
    async def source(provider):
        if calls is not None:
            calls.append(provider)
        return CredentialRecord(
            provider_name="azure-speech",
            secret="azure-token",
            issued_at=0.0,
            expires_at=600.0,
            auxiliary={"region": region} if region else {},
        )

    return source


def _synth(session, source=None, **config):
    return AzureSpeechSynthesizer(
        source or _credential_source(),
        AzureSpeechConfig(**config),
        session_factory=lambda: session,
    )


def test_build_ssml_escapes_text():
    ssml = build_ssml('Tom & "Jerry" <3', voice="en-US-JennyNeural")

    assert "Tom &amp; &quot;Jerry&quot; &lt;3" in ssml
    assert '<voice name="en-US-JennyNeural">' in ssml
    assert 'xml:lang="en-US"' in ssml
    assert "<prosody" not in ssml


def test_build_ssml_clamps_prosody():
    ssml = build_ssml("hola", voice="v", language="es-ES", rate=3.0, pitch=0.1)

    assert '<prosody rate="2.0" pitch="0.5">' in ssml


@pytest.mark.asyncio
async def test_synthesize_posts_ssml_with_bearer_token():
    session = _FakeSession(_FakeResponse(body=b"RIFFxxxxWAVEdata"))
    calls = []
    synth = _synth(session, _credential_source(calls=calls))

    audio = await synth.synthesize("Hola, amigo", language="es-ES")

    assert audio == b"RIFFxxxxWAVEdata"
    assert calls == ["azure-speech"]
    request = session.requests[0]
    assert request["url"] == "https://westeurope.tts.speech.microsoft.com/cognitiveservices/v1"
    assert request["headers"]["Authorization"] == "Bearer azure-token"
    assert request["headers"]["Content-Type"] == "application/ssml+xml"
    assert request["headers"]["X-Microsoft-OutputFormat"] == "riff-24khz-16bit-mono-pcm"
    assert b"es-ES-ElviraNeural" in request["data"]


def test_voice_selection():
    synth = _synth(_FakeSession(_FakeResponse()), default_voice="en-GB-RyanNeural")

    assert synth.voice_for("fr-FR") == "fr-FR-DeniseNeural"
    assert synth.voice_for("fr-FR", "fr-FR-HenriNeural") == "fr-FR-HenriNeural"
    assert synth.voice_for("xx-XX") == "en-GB-RyanNeural"


@pytest.mark.asyncio
async def test_region_falls_back_to_config():
    session = _FakeSession(_FakeResponse())
    synth = _synth(session, _credential_source(region=None), region="eastus")

    await synth.synthesize("hi")

    assert session.requests[0]["url"].startswith("https://eastus.")


@pytest.mark.asyncio
async def test_http_error_is_synthesis_error():
    synth = _synth(_FakeSession(_FakeResponse(body=b"Unauthorized", status=401)))

    with pytest.raises(SynthesisError) as excinfo:
        await synth.synthesize("hi")

    assert excinfo.value.status == 401


@pytest.mark.asyncio
async def test_timeout_is_synthesis_error():
    synth = _synth(_FakeSession(_TimeoutResponse()))

    with pytest.raises(SynthesisError, match="timed out"):
        await synth.synthesize("hi")


@pytest.mark.asyncio
async def test_empty_audio_is_synthesis_error():
    synth = _synth(_FakeSession(_FakeResponse(body=b"")))

    with pytest.raises(SynthesisError):
        await synth.synthesize("hi")


@pytest.mark.asyncio
async def test_credential_failure_is_synthesis_error():
    async def failing(provider):
        raise CredentialIssuanceError("issuer down", provider=provider)

    session = _FakeSession(_FakeResponse())
    synth = _synth(session, failing)

    with pytest.raises(SynthesisError, match="credential"):
        await synth.synthesize("hi")
    assert session.requests == []
