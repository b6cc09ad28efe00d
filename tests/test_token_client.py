import json

import pytest

from livetranslate.credentials.cache import CredentialCache
from livetranslate.credentials.client import AccessTokenClient, record_from_payload
from livetranslate.errors import CredentialIssuanceError

_AZURE_PAYLOAD = {
    "token": "azure-token",
    "region": "westeurope",
    "provider": "azure-speech",
    "expiresIn": 600,
    "issuedAt": "2025-01-01T00:00:00+00:00",
    "availableProviders": ["azure-speech", "deepgram-speech"],
}


class _FakeJsonResponse:
    def __init__(self, payload, status: int = 200):
        self._payload = payload
        self.status = status

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        return False

    async def json(self):
        return self._payload

    async def text(self):
        return json.dumps(self._payload)


class _FakeHttpSession:
    def __init__(self, payload, status: int = 200):
        self._payload = payload
        self._status = status
        self.closed = False
        self.requests = []

    def get(self, url, params=None, timeout=None):
        self.requests.append({"url": url, "params": params})
        return _FakeJsonResponse(self._payload, status=self._status)

    async def close(self):
        self.closed = True


class _FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


def test_record_from_payload_azure():
    record = record_from_payload(_AZURE_PAYLOAD)

    assert record.provider_name == "azure-speech"
    assert record.secret == "azure-token"
    assert record.secret_field == "token"
    assert record.auxiliary == {"region": "westeurope"}
    assert record.lifetime_sec == pytest.approx(600.0)


def test_record_from_payload_deepgram():
    record = record_from_payload(
        {
            "access_token": "dg-temp",
            "provider": "deepgram-speech",
            "expiresIn": 30,
            "issuedAt": "2025-01-01T00:00:00Z",
        }
    )
    assert record.secret_field == "access_token"
    assert record.to_payload()["access_token"] == "dg-temp"


def test_record_from_payload_without_token():
    with pytest.raises(CredentialIssuanceError):
        record_from_payload({"provider": "x", "issuedAt": "2025-01-01T00:00:00Z"})


@pytest.mark.asyncio
async def test_client_caches_under_default_key():
    session = _FakeHttpSession(_AZURE_PAYLOAD)
    clock = _FakeClock()
    client = AccessTokenClient(
        "http://localhost:8000/", CredentialCache(clock=clock), session_factory=lambda: session
    )

    first = await client.get_credential()
    clock.now = 539.0
    second = await client.get_credential()

    assert first.secret == second.secret == "azure-token"
    assert len(session.requests) == 1
    assert session.requests[0] == {"url": "http://localhost:8000/token", "params": None}
    assert client.is_cached()

    clock.now = 540.0
    assert not client.is_cached()
    await client.get_credential()
    assert len(session.requests) == 2


@pytest.mark.asyncio
async def test_client_named_provider_uses_its_own_key():
    session = _FakeHttpSession(_AZURE_PAYLOAD)
    client = AccessTokenClient("http://svc", session_factory=lambda: session)

    await client.get_credential("azure-speech")

    assert session.requests[0]["params"] == {"provider": "azure-speech"}
    assert client.is_cached("azure-speech")
    assert not client.is_cached()

    client.clear_cache("azure-speech")
    assert not client.is_cached("azure-speech")


@pytest.mark.asyncio
async def test_client_error_status_raises_with_server_message():
    session = _FakeHttpSession({"error": "No token providers are available.", "availableProviders": []}, status=500)
    client = AccessTokenClient("http://svc", session_factory=lambda: session)

    with pytest.raises(CredentialIssuanceError, match="No token providers"):
        await client.get_credential()
    assert not client.is_cached()


@pytest.mark.asyncio
async def test_available_providers_empty_on_failure():
    session = _FakeHttpSession({"error": "down"}, status=503)
    client = AccessTokenClient("http://svc", session_factory=lambda: session)

    assert await client.get_available_providers() == []


@pytest.mark.asyncio
async def test_available_providers_listed():
    session = _FakeHttpSession(_AZURE_PAYLOAD)
    client = AccessTokenClient("http://svc", session_factory=lambda: session)

    assert await client.get_available_providers() == ["azure-speech", "deepgram-speech"]


@pytest.mark.asyncio
async def test_client_short_lived_token_is_fetched_again():
    payload = {
        "access_token": "dg-temp",
        "provider": "deepgram-speech",
        "expiresIn": 30,
        "issuedAt": "2025-01-01T00:00:00Z",
    }
    session = _FakeHttpSession(payload)
    clock = _FakeClock()
    client = AccessTokenClient("http://svc", CredentialCache(clock=clock), session_factory=lambda: session)

    await client.get_credential("deepgram-speech")
    clock.now = 26.9
    assert client.is_cached("deepgram-speech")
    clock.now = 27.5
    assert not client.is_cached("deepgram-speech")

    clock.now = 120.0
    await client.get_credential("deepgram-speech")

    assert len(session.requests) == 2
