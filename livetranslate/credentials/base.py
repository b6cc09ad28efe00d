"""
Credential provider contract and shared HTTP plumbing.

A provider is any object with ``provider_name``, ``lifetime_sec``,
``is_configured()`` and ``async get_credential()``. Providers validate their own
configuration eagerly in ``__init__`` and raise ``ConfigurationError`` when it is
incomplete; the broker skips those.
"""

from __future__ import annotations

import asyncio
from typing import Callable, Dict, Optional, Protocol, runtime_checkable

import aiohttp
from prometheus_client import Counter

from livetranslate.core.models import CredentialRecord
from livetranslate.errors import CredentialIssuanceError, CredentialTimeoutError
from livetranslate.logging_config import get_logger

logger = get_logger(__name__)

_CREDENTIALS_ISSUED = Counter(
    "livetranslate_credentials_issued_total",
    "Credential issuance attempts against upstream issuers",
    labelnames=("provider", "outcome"),
)


@runtime_checkable
class CredentialProvider(Protocol):
    provider_name: str
    lifetime_sec: float

    def is_configured(self) -> bool: ...

    async def get_credential(self) -> CredentialRecord: ...


class IssuerSession:
    """Lazily created aiohttp session shared by one provider instance."""

    def __init__(self, session_factory: Optional[Callable[[], aiohttp.ClientSession]] = None):
        self._session_factory = session_factory
        self._session: Optional[aiohttp.ClientSession] = None

    async def get(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            factory = self._session_factory or aiohttp.ClientSession
            self._session = factory()
        return self._session

    async def close(self) -> None:
        if self._session and not self._session.closed:
            await self._session.close()
        self._session = None


async def post_to_issuer(
    session: IssuerSession,
    url: str,
    *,
    provider: str,
    headers: Dict[str, str],
    timeout_sec: float,
) -> str:
    """
    POST to a credential issuer and return the response body.

    Any non-200 status, transport error or timeout becomes a
    ``CredentialIssuanceError`` (``CredentialTimeoutError`` for timeouts).
    """
    client = await session.get()
    try:
        async with client.post(
            url,
            headers=headers,
            timeout=aiohttp.ClientTimeout(total=timeout_sec),
        ) as resp:
            body = await resp.text()
            if resp.status != 200:
                _CREDENTIALS_ISSUED.labels(provider=provider, outcome="rejected").inc()
                logger.error(
                    "Credential issuer rejected request",
                    provider=provider,
                    status=resp.status,
                    body_preview=body[:128],
                )
                raise CredentialIssuanceError(
                    f"HTTP {resp.status}: Failed to fetch token",
                    provider=provider,
                    status=resp.status,
                )
    except asyncio.TimeoutError as exc:
        _CREDENTIALS_ISSUED.labels(provider=provider, outcome="timeout").inc()
        logger.error("Credential issuer timed out", provider=provider, timeout_sec=timeout_sec)
        raise CredentialTimeoutError(
            f"{provider} token request timed out after {timeout_sec:.1f}s", provider=provider
        ) from exc
    except aiohttp.ClientError as exc:
        _CREDENTIALS_ISSUED.labels(provider=provider, outcome="error").inc()
        logger.error("Credential issuer unreachable", provider=provider, error=str(exc))
        raise CredentialIssuanceError(f"{provider} token error: {exc}", provider=provider) from exc

    _CREDENTIALS_ISSUED.labels(provider=provider, outcome="issued").inc()
    return body
