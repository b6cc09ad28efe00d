"""
Client-side access to the ``GET /token`` endpoint.

Interpreter sessions running away from the server fetch credentials over HTTP and
memoize them per provider key (``"default"`` when no provider is named). An entry
lives for the token's own ``expiresIn`` minus a safety margin, and never longer
than nine minutes.
"""

from __future__ import annotations

import asyncio
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

import aiohttp

from livetranslate.core.models import CredentialRecord
from livetranslate.credentials.base import IssuerSession
from livetranslate.credentials.cache import CredentialCache
from livetranslate.errors import CredentialIssuanceError, CredentialTimeoutError
from livetranslate.logging_config import get_logger

logger = get_logger(__name__)

DEFAULT_CLIENT_TTL_SEC = 540.0
_SECRET_FIELDS = ("token", "access_token")
_RESERVED_FIELDS = {"provider", "expiresIn", "issuedAt", "availableProviders", *_SECRET_FIELDS}


def record_from_payload(payload: Dict[str, Any]) -> CredentialRecord:
    """Rebuild a ``CredentialRecord`` from a ``GET /token`` response body."""
    secret_field = next((f for f in _SECRET_FIELDS if payload.get(f)), None)
    if secret_field is None:
        raise CredentialIssuanceError("Token response carries no token", provider=payload.get("provider"))
    issued_raw = payload.get("issuedAt")
    try:
        issued_at = datetime.fromisoformat(str(issued_raw).replace("Z", "+00:00")).timestamp()
    except ValueError as exc:
        raise CredentialIssuanceError(
            f"Token response has invalid issuedAt: {issued_raw!r}", provider=payload.get("provider")
        ) from exc
    auxiliary = {k: v for k, v in payload.items() if k not in _RESERVED_FIELDS}
    return CredentialRecord(
        provider_name=str(payload.get("provider") or ""),
        secret=str(payload[secret_field]),
        issued_at=issued_at,
        expires_at=issued_at + float(payload.get("expiresIn") or 0),
        auxiliary=auxiliary,
        secret_field=secret_field,
    )


class AccessTokenClient:
    def __init__(
        self,
        base_url: str,
        cache: Optional[CredentialCache] = None,
        *,
        ttl_sec: float = DEFAULT_CLIENT_TTL_SEC,
        ttl_safety_margin: float = 0.1,
        timeout_sec: float = 10.0,
        session_factory: Optional[Callable[[], aiohttp.ClientSession]] = None,
    ):
        self._base_url = base_url.rstrip("/")
        self._cache = cache if cache is not None else CredentialCache()
        self._ttl_sec = ttl_sec
        self._ttl_safety_margin = ttl_safety_margin
        self._timeout_sec = timeout_sec
        self._session = IssuerSession(session_factory)

    @staticmethod
    def _cache_key(provider: Optional[str]) -> str:
        return provider or "default"

    async def _fetch(self, provider: Optional[str]) -> Dict[str, Any]:
        url = f"{self._base_url}/token"
        params = {"provider": provider} if provider else None
        client = await self._session.get()
        try:
            async with client.get(
                url, params=params, timeout=aiohttp.ClientTimeout(total=self._timeout_sec)
            ) as resp:
                try:
                    data = await resp.json()
                except (aiohttp.ContentTypeError, ValueError):
                    data = {}
                if resp.status != 200:
                    message = data.get("error") if isinstance(data, dict) else None
                    raise CredentialIssuanceError(
                        message or f"HTTP {resp.status}: Failed to fetch token",
                        provider=provider,
                        status=resp.status,
                    )
        except asyncio.TimeoutError as exc:
            raise CredentialTimeoutError(
                f"Token endpoint timed out after {self._timeout_sec:.1f}s", provider=provider
            ) from exc
        except aiohttp.ClientError as exc:
            raise CredentialIssuanceError(f"Token endpoint unreachable: {exc}", provider=provider) from exc
        if not isinstance(data, dict):
            raise CredentialIssuanceError("Token endpoint returned a non-object body", provider=provider)
        return data

    async def get_token_payload(self, provider: Optional[str] = None) -> Dict[str, Any]:
        """Raw ``GET /token`` body, memoized under ``provider or "default"``."""
        return await self._cache.get(
            self._cache_key(provider),
            lambda: self._fetch(provider),
            self._ttl_sec,
            ttl_for=self._payload_ttl,
        )

    def _payload_ttl(self, payload: Dict[str, Any]) -> Optional[float]:
        expires_in = payload.get("expiresIn")
        if not isinstance(expires_in, (int, float)) or isinstance(expires_in, bool):
            return None
        return float(expires_in) * (1.0 - self._ttl_safety_margin)

    async def get_credential(self, provider: Optional[str] = None) -> CredentialRecord:
        payload = await self.get_token_payload(provider)
        return record_from_payload(payload)

    async def get_available_providers(self) -> List[str]:
        try:
            payload = await self.get_token_payload()
        except CredentialIssuanceError as exc:
            logger.warning("Could not list credential providers", error=str(exc))
            return []
        return list(payload.get("availableProviders") or [])

    def clear_cache(self, provider: Optional[str] = None) -> None:
        if provider is None:
            self._cache.invalidate()
        else:
            self._cache.invalidate(self._cache_key(provider))

    def is_cached(self, provider: str = "default") -> bool:
        return self._cache.is_cached(self._cache_key(provider))

    async def close(self) -> None:
        await self._session.close()
