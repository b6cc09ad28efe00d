"""Deepgram temporary access-token issuer (``/v1/auth/grant``)."""

from __future__ import annotations

import json
import time
from typing import Callable, Optional

import aiohttp

from livetranslate.config import DeepgramConfig
from livetranslate.core.models import CredentialRecord
from livetranslate.credentials.base import IssuerSession, post_to_issuer
from livetranslate.errors import ConfigurationError, CredentialIssuanceError
from livetranslate.logging_config import get_logger

logger = get_logger(__name__)


class DeepgramSpeechProvider:
    provider_name = "deepgram-speech"

    def __init__(
        self,
        config: DeepgramConfig,
        *,
        timeout_sec: float = 10.0,
        session_factory: Optional[Callable[[], aiohttp.ClientSession]] = None,
    ):
        self._config = config
        self._timeout_sec = timeout_sec
        self._session = IssuerSession(session_factory)
        self.lifetime_sec = float(config.token_ttl_sec)
        self.validate_config()

    def validate_config(self) -> None:
        if not self._config.api_key:
            raise ConfigurationError("Missing DEEPGRAM_API_KEY in configuration", provider=self.provider_name)

    def is_configured(self) -> bool:
        try:
            self.validate_config()
            return True
        except ConfigurationError:
            return False

    async def get_credential(self) -> CredentialRecord:
        url = self._config.base_url.rstrip("/") + "/v1/auth/grant"
        body = await post_to_issuer(
            self._session,
            url,
            provider=self.provider_name,
            headers={
                "Authorization": f"Token {self._config.api_key}",
                "Content-Type": "application/json",
            },
            timeout_sec=self._timeout_sec,
        )
        try:
            data = json.loads(body)
            access_token = data["access_token"]
        except (json.JSONDecodeError, KeyError, TypeError) as exc:
            raise CredentialIssuanceError(
                f"Failed to get auth token: malformed grant response ({exc})",
                provider=self.provider_name,
            ) from exc

        # The grant response declares its own lifetime; fall back to configuration.
        lifetime = float(data.get("expires_in") or self.lifetime_sec)
        issued_at = time.time()
        logger.info("Deepgram access token granted", expires_in=lifetime)
        return CredentialRecord(
            provider_name=self.provider_name,
            secret=access_token,
            issued_at=issued_at,
            expires_at=issued_at + lifetime,
            secret_field="access_token",
        )

    async def close(self) -> None:
        await self._session.close()
