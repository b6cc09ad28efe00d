"""Azure Cognitive Services Speech token issuer."""

from __future__ import annotations

import time
from typing import Callable, Optional

import aiohttp

from livetranslate.config import AzureSpeechConfig
from livetranslate.core.models import CredentialRecord
from livetranslate.credentials.base import IssuerSession, post_to_issuer
from livetranslate.errors import ConfigurationError, CredentialIssuanceError
from livetranslate.logging_config import get_logger

logger = get_logger(__name__)


class AzureSpeechProvider:
    """Issues Azure Speech authorization tokens from a subscription key."""

    provider_name = "azure-speech"

    def __init__(
        self,
        config: AzureSpeechConfig,
        *,
        timeout_sec: float = 10.0,
        session_factory: Optional[Callable[[], aiohttp.ClientSession]] = None,
    ):
        self._config = config
        self._timeout_sec = timeout_sec
        self._session = IssuerSession(session_factory)
        self.lifetime_sec = float(config.token_lifetime_sec)
        self.validate_config()

    def validate_config(self) -> None:
        if not self._config.region or not self._config.api_key:
            raise ConfigurationError(
                "Missing AZURE_REGION or AZURE_API_KEY in configuration",
                provider=self.provider_name,
            )

    def is_configured(self) -> bool:
        try:
            self.validate_config()
            return True
        except ConfigurationError:
            return False

    @property
    def region(self) -> str:
        return self._config.region or ""

    @property
    def token_url(self) -> str:
        return f"https://{self._config.region}.api.cognitive.microsoft.com/sts/v1.0/issuetoken"

    async def get_credential(self) -> CredentialRecord:
        logger.info("Fetching Azure Speech token", region=self._config.region)
        token = await post_to_issuer(
            self._session,
            self.token_url,
            provider=self.provider_name,
            headers={"Ocp-Apim-Subscription-Key": self._config.api_key or ""},
            timeout_sec=self._timeout_sec,
        )
        token = token.strip()
        if not token:
            raise CredentialIssuanceError("Azure issuer returned an empty token", provider=self.provider_name)
        issued_at = time.time()
        return CredentialRecord(
            provider_name=self.provider_name,
            secret=token,
            issued_at=issued_at,
            expires_at=issued_at + self.lifetime_sec,
            auxiliary={"region": self._config.region},
            secret_field="token",
        )

    async def close(self) -> None:
        await self._session.close()
