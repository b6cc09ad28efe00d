"""
Credential broker - registry of credential providers with a default.

The registry is filled once at startup and is read-only afterwards. Providers that
fail configuration validation are logged and skipped so partial availability never
stops the process.
"""

from __future__ import annotations

from typing import Any, Callable, Dict, List, Optional, Union

import aiohttp

from livetranslate.config import AppConfig
from livetranslate.core.models import CredentialRecord, ProviderRegistryEntry
from livetranslate.credentials.azure import AzureSpeechProvider
from livetranslate.credentials.base import CredentialProvider
from livetranslate.credentials.cache import CredentialCache
from livetranslate.credentials.deepgram import DeepgramSpeechProvider
from livetranslate.errors import ConfigurationError, NoProviderConfigured, ProviderNotFound
from livetranslate.logging_config import get_logger

logger = get_logger(__name__)

ProviderSource = Union[CredentialProvider, Callable[[], CredentialProvider]]


class CredentialBroker:
    """
    Returns short-lived credentials by provider name.

    When a ``CredentialCache`` is supplied, issuance goes through it. Each entry
    lives for the issued credential's lifetime, capped by the provider's declared
    one, minus ``ttl_safety_margin``.
    """

    def __init__(self, cache: Optional[CredentialCache] = None, ttl_safety_margin: float = 0.1):
        self._registry: Dict[str, ProviderRegistryEntry] = {}
        self._default: Optional[str] = None
        self._cache = cache
        self._ttl_safety_margin = ttl_safety_margin

    def register(self, source: ProviderSource) -> bool:
        """
        Register a provider instance, or a zero-argument factory that builds one.

        Factories raising ``ConfigurationError`` and instances reporting
        ``is_configured() == False`` are skipped. Returns True when registered.
        """
        try:
            adapter = source() if not hasattr(source, "get_credential") else source
        except ConfigurationError as exc:
            logger.warning("Skipping misconfigured credential provider", provider=exc.provider, error=str(exc))
            return False

        name = adapter.provider_name
        if not adapter.is_configured():
            logger.warning("Skipping misconfigured credential provider", provider=name)
            return False

        if name in self._registry:
            logger.warning("Credential provider already registered, overwriting", provider=name)
        self._registry[name] = ProviderRegistryEntry(name=name, adapter=adapter, is_configured=True)
        if self._default is None:
            self._default = name
        logger.info("Registered credential provider", provider=name, default=self._default == name)
        return True

    @property
    def default_provider(self) -> Optional[str]:
        return self._default

    def list_providers(self) -> List[str]:
        return list(self._registry.keys())

    def describe(self) -> Dict[str, Any]:
        providers = {
            name: {
                "name": name,
                "configured": entry.is_configured,
                "isDefault": name == self._default,
            }
            for name, entry in self._registry.items()
        }
        return {
            "providers": providers,
            "default": self._default,
            "totalProviders": len(providers),
        }

    def _resolve(self, provider_name: Optional[str]) -> ProviderRegistryEntry:
        if not self._registry:
            raise NoProviderConfigured()
        name = provider_name or self._default
        entry = self._registry.get(name) if name else None
        if entry is None:
            raise ProviderNotFound(provider_name or "", self.list_providers())
        return entry

    async def get_credential(self, provider_name: Optional[str] = None) -> CredentialRecord:
        entry = self._resolve(provider_name)
        adapter = entry.adapter
        if self._cache is None:
            return await adapter.get_credential()
        margin = 1.0 - self._ttl_safety_margin
        return await self._cache.get(
            entry.name,
            adapter.get_credential,
            adapter.lifetime_sec * margin,
            ttl_for=lambda record: record.lifetime_sec * margin,
        )

    async def close(self) -> None:
        for entry in self._registry.values():
            closer = getattr(entry.adapter, "close", None)
            if closer is not None:
                await closer()


def build_credential_broker(
    config: AppConfig,
    cache: Optional[CredentialCache] = None,
    session_factory: Optional[Callable[[], aiohttp.ClientSession]] = None,
) -> CredentialBroker:
    """Register every credential provider the configuration allows, Azure first."""
    broker = CredentialBroker(cache=cache, ttl_safety_margin=config.credentials.ttl_safety_margin)
    timeout = config.credentials.timeout_sec
    broker.register(
        lambda: AzureSpeechProvider(config.azure, timeout_sec=timeout, session_factory=session_factory)
    )
    broker.register(
        lambda: DeepgramSpeechProvider(config.deepgram, timeout_sec=timeout, session_factory=session_factory)
    )
    if not broker.list_providers():
        logger.warning("No credential providers configured; /token will fail until keys are set")
    return broker
