"""
Error taxonomy shared by every component.

Adapters (credential issuers, generation backends, synthesis) translate transport
and HTTP failures into these types at their boundary. Router, normalizer and
scheduler logic only ever sees the kinds defined here.
"""

from __future__ import annotations

from typing import Optional


class LiveTranslateError(Exception):
    """Base class for all errors raised by livetranslate."""


# Configuration ------------------------------------------------------------------


class ConfigurationError(LiveTranslateError):
    """Missing or invalid configuration (e.g. an API key) for a provider or backend."""

    def __init__(self, message: str, *, provider: Optional[str] = None):
        super().__init__(message)
        self.provider = provider


# Credentials --------------------------------------------------------------------


class NoProviderConfigured(LiveTranslateError):
    """The credential registry is empty."""

    def __init__(self, message: str = "No token providers are available. Please check your configuration."):
        super().__init__(message)


class ProviderNotFound(LiveTranslateError):
    """A named provider was never registered or failed validation at startup."""

    def __init__(self, provider: str, available: Optional[list[str]] = None):
        self.provider = provider
        self.available = list(available or [])
        listing = ", ".join(self.available) if self.available else "none"
        super().__init__(
            f"Provider '{provider}' not found or not configured. Available providers: {listing}"
        )


class CredentialIssuanceError(LiveTranslateError):
    """The upstream issuer rejected the request or could not be reached."""

    def __init__(self, message: str, *, provider: Optional[str] = None, status: Optional[int] = None):
        super().__init__(message)
        self.provider = provider
        self.status = status


class CredentialTimeoutError(CredentialIssuanceError):
    """The upstream issuer did not answer within the configured timeout."""


# Generation ---------------------------------------------------------------------


class GenerationError(LiveTranslateError):
    """Base for text-generation backend failures."""

    def __init__(self, message: str, *, backend: Optional[str] = None, status: Optional[int] = None):
        super().__init__(message)
        self.backend = backend
        self.status = status


class TransientGenerationError(GenerationError):
    """HTTP 429, 5xx or a dropped connection; worth retrying with backoff."""


class GenerationTimeoutError(TransientGenerationError):
    """The backend did not answer within the request timeout."""


class PermanentGenerationError(GenerationError):
    """Any other 4xx or a malformed response; never retried."""


class ParseError(LiveTranslateError):
    """A single upstream chunk could not be parsed. Logged and skipped."""

    def __init__(self, message: str, *, raw: Optional[str] = None):
        super().__init__(message)
        self.raw = raw


class StreamCancelled(LiveTranslateError):
    """Raised inside the streaming machinery once its cancellation token fires."""


# Audio --------------------------------------------------------------------------


class SynthesisError(LiveTranslateError):
    """Text-to-speech request failed for one utterance."""

    def __init__(self, message: str, *, status: Optional[int] = None):
        super().__init__(message)
        self.status = status


class DecodeError(LiveTranslateError):
    """Synthesized audio could not be decoded to PCM for the output device."""


__all__ = [
    "LiveTranslateError",
    "ConfigurationError",
    "NoProviderConfigured",
    "ProviderNotFound",
    "CredentialIssuanceError",
    "CredentialTimeoutError",
    "GenerationError",
    "TransientGenerationError",
    "GenerationTimeoutError",
    "PermanentGenerationError",
    "ParseError",
    "StreamCancelled",
    "SynthesisError",
    "DecodeError",
]
