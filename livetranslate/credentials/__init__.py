"""Short-lived credential issuance: providers, broker, cache and HTTP client."""

from livetranslate.credentials.azure import AzureSpeechProvider
from livetranslate.credentials.base import CredentialProvider
from livetranslate.credentials.broker import CredentialBroker, build_credential_broker
from livetranslate.credentials.cache import CredentialCache
from livetranslate.credentials.client import AccessTokenClient
from livetranslate.credentials.deepgram import DeepgramSpeechProvider

__all__ = [
    "AccessTokenClient",
    "AzureSpeechProvider",
    "CredentialBroker",
    "CredentialCache",
    "CredentialProvider",
    "DeepgramSpeechProvider",
    "build_credential_broker",
]
