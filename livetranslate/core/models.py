"""
Core data models for livetranslate.

Typed records exchanged between the credential layer, the streaming normalizer
and the audio scheduler.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Generic, Mapping, Optional, TypeVar, TYPE_CHECKING

if TYPE_CHECKING:  # pragma: no cover - typing only
    from livetranslate.credentials.base import CredentialProvider

K = TypeVar("K")
V = TypeVar("V")


@dataclass(frozen=True)
class CredentialRecord:
    """One short-lived credential issued by an external service."""
    provider_name: str
    secret: str
    issued_at: float  # unix seconds
    expires_at: float  # unix seconds
    auxiliary: Mapping[str, Any] = field(default_factory=dict)  # e.g. {"region": "westeurope"}
    # Response field that carries the secret ("token" for Azure, "access_token" for Deepgram)
    secret_field: str = "token"

    @property
    def lifetime_sec(self) -> float:
        return max(0.0, self.expires_at - self.issued_at)

    def to_payload(self) -> Dict[str, Any]:
        """Render the credential in the shape served by ``GET /token``."""
        payload: Dict[str, Any] = {self.secret_field: self.secret}
        payload.update(self.auxiliary)
        payload["provider"] = self.provider_name
        payload["expiresIn"] = int(round(self.lifetime_sec))
        payload["issuedAt"] = datetime.fromtimestamp(self.issued_at, tz=timezone.utc).isoformat()
        return payload


@dataclass
class ProviderRegistryEntry:
    """Registration of one credential provider in the broker."""
    name: str
    adapter: "CredentialProvider"
    is_configured: bool


@dataclass
class CacheEntry(Generic[K, V]):
    key: K
    value: V
    cached_at: float
    ttl: float

    def is_valid(self, now: float) -> bool:
        return (now - self.cached_at) < self.ttl


@dataclass(frozen=True)
class StreamEvent:
    """One incremental update of a translation stream.

    ``delta`` is always the literal suffix that ``accumulated_text`` gained over the
    previous event, except on a terminal fallback event which replaces the text.
    """
    sequence: int
    accumulated_text: str
    delta: str
    is_final: bool = False
    is_fallback: bool = False

    def to_sse_payload(self) -> Dict[str, Any]:
        return {
            "chunk": self.delta,
            "fullText": self.accumulated_text,
            "index": self.sequence,
            "isDone": self.is_final,
        }


@dataclass
class AudioSegment:
    """Decoded PCM scheduled on the output device clock."""
    pcm: bytes
    sample_rate: int
    scheduled_start: float
    duration: float
    text: str = ""
    language: Optional[str] = None

    @property
    def scheduled_end(self) -> float:
        return self.scheduled_start + self.duration


@dataclass
class QueueState:
    """The scheduler watermark plus the largest queued span seen in the current burst."""
    last_scheduled_end: float = 0.0
    max_observed_span: float = 0.0


@dataclass(frozen=True)
class QueueStatus:
    remaining: float
    max_observed_span: float
    is_active: bool
