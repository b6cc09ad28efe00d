"""Gemini ``streamGenerateContent`` backend (accumulated-style)."""

from __future__ import annotations

from typing import Any, AsyncIterator, Callable, Dict, Optional

import aiohttp

from livetranslate.config import GeminiConfig
from livetranslate.errors import ConfigurationError, ParseError, PermanentGenerationError
from livetranslate.logging_config import get_logger
from livetranslate.pipelines.base import (
    STYLE_ACCUMULATED,
    HttpGenerationBackend,
    generation_error_for_status,
)

logger = get_logger(__name__)


def extract_candidate_text(payload: Dict[str, Any]) -> str:
    """Concatenate the text parts of the first candidate in one stream chunk."""
    candidates = payload.get("candidates")
    if candidates is None:
        return ""
    if not isinstance(candidates, list) or not candidates or not isinstance(candidates[0], dict):
        raise ParseError("Gemini chunk has malformed candidates", raw=str(payload)[:200])
    content = candidates[0].get("content") or {}
    if not isinstance(content, dict):
        raise ParseError("Gemini candidate content is not an object", raw=str(payload)[:200])
    parts = content.get("parts") or []
    if not isinstance(parts, list):
        raise ParseError("Gemini candidate parts is not a list", raw=str(payload)[:200])
    texts = []
    for part in parts:
        if not isinstance(part, dict):
            continue
        text = part.get("text", "")
        if not isinstance(text, str):
            raise ParseError("Gemini part text is not a string", raw=str(payload)[:200])
        texts.append(text)
    return "".join(texts)


class GeminiStreamBackend(HttpGenerationBackend):
    """
    Streams Gemini output and yields the accumulated text after every chunk.

    Gemini sends only the new parts per chunk; the adapter accumulates them so the
    backend presents the full-text-so-far convention to the normalizer.
    """

    backend_id = "gemini"
    style = STYLE_ACCUMULATED

    def __init__(
        self,
        config: GeminiConfig,
        *,
        session_factory: Optional[Callable[[], aiohttp.ClientSession]] = None,
    ):
        super().__init__(session_factory=session_factory)
        if not config.api_key:
            raise ConfigurationError("Gemini backend requires GEMINI_API_KEY", provider=self.backend_id)
        self._config = config

    @property
    def stream_url(self) -> str:
        base = self._config.base_url.rstrip("/")
        return f"{base}/models/{self._config.model}:streamGenerateContent?alt=sse"

    async def generate(self, instruction: str, timeout_sec: float) -> AsyncIterator[str]:
        payload = {"contents": [{"parts": [{"text": instruction}]}]}
        headers = {
            "Content-Type": "application/json",
            "x-goog-api-key": self._config.api_key or "",
        }
        full_text = ""
        async for chunk in self._stream_post(
            self.stream_url, headers=headers, payload=payload, timeout_sec=timeout_sec
        ):
            if "error" in chunk:
                error = chunk.get("error") or {}
                if not isinstance(error, dict):
                    error = {"message": error}
                code = error.get("code")
                message = str(error.get("message", "unknown"))
                logger.error("Gemini stream reported an error", code=code, error=message)
                if isinstance(code, int):
                    raise generation_error_for_status(code, message, self.backend_id)
                raise PermanentGenerationError(f"gemini stream error: {message}", backend=self.backend_id)
            try:
                text = extract_candidate_text(chunk)
            except ParseError as exc:
                logger.warning("Skipping malformed Gemini chunk", error=str(exc))
                continue
            if text:
                full_text += text
                yield full_text
