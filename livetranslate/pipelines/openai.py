"""
OpenAI generation backends.

``OpenAIResponsesBackend`` streams the Responses API (delta-style).
``OpenAIChatBackend`` calls Chat Completions without streaming (batch-style); the
normalizer simulates incremental delivery for it.
"""

from __future__ import annotations

from typing import Any, AsyncIterator, Callable, Dict, Optional

import aiohttp

from livetranslate.config import OpenAIConfig
from livetranslate.errors import (
    ConfigurationError,
    ParseError,
    PermanentGenerationError,
    TransientGenerationError,
)
from livetranslate.logging_config import get_logger
from livetranslate.pipelines.base import STYLE_BATCH, STYLE_DELTA, HttpGenerationBackend

logger = get_logger(__name__)

_TRANSIENT_STREAM_ERROR_CODES = {"rate_limit_exceeded", "server_error", "server_is_overloaded"}


def _make_http_headers(config: OpenAIConfig) -> Dict[str, str]:
    headers = {
        "Authorization": f"Bearer {config.api_key}",
        "Content-Type": "application/json",
        "User-Agent": "livetranslate/1.0",
    }
    if config.organization:
        headers["OpenAI-Organization"] = config.organization
    return headers


class _OpenAIBackend(HttpGenerationBackend):
    def __init__(
        self,
        config: OpenAIConfig,
        *,
        session_factory: Optional[Callable[[], aiohttp.ClientSession]] = None,
    ):
        super().__init__(session_factory=session_factory)
        if not config.api_key:
            raise ConfigurationError("OpenAI backend requires OPENAI_API_KEY", provider=self.backend_id)
        self._config = config

    def _url(self, path: str) -> str:
        return self._config.base_url.rstrip("/") + path


class OpenAIResponsesBackend(_OpenAIBackend):
    backend_id = "openai"
    style = STYLE_DELTA

    async def generate(self, instruction: str, timeout_sec: float) -> AsyncIterator[str]:
        payload = {
            "model": self._config.responses_model,
            "input": [{"role": "user", "content": instruction}],
            "stream": True,
        }
        logger.debug("OpenAI responses stream starting", model=self._config.responses_model)
        async for event in self._stream_post(
            self._url("/responses"),
            headers=_make_http_headers(self._config),
            payload=payload,
            timeout_sec=timeout_sec,
        ):
            kind = event.get("type")
            if kind == "response.output_text.delta":
                delta = event.get("delta") or ""
                if not isinstance(delta, str):
                    err = ParseError("Responses delta is not a string", raw=str(event)[:200])
                    logger.warning("Skipping malformed OpenAI delta", error=str(err), raw=err.raw)
                    continue
                if delta:
                    yield delta
            elif kind in ("error", "response.failed"):
                raise self._stream_error(event)
            elif kind == "response.completed":
                return

    def _stream_error(self, event: Dict[str, Any]):
        response = event.get("response")
        error = event.get("error") or (response.get("error") if isinstance(response, dict) else None) or {}
        if not isinstance(error, dict):
            error = {"message": str(error)}
        code = str(error.get("code") or event.get("code") or "")
        message = error.get("message") or event.get("message") or "stream error"
        logger.error("OpenAI stream reported an error", code=code, error=message)
        if code in _TRANSIENT_STREAM_ERROR_CODES:
            return TransientGenerationError(f"openai stream error: {message}", backend=self.backend_id)
        return PermanentGenerationError(f"openai stream error: {message}", backend=self.backend_id)


class OpenAIChatBackend(_OpenAIBackend):
    backend_id = "openai_chat"
    style = STYLE_BATCH

    async def generate(self, instruction: str, timeout_sec: float) -> AsyncIterator[str]:
        payload = {
            "model": self._config.chat_model,
            "messages": [{"role": "user", "content": instruction}],
        }
        body = await self._post_json(
            self._url("/chat/completions"),
            headers=_make_http_headers(self._config),
            payload=payload,
            timeout_sec=timeout_sec,
        )
        choices = body.get("choices") or []
        if not isinstance(choices, list) or not choices or not isinstance(choices[0], dict):
            raise PermanentGenerationError("OpenAI chat completion returned no choices", backend=self.backend_id)
        message = choices[0].get("message") or {}
        content = message.get("content") if isinstance(message, dict) else None
        if not isinstance(content, str):
            raise PermanentGenerationError("OpenAI chat completion has no text content", backend=self.backend_id)
        logger.info("OpenAI chat completion received", model=self._config.chat_model, preview=content[:80])
        yield content
