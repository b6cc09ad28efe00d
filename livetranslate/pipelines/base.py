"""
Shared plumbing for text-generation backends.

Backends differ in how they stream text; each declares a ``style``:

- ``delta``: every yielded string is only the new text.
- ``accumulated``: every yielded string is the full text so far.
- ``batch``: a single yielded string carries the complete result.

The normalizer turns all three into one ``StreamEvent`` sequence. HTTP and
transport failures are translated here into the generation error taxonomy so
nothing aiohttp-specific leaks past the adapter boundary.
"""

from __future__ import annotations

import asyncio
import json
from typing import Any, AsyncIterator, Callable, Dict, Optional, Protocol, runtime_checkable

import aiohttp

from livetranslate.errors import (
    GenerationTimeoutError,
    ParseError,
    PermanentGenerationError,
    TransientGenerationError,
)
from livetranslate.logging_config import get_logger

logger = get_logger(__name__)

STYLE_DELTA = "delta"
STYLE_ACCUMULATED = "accumulated"
STYLE_BATCH = "batch"


@runtime_checkable
class GenerationBackend(Protocol):
    backend_id: str
    style: str

    def generate(self, instruction: str, timeout_sec: float) -> AsyncIterator[str]: ...


def is_transient_status(status: int) -> bool:
    return status == 429 or status >= 500


def generation_error_for_status(status: int, body: str, backend: str):
    """Map an HTTP failure status to the matching generation error instance."""
    message = f"{backend} request failed (status {status}): {(body or '')[:256]}"
    if is_transient_status(status):
        return TransientGenerationError(message, backend=backend, status=status)
    return PermanentGenerationError(message, backend=backend, status=status)


def parse_sse_data(data: str) -> Dict[str, Any]:
    """Decode one SSE ``data:`` payload into a JSON object."""
    try:
        payload = json.loads(data)
    except json.JSONDecodeError as exc:
        raise ParseError(f"Malformed SSE payload: {exc}", raw=data) from exc
    if not isinstance(payload, dict):
        raise ParseError("SSE payload is not a JSON object", raw=data)
    return payload


async def iter_sse_payloads(content: Any, backend: str) -> AsyncIterator[Dict[str, Any]]:
    """
    Yield JSON objects from an SSE byte stream.

    ``content`` is anything that async-iterates lines of bytes (an aiohttp
    ``StreamReader``). Multi-line ``data:`` fields are joined per event; the
    ``[DONE]`` sentinel ends the stream; malformed payloads are logged and skipped.
    """
    data_lines: list[str] = []

    def _flush() -> Optional[str]:
        if not data_lines:
            return None
        data = "\n".join(data_lines)
        data_lines.clear()
        return data

    async for raw in content:
        line = raw.decode("utf-8", errors="replace") if isinstance(raw, (bytes, bytearray)) else str(raw)
        line = line.rstrip("\r\n")
        if line.startswith("data:"):
            data_lines.append(line[5:].lstrip(" "))
            continue
        if line.strip():
            # event:/id:/retry: fields and comments carry nothing we need
            continue
        data = _flush()
        if data is None:
            continue
        if data.strip() == "[DONE]":
            return
        try:
            yield parse_sse_data(data)
        except ParseError as exc:
            logger.warning("Skipping malformed stream chunk", backend=backend, error=str(exc), raw=(exc.raw or "")[:120])

    data = _flush()
    if data is not None and data.strip() != "[DONE]":
        try:
            yield parse_sse_data(data)
        except ParseError as exc:
            logger.warning("Skipping malformed stream chunk", backend=backend, error=str(exc), raw=(exc.raw or "")[:120])


class HttpGenerationBackend:
    """Base for aiohttp-backed backends: session handling and error translation."""

    backend_id = "http"
    style = STYLE_DELTA

    def __init__(self, *, session_factory: Optional[Callable[[], aiohttp.ClientSession]] = None):
        self._session_factory = session_factory
        self._session: Optional[aiohttp.ClientSession] = None

    async def _ensure_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            factory = self._session_factory or aiohttp.ClientSession
            self._session = factory()
        return self._session

    async def stop(self) -> None:
        if self._session and not self._session.closed:
            await self._session.close()
        self._session = None

    @staticmethod
    def _stream_timeout(timeout_sec: float) -> aiohttp.ClientTimeout:
        # Bound connect and every read; the stream as a whole may run longer.
        return aiohttp.ClientTimeout(total=None, sock_connect=timeout_sec, sock_read=timeout_sec)

    async def _raise_for_status(self, resp: Any) -> None:
        if resp.status >= 400:
            body = await resp.text()
            logger.error(
                "Generation backend returned an error",
                backend=self.backend_id,
                status=resp.status,
                body_preview=(body or "")[:256],
            )
            raise generation_error_for_status(resp.status, body, self.backend_id)

    def _timeout_error(self, timeout_sec: float, exc: BaseException) -> GenerationTimeoutError:
        logger.warning("Generation request timed out", backend=self.backend_id, timeout_sec=timeout_sec)
        return GenerationTimeoutError(
            f"{self.backend_id} did not respond within {timeout_sec:.1f}s", backend=self.backend_id
        )

    def _connection_error(self, exc: aiohttp.ClientError) -> TransientGenerationError:
        logger.warning("Generation backend connection error", backend=self.backend_id, error=str(exc))
        return TransientGenerationError(f"{self.backend_id} connection error: {exc}", backend=self.backend_id)

    async def _stream_post(
        self,
        url: str,
        *,
        headers: Dict[str, str],
        payload: Dict[str, Any],
        timeout_sec: float,
    ) -> AsyncIterator[Dict[str, Any]]:
        """POST ``payload`` and yield the SSE JSON objects of the response."""
        session = await self._ensure_session()
        try:
            async with session.post(
                url, headers=headers, json=payload, timeout=self._stream_timeout(timeout_sec)
            ) as resp:
                await self._raise_for_status(resp)
                async for event in iter_sse_payloads(resp.content, self.backend_id):
                    yield event
        except asyncio.TimeoutError as exc:
            raise self._timeout_error(timeout_sec, exc) from exc
        except aiohttp.ClientError as exc:
            raise self._connection_error(exc) from exc

    async def _post_json(
        self,
        url: str,
        *,
        headers: Dict[str, str],
        payload: Dict[str, Any],
        timeout_sec: float,
    ) -> Dict[str, Any]:
        session = await self._ensure_session()
        try:
            async with session.post(
                url, headers=headers, json=payload, timeout=aiohttp.ClientTimeout(total=timeout_sec)
            ) as resp:
                await self._raise_for_status(resp)
                try:
                    body = await resp.json()
                except (aiohttp.ContentTypeError, ValueError) as exc:
                    raise PermanentGenerationError(
                        f"{self.backend_id} returned a non-JSON body", backend=self.backend_id, status=resp.status
                    ) from exc
        except asyncio.TimeoutError as exc:
            raise self._timeout_error(timeout_sec, exc) from exc
        except aiohttp.ClientError as exc:
            raise self._connection_error(exc) from exc
        if not isinstance(body, dict):
            raise PermanentGenerationError(f"{self.backend_id} returned a non-object body", backend=self.backend_id)
        return body
