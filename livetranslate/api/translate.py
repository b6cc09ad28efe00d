"""
Translation endpoints.

``POST /translate/stream`` answers with an event-stream body of ``data: <json>``
lines: one ``{chunk, fullText, index, isDone}`` per update, then
``{complete, final}``, then ``data: [DONE]``. ``POST /translate`` returns the
finished translation as one JSON document.
"""

from __future__ import annotations

import json
from contextlib import aclosing
from typing import Any, AsyncIterator, Dict, Optional, Tuple

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse, StreamingResponse

from livetranslate.core.cancellation import CancellationToken
from livetranslate.core.languages import language_name
from livetranslate.generation.normalizer import StreamNormalizer
from livetranslate.logging_config import get_logger

logger = get_logger(__name__)

router = APIRouter()

REQUIRED_FIELDS = ("text", "langCode1", "langCode2")
SSE_HEADERS = {"Cache-Control": "no-cache", "Connection": "keep-alive"}


def sse_line(payload: Dict[str, Any]) -> str:
    return f"data: {json.dumps(payload, ensure_ascii=False)}\n\n"


SSE_DONE = "data: [DONE]\n\n"


async def _read_request(request: Request) -> Tuple[Optional[Dict[str, str]], Optional[JSONResponse]]:
    """Parse and validate the JSON body; on failure the second item is the 400 response."""
    try:
        body = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        return None, JSONResponse(
            status_code=400, content={"error": "Invalid JSON in request body", "details": str(exc)}
        )
    if not isinstance(body, dict):
        body = {}
    received = {name: bool(body.get(name)) for name in REQUIRED_FIELDS}
    if not all(received.values()):
        return None, JSONResponse(
            status_code=400,
            content={
                "error": "Missing required parameters",
                "required": list(REQUIRED_FIELDS),
                "received": received,
            },
        )
    return {name: str(body[name]) for name in REQUIRED_FIELDS}, None


def _normalizer(request: Request) -> StreamNormalizer:
    return request.app.state.normalizer


async def _event_stream(
    normalizer: StreamNormalizer, text: str, source: str, target: str
) -> AsyncIterator[str]:
    cancel = CancellationToken()
    try:
        async with aclosing(normalizer.iter_events(text, source, target, cancel)) as events:
            async for event in events:
                yield sse_line(event.to_sse_payload())
        yield sse_line({"complete": True, "final": True})
    except Exception as exc:
        logger.exception("Translation streaming error", target_lang=target)
        yield sse_line({"error": "Translation failed", "message": str(exc)})
    finally:
        cancel.cancel("response closed")
    yield SSE_DONE


@router.post("/translate/stream")
async def translate_stream(request: Request):
    params, error = await _read_request(request)
    if error is not None:
        return error
    logger.info(
        "Streaming translation requested",
        source_lang=params["langCode1"],
        target_lang=params["langCode2"],
        chars=len(params["text"]),
    )
    return StreamingResponse(
        _event_stream(_normalizer(request), params["text"], params["langCode1"], params["langCode2"]),
        media_type="text/event-stream",
        headers=SSE_HEADERS,
    )


@router.post("/translate")
async def translate(request: Request):
    params, error = await _read_request(request)
    if error is not None:
        return error
    text, source, target = params["text"], params["langCode1"], params["langCode2"]

    final = None
    async with aclosing(_normalizer(request).iter_events(text, source, target)) as events:
        async for event in events:
            if event.is_final:
                final = event
    if final is None or final.is_fallback:
        message = final.accumulated_text if final is not None else "No translation produced"
        return JSONResponse(
            status_code=500,
            content={"error": "Translation processing failed", "message": message},
        )

    return {
        "success": True,
        "translation": final.accumulated_text,
        "sourceLanguage": source,
        "targetLanguage": target,
        "sourceLanguageName": language_name(source),
        "targetLanguageName": language_name(target),
        "originalText": text,
    }
