"""``GET /token``: short-lived credentials for browser and interpreter clients."""

from typing import Optional

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from livetranslate.credentials.broker import CredentialBroker
from livetranslate.errors import LiveTranslateError
from livetranslate.logging_config import get_logger

logger = get_logger(__name__)

router = APIRouter()


def _broker(request: Request) -> CredentialBroker:
    return request.app.state.broker


@router.get("/token")
async def get_token(request: Request, provider: Optional[str] = None):
    broker = _broker(request)
    available = broker.list_providers()
    try:
        record = await broker.get_credential(provider or None)
    except LiveTranslateError as exc:
        logger.error("Token service error", provider=provider, error=str(exc))
        return JSONResponse(status_code=500, content={"error": str(exc), "availableProviders": available})

    logger.info("Token issued", provider=record.provider_name)
    payload = record.to_payload()
    payload["availableProviders"] = available
    return payload


@router.get("/token/providers")
async def describe_providers(request: Request):
    return _broker(request).describe()
