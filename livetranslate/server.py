"""
HTTP surface: token issuance and translation streaming.

``create_app`` wires one shared credential broker (with its cache) and one
stream normalizer onto ``app.state``; route modules read them from there.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Callable, Optional

import aiohttp
from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from livetranslate import __version__
from livetranslate.api import token, translate
from livetranslate.config import AppConfig, load_config
from livetranslate.credentials.broker import CredentialBroker, build_credential_broker
from livetranslate.credentials.cache import CredentialCache
from livetranslate.generation.normalizer import StreamNormalizer
from livetranslate.generation.router import GenerationRouter, default_classifier
from livetranslate.logging_config import get_logger, set_correlation_id
from livetranslate.pipelines import build_generation_backends

logger = get_logger(__name__)

CORRELATION_HEADER = "X-Request-ID"


def build_normalizer(
    config: AppConfig,
    session_factory: Optional[Callable[[], aiohttp.ClientSession]] = None,
) -> StreamNormalizer:
    backends = build_generation_backends(config, session_factory=session_factory)
    router = GenerationRouter(backends, default_classifier(config.router))
    return StreamNormalizer(router, config.streaming)


def create_app(
    config: Optional[AppConfig] = None,
    *,
    broker: Optional[CredentialBroker] = None,
    normalizer: Optional[StreamNormalizer] = None,
    session_factory: Optional[Callable[[], aiohttp.ClientSession]] = None,
) -> FastAPI:
    config = config or load_config()
    if broker is None:
        broker = build_credential_broker(config, cache=CredentialCache(), session_factory=session_factory)
    if normalizer is None:
        normalizer = build_normalizer(config, session_factory=session_factory)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info(
            "livetranslate service starting",
            version=__version__,
            credential_providers=broker.list_providers(),
        )
        yield
        await broker.close()
        await normalizer.close()
        logger.info("livetranslate service stopped")

    app = FastAPI(title="livetranslate", version=__version__, lifespan=lifespan)
    app.state.config = config
    app.state.broker = broker
    app.state.normalizer = normalizer

    cors_origins = list(config.server.cors_origins)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_origins,
        allow_credentials="*" not in cors_origins,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def correlation_id_middleware(request: Request, call_next):
        request_id = set_correlation_id(request.headers.get(CORRELATION_HEADER) or None)
        response = await call_next(request)
        response.headers[CORRELATION_HEADER] = request_id
        return response

    app.include_router(token.router, tags=["token"])
    app.include_router(translate.router, tags=["translate"])

    @app.get("/health")
    async def health_check():
        return {
            "status": "healthy",
            "version": __version__,
            "credentialProviders": broker.list_providers(),
        }

    @app.get("/metrics")
    async def metrics():
        return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

    return app
