"""FastAPI application exposing the transcription gateway over HTTP.

WHY: The recording client posts a captured clip and expects the transcript
(or an error message) in the response. FastAPI gives request parsing,
multipart handling, and OpenAPI docs for free.

HOW: create_app() builds the app around a TranscriptionGateway. POST
/upload reads the ``audio`` file part and optional ``provider`` field,
runs the gateway in a task, and watches the connection while it runs: if
the client disconnects, the task is cancelled so no polling loop outlives
its caller. The gateway's normalized response is returned as JSON with the
matching status code.

RULES:
- The ``audio`` part is optional at the schema level so that a missing
  file gets the uniform "Please upload a file" error body
- Error bodies are always ``{"error": "..."}``
- CORS is enabled for the configured origins (the browser client posts
  cross-origin)
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable
from contextlib import asynccontextmanager
from typing import Annotated, Optional, TypeVar

from fastapi import FastAPI, File, Form, Request, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse

from transcription_gateway import __version__
from transcription_gateway.gateway import TranscriptionGateway
from transcription_gateway.providers import PROVIDERS
from transcription_gateway.providers.base import PollingProvider
from transcription_gateway.server.models import (
    ErrorResponse,
    HealthResponse,
    ProviderInfo,
    ProviderListResponse,
    TranscriptionResponse,
)

logger = logging.getLogger(__name__)

DISCONNECT_CHECK_INTERVAL_S = 0.5
CLIENT_CLOSED_REQUEST = 499

T = TypeVar("T")


async def run_until_disconnected(
    request: Request,
    work: Awaitable[T],
    check_interval: float = DISCONNECT_CHECK_INTERVAL_S,
) -> Optional[T]:
    """Await ``work``, cancelling it if the client disconnects first.

    Returns the result of ``work``, or None when the client went away.
    """
    task = asyncio.ensure_future(work)
    try:
        while True:
            done, _ = await asyncio.wait({task}, timeout=check_interval)
            if done:
                return task.result()
            if await request.is_disconnected():
                logger.info("Client disconnected, cancelling transcription")
                task.cancel()
                try:
                    await task
                except asyncio.CancelledError:
                    pass
                return None
    except asyncio.CancelledError:
        task.cancel()
        raise


def create_app(gateway: Optional[TranscriptionGateway] = None) -> FastAPI:
    """Build the FastAPI app around ``gateway`` (a default one if omitted)."""
    gateway = gateway or TranscriptionGateway()
    settings = gateway.settings

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info(
            "Transcription gateway %s ready (providers: %s, default: %s)",
            __version__,
            ", ".join(s.value for s in PROVIDERS),
            settings.default_provider,
        )
        yield

    app = FastAPI(
        lifespan=lifespan,
        title="Transcription Gateway API",
        description=(
            "Upload a recorded audio clip and receive its transcript. The "
            "gateway dispatches the audio to the selected speech-to-text "
            "provider, waits for completion, and returns normalized text."
        ),
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
    )
    app.state.gateway = gateway

    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(settings.cors_origins),
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get(
        "/",
        response_class=PlainTextResponse,
        tags=["health"],
        summary="Greeting",
        description="Plain-text greeting confirming the server is up.",
    )
    async def root() -> str:
        return "Transcription gateway is running"

    @app.post(
        "/upload",
        response_model=TranscriptionResponse,
        tags=["transcriptions"],
        summary="Transcribe an audio clip",
        description=(
            "Upload an audio clip as the 'audio' multipart field and, "
            "optionally, choose a provider. Blocks until the transcript is "
            "ready and returns it, or returns an error message."
        ),
        responses={
            400: {"model": ErrorResponse, "description": "Missing audio or unknown provider"},
            415: {"model": ErrorResponse, "description": "Unsupported audio content type"},
            500: {"model": ErrorResponse, "description": "Local staging or configuration failure"},
            502: {"model": ErrorResponse, "description": "Provider rejected or failed the audio"},
            504: {"model": ErrorResponse, "description": "Transcription did not finish in time"},
        },
    )
    async def upload(
        request: Request,
        audio: Annotated[
            Optional[UploadFile],
            File(description="Recorded audio clip to transcribe"),
        ] = None,
        provider: Annotated[
            Optional[str],
            Form(description="Provider selector: 'polling-provider' or 'sync-provider'."),
        ] = None,
    ) -> JSONResponse:
        data = None
        content_type = None
        if audio is not None:
            data = await audio.read()
            content_type = audio.content_type

        response = await run_until_disconnected(
            request,
            request.app.state.gateway.transcribe(data, content_type, provider),
        )
        if response is None:
            return JSONResponse(
                status_code=CLIENT_CLOSED_REQUEST,
                content={"error": "Client disconnected"},
            )
        return JSONResponse(status_code=response.status_code, content=response.body())

    @app.get(
        "/providers",
        response_model=ProviderListResponse,
        tags=["providers"],
        summary="List transcription providers",
        description="Returns every registered provider selector and how it is driven.",
    )
    async def list_providers() -> ProviderListResponse:
        providers = []
        for selector, provider_cls in PROVIDERS.items():
            providers.append(ProviderInfo(
                selector=selector.value,
                name=provider_cls.display_name,
                protocol="polling" if issubclass(provider_cls, PollingProvider) else "synchronous",
                staging=provider_cls.staging_mode.value,
                default=selector.value == settings.default_provider,
            ))
        return ProviderListResponse(providers=providers)

    @app.get(
        "/health",
        response_model=HealthResponse,
        tags=["health"],
        summary="Health check",
        description="Liveness check for load balancers and orchestrators.",
    )
    async def health_check() -> HealthResponse:
        return HealthResponse(status="ok", version=__version__)

    return app


def run_api(host: Optional[str] = None, port: Optional[int] = None) -> None:
    """Run the API with uvicorn."""
    import uvicorn

    from transcription_gateway.config import HOST, PORT

    uvicorn.run(create_app(), host=host or HOST, port=port or PORT)
