"""Whisper adapter: the synchronous request/response provider.

WHY: OpenAI-compatible transcription endpoints return the transcript in the
response to a single multipart upload, so there is no job to wait on.

HOW: The payload is staged to a file (the endpoint infers the audio format
from the uploaded filename's extension), read back in a worker thread, and
sent as the ``file`` part of POST /audio/transcriptions. A 2xx answer
becomes Completed(text); any failure becomes Failed(PROVIDER).
"""

from __future__ import annotations

import logging
from typing import Dict, Optional

import httpx

from transcription_gateway.config import WHISPER_BASE_URL, WHISPER_MODEL, load_api_key
from transcription_gateway.errors import ErrorKind, ProviderAPIError
from transcription_gateway.providers.base import DEFAULT_TIMEOUT, SynchronousProvider
from transcription_gateway.providers.models import (
    Completed,
    Failed,
    Immediate,
    ProviderSelector,
    SubmitOutcome,
)
from transcription_gateway.staging import StagedPayload, StagingMode

logger = logging.getLogger(__name__)

API_KEY_ENV = "OPENAI_API_KEY"


class WhisperProvider(SynchronousProvider):
    """Async adapter for an OpenAI-compatible /audio/transcriptions endpoint.

    Args:
        api_key: Defaults to OPENAI_API_KEY from the environment.
        base_url: Defaults to WHISPER_BASE_URL from config.
        model: Defaults to WHISPER_MODEL from config.
        language: Optional ISO 639-1 hint.
        transport: Optional httpx transport for tests.
    """

    selector = ProviderSelector.SYNC
    staging_mode = StagingMode.FILE_BACKED
    display_name = "Whisper"

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        model: Optional[str] = None,
        language: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: httpx.Timeout = DEFAULT_TIMEOUT,
    ) -> None:
        super().__init__(
            api_key=api_key or load_api_key(API_KEY_ENV),
            base_url=base_url or WHISPER_BASE_URL,
            transport=transport,
            timeout=timeout,
        )
        self._model = model or WHISPER_MODEL
        self._language = language

    def _auth_headers(self) -> Dict[str, str]:
        return {"Authorization": "Bearer {}".format(self._api_key)}

    async def transcribe(self, staged: StagedPayload) -> str:
        """Send the staged file and return the transcript text."""
        form = {"model": self._model, "response_format": "json"}
        if self._language:
            form["language"] = self._language

        audio = await staged.load()
        data = await self._request(
            "POST",
            "/audio/transcriptions",
            files={"file": (staged.filename, audio, staged.content_type)},
            data=form,
        )

        if not isinstance(data, dict) or "text" not in data:
            raise ProviderAPIError(self.display_name, None, "Response has no text field")
        return (data["text"] or "").strip()

    async def submit(self, staged: StagedPayload) -> SubmitOutcome:
        try:
            text = await self.transcribe(staged)
        except ProviderAPIError as exc:
            logger.warning("Whisper transcription failed: %s", exc)
            return Immediate(Failed(ErrorKind.PROVIDER, exc.message))
        return Immediate(Completed(text))
