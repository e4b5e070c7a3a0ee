"""Transcription gateway: one request in, one normalized response out.

WHY: The HTTP route, the CLI, and tests all need the same end-to-end flow:
validate the upload, pick the adapter, stage the audio, submit it, wait for
pending jobs, normalize the outcome, and always clean up. Keeping it in one
place means every caller gets the same guarantees.

HOW: TranscriptionGateway.transcribe() runs the flow inside a single
``try``. The adapter and the staged payload are both entered with
``async with`` so their cleanup runs before the response is built, on
success, on failure, and on cancellation. Every failure becomes a
GatewayResponse through normalize() and is logged with the request id,
provider, stage, and raw detail.

RULES:
- Exactly one GatewayResponse per call; errors never escape transcribe()
- asyncio.CancelledError is re-raised after cleanup (client went away)
- No provider call happens if validation or staging fails
- One adapter instance per request; nothing mutable is shared
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from collections.abc import Callable, Mapping
from typing import Optional, Union

from transcription_gateway.config import GatewaySettings
from transcription_gateway.errors import GatewayError, UnknownProviderError
from transcription_gateway.normalizer import GatewayResponse, normalize
from transcription_gateway.providers import PROVIDERS, resolve_selector
from transcription_gateway.providers.base import BaseProvider, PollingProvider
from transcription_gateway.providers.models import (
    Immediate,
    ProviderSelector,
    TranscriptionResult,
)
from transcription_gateway.staging import AudioPayload, PayloadStager
from transcription_gateway.waiter import wait_until_complete

logger = logging.getLogger(__name__)

ProviderFactory = Callable[[], BaseProvider]


class TranscriptionGateway:
    """Dispatches audio to a provider adapter and normalizes the outcome.

    Args:
        settings: Process-wide settings. Defaults to GatewaySettings.from_env().
        factories: Per-selector adapter factories. Defaults to the PROVIDERS
            registry classes (constructed with credentials from the environment).
        stager: Payload stager. Defaults to one using settings.staging_dir.
    """

    def __init__(
        self,
        settings: Optional[GatewaySettings] = None,
        factories: Optional[Mapping[ProviderSelector, ProviderFactory]] = None,
        stager: Optional[PayloadStager] = None,
    ) -> None:
        self.settings = settings or GatewaySettings.from_env()
        self._factories = dict(factories) if factories is not None else dict(PROVIDERS)
        self.stager = stager or PayloadStager(self.settings.staging_dir)

    async def transcribe(
        self,
        audio: Optional[bytes],
        content_type: Optional[str] = None,
        provider: Optional[Union[str, ProviderSelector]] = None,
        on_status: Optional[Callable[[str], None]] = None,
    ) -> GatewayResponse:
        """Transcribe ``audio`` with the selected provider.

        Args:
            audio: Raw audio bytes; None or empty yields "Please upload a file".
            content_type: Declared MIME type of ``audio``.
            provider: Provider selector. When omitted the configured default
                provider is used and the substitution is logged.
            on_status: Optional callback for human-readable progress lines.

        Returns:
            A GatewayResponse carrying either text or an error message.
        """
        request_id = uuid.uuid4().hex[:12]
        stage = "validate"
        selector_name = provider.value if isinstance(provider, ProviderSelector) else provider

        try:
            payload = AudioPayload.from_upload(audio, content_type)
            if not selector_name:
                selector_name = self.settings.default_provider
                logger.info(
                    "[%s] No provider requested, using default %s", request_id, selector_name
                )
            selector = resolve_selector(selector_name)
            factory = self._factories.get(selector)
            if factory is None:
                raise UnknownProviderError(
                    selector.value, [s.value for s in self._factories]
                )

            logger.info(
                "[%s] Transcribing %d bytes (%s) with %s",
                request_id,
                payload.size,
                payload.content_type,
                selector.value,
            )

            stage = "configure"
            adapter = factory()

            async with adapter:
                stage = "stage"
                async with self.stager.staged(payload, adapter.staging_mode) as staged:
                    stage = "submit"
                    if on_status:
                        on_status("Submitting audio to {}...".format(selector.value))
                    outcome = await adapter.submit(staged)

                    if isinstance(outcome, Immediate):
                        result: TranscriptionResult = outcome.result
                    else:
                        stage = "wait"
                        if not isinstance(adapter, PollingProvider):
                            raise TypeError(
                                "{} returned a pending job but cannot be polled".format(
                                    type(adapter).__name__
                                )
                            )
                        if on_status:
                            on_status("Waiting for job {}...".format(outcome.job.id))
                        result = await wait_until_complete(
                            adapter,
                            outcome.job,
                            poll_interval=self.settings.poll_interval_s,
                            max_wait=self.settings.max_wait_s,
                            max_attempts=self.settings.max_attempts,
                            on_status=on_status,
                        )
            response = normalize(result)

        except asyncio.CancelledError:
            logger.warning(
                "[%s] Cancelled during %s (provider=%s); staged audio released",
                request_id,
                stage,
                selector_name,
            )
            raise
        except GatewayError as exc:
            logger.warning(
                "[%s] %s error during %s (provider=%s): %s%s",
                request_id,
                exc.kind.value,
                stage,
                selector_name,
                exc.message,
                " ({})".format(exc.detail) if exc.detail else "",
            )
            return normalize(exc)
        except Exception as exc:
            logger.exception(
                "[%s] Unexpected failure during %s (provider=%s)",
                request_id,
                stage,
                selector_name,
            )
            return normalize(exc)

        if response.ok:
            logger.info(
                "[%s] Transcription complete (%d chars)", request_id, len(response.text or "")
            )
        else:
            logger.warning(
                "[%s] Transcription failed during %s (provider=%s, kind=%s): %s",
                request_id,
                stage,
                selector_name,
                response.kind.value if response.kind else None,
                response.error,
            )
        return response
