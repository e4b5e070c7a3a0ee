"""AssemblyAI adapter: the push-poll transcription provider.

WHY: AssemblyAI transcribes asynchronously. Audio is uploaded first, a
transcript job is created against the uploaded audio, and the job is polled
until it completes or errors.

HOW: submit() runs the two-step protocol (upload → create job) and returns
Pending(job). get_status() maps AssemblyAI's status values onto JobState:
queued → SUBMITTED, processing → PROCESSING, completed → COMPLETED,
error → ERRORED.

RULES:
- Upload strictly precedes job creation; job creation precedes any poll
- Upload failure → Immediate(Failed(UPLOAD)); create failure →
  Immediate(Failed(SUBMIT)); no job exists in either case
- The payload is sent from memory (StagingMode.IN_MEMORY)
- Unknown remote status values are treated as still processing
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import httpx

from transcription_gateway.config import ASSEMBLYAI_BASE_URL, load_api_key
from transcription_gateway.errors import ErrorKind, ProviderAPIError
from transcription_gateway.providers.base import DEFAULT_TIMEOUT, PollingProvider
from transcription_gateway.providers.models import (
    Failed,
    Immediate,
    JobState,
    JobStatusReport,
    Pending,
    ProviderSelector,
    SubmitOutcome,
    TranscriptionJob,
)
from transcription_gateway.staging import StagedPayload, StagingMode

logger = logging.getLogger(__name__)

API_KEY_ENV = "ASSEMBLYAI_API_KEY"

_STATE_MAP = {
    "queued": JobState.SUBMITTED,
    "processing": JobState.PROCESSING,
    "completed": JobState.COMPLETED,
    "error": JobState.ERRORED,
}


class AssemblyAIProvider(PollingProvider):
    """Async adapter for the AssemblyAI v2 transcript API.

    Args:
        api_key: Defaults to ASSEMBLYAI_API_KEY from the environment.
        base_url: Defaults to ASSEMBLYAI_BASE_URL from config.
        language_code: Optional language code sent with the job; AssemblyAI
            detects the language when omitted.
        transport: Optional httpx transport for tests.
    """

    selector = ProviderSelector.POLLING
    staging_mode = StagingMode.IN_MEMORY
    display_name = "AssemblyAI"

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        language_code: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: httpx.Timeout = DEFAULT_TIMEOUT,
    ) -> None:
        super().__init__(
            api_key=api_key or load_api_key(API_KEY_ENV),
            base_url=base_url or ASSEMBLYAI_BASE_URL,
            transport=transport,
            timeout=timeout,
        )
        self._language_code = language_code

    def _auth_headers(self) -> Dict[str, str]:
        return {"authorization": self._api_key}

    # ------------------------------------------------------------------
    # Step 1: Upload
    # ------------------------------------------------------------------

    async def upload(self, audio: bytes) -> str:
        """Upload raw audio and return the URL AssemblyAI can re-read it from."""
        data = await self._request(
            "POST",
            "/upload",
            content=audio,
            headers={"content-type": "application/octet-stream"},
        )
        upload_url = data.get("upload_url") if isinstance(data, dict) else None
        if not upload_url:
            raise ProviderAPIError(self.display_name, None, "Upload response has no upload_url")
        return upload_url

    # ------------------------------------------------------------------
    # Step 2: Create transcript job
    # ------------------------------------------------------------------

    async def create_job(self, audio_url: str, params: Optional[Dict[str, Any]] = None) -> str:
        """Create a transcript job for ``audio_url`` and return its id."""
        body: Dict[str, Any] = {"audio_url": audio_url}
        if self._language_code:
            body["language_code"] = self._language_code
        else:
            body["language_detection"] = True
        if params:
            body.update(params)

        data = await self._request("POST", "/transcript", json=body)
        job_id = data.get("id") if isinstance(data, dict) else None
        if not job_id:
            raise ProviderAPIError(self.display_name, None, "Transcript response has no id")
        return job_id

    async def submit(self, staged: StagedPayload) -> SubmitOutcome:
        try:
            audio_url = await self.upload(staged.read_bytes())
        except ProviderAPIError as exc:
            logger.warning("AssemblyAI upload failed: %s", exc)
            return Immediate(Failed(ErrorKind.UPLOAD, "Audio upload failed: {}".format(exc.message)))

        try:
            job_id = await self.create_job(audio_url)
        except ProviderAPIError as exc:
            logger.warning("AssemblyAI job creation failed: %s", exc)
            return Immediate(
                Failed(ErrorKind.SUBMIT, "Transcription request failed: {}".format(exc.message))
            )

        logger.info("AssemblyAI job %s created", job_id)
        return Pending(TranscriptionJob(id=job_id, provider=self.selector))

    # ------------------------------------------------------------------
    # Step 3: Status
    # ------------------------------------------------------------------

    async def get_status(self, job: TranscriptionJob) -> JobStatusReport:
        data = await self._request("GET", "/transcript/{}".format(job.id))
        if not isinstance(data, dict):
            raise ProviderAPIError(self.display_name, None, "Status response is not an object")

        raw_status = str(data.get("status", "")).lower()
        state = _STATE_MAP.get(raw_status, JobState.PROCESSING)

        if state == JobState.COMPLETED:
            return JobStatusReport(state=state, text=data.get("text") or "")
        if state == JobState.ERRORED:
            return JobStatusReport(
                state=state,
                error_detail=data.get("error") or "Transcription failed",
            )
        return JobStatusReport(state=state)
