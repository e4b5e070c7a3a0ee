"""Shared test fixtures for the transcription_gateway test suite.

WHY: Most test modules need the same stand-ins for the two remote
providers and a gateway wired to them. Centralizing them keeps every test
talking to the same fake wire behavior.

HOW: FakeAssemblyAI and FakeWhisper are httpx.MockTransport handlers that
record every request and answer from a script. Fixtures build real
provider adapters on top of those transports, so the adapters' HTTP code
runs for real without any network access.

RULES:
- No test ever reaches a real provider
- Each test gets fresh fakes and its own staging directory (tmp_path)
- Polling interval is 0 so scripted waits finish instantly
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, List, Optional

import httpx
import pytest

from transcription_gateway.config import GatewaySettings
from transcription_gateway.gateway import TranscriptionGateway
from transcription_gateway.providers import AssemblyAIProvider, ProviderSelector, WhisperProvider
from transcription_gateway.staging import STAGED_FILE_PREFIX, PayloadStager

ASSEMBLY_URL = "https://assembly.test/v2"
WHISPER_URL = "https://whisper.test/v1"


# ---------------------------------------------------------------------------
# Fake providers
# ---------------------------------------------------------------------------


class FakeAssemblyAI:
    """Scripted stand-in for the AssemblyAI upload/transcript/status API.

    ``statuses`` is replayed per job: the n-th poll of a job answers with
    ``statuses[min(n, len - 1)]``. An int entry answers with that HTTP
    status code; an exception instance is raised as a transport error.
    A ``completed`` entry without ``text`` echoes the uploaded audio.
    """

    def __init__(
        self,
        statuses: Optional[List[Any]] = None,
        upload_status: int = 200,
        create_status: int = 200,
        upload_error: Optional[Exception] = None,
    ) -> None:
        self.statuses = statuses or [
            {"status": "processing"},
            {"status": "completed", "text": "hello world"},
        ]
        self.upload_status = upload_status
        self.create_status = create_status
        self.upload_error = upload_error
        self.calls: List[tuple] = []
        self.uploads: List[bytes] = []
        self.jobs: Dict[str, Dict[str, Any]] = {}
        self.polls: Dict[str, int] = {}
        self.transport = httpx.MockTransport(self.handler)

    def handler(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path
        self.calls.append((request.method, path))

        if request.method == "POST" and path.endswith("/upload"):
            if self.upload_error is not None:
                raise self.upload_error
            if self.upload_status != 200:
                return httpx.Response(self.upload_status, json={"error": "upload rejected"})
            self.uploads.append(request.content)
            return httpx.Response(
                200, json={"upload_url": "https://cdn.test/upload/{}".format(len(self.uploads))}
            )

        if request.method == "POST" and path.endswith("/transcript"):
            if self.create_status != 200:
                return httpx.Response(self.create_status, json={"error": "invalid audio_url"})
            body = json.loads(request.content)
            job_id = "job-{}".format(len(self.jobs) + 1)
            index = int(body["audio_url"].rsplit("/", 1)[1]) - 1
            self.jobs[job_id] = {"body": body, "audio": self.uploads[index]}
            self.polls[job_id] = 0
            return httpx.Response(200, json={"id": job_id, "status": "queued"})

        if request.method == "GET" and "/transcript/" in path:
            job_id = path.rsplit("/", 1)[1]
            if job_id not in self.jobs:
                return httpx.Response(404, json={"error": "Transcript not found"})
            n = self.polls[job_id]
            self.polls[job_id] = n + 1
            entry = self.statuses[min(n, len(self.statuses) - 1)]
            if isinstance(entry, Exception):
                raise entry
            if isinstance(entry, int):
                return httpx.Response(entry, text="upstream unavailable")
            body = dict(entry)
            if body.get("status") == "completed" and "text" not in body:
                body["text"] = self.jobs[job_id]["audio"].decode("utf-8")
            body["id"] = job_id
            return httpx.Response(200, json=body)

        return httpx.Response(404, json={"error": "not found"})


class FakeWhisper:
    """Scripted stand-in for an OpenAI-compatible transcription endpoint."""

    def __init__(
        self,
        text: str = " hello world ",
        status_code: int = 200,
        staging_dir: Optional[Path] = None,
        error: Optional[Exception] = None,
    ) -> None:
        self.text = text
        self.status_code = status_code
        self.staging_dir = staging_dir
        self.error = error
        self.requests: List[httpx.Request] = []
        self.staged_files_seen: List[List[str]] = []
        self.transport = httpx.MockTransport(self.handler)

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.staging_dir is not None:
            self.staged_files_seen.append(
                sorted(p.name for p in self.staging_dir.glob(STAGED_FILE_PREFIX + "*"))
            )
        if self.error is not None:
            raise self.error
        if self.status_code != 200:
            return httpx.Response(
                self.status_code, json={"error": {"message": "Invalid file format"}}
            )
        return httpx.Response(200, json={"text": self.text})


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


def staged_files(directory: Path) -> List[Path]:
    return sorted(directory.glob(STAGED_FILE_PREFIX + "*"))


@pytest.fixture
def staging_dir(tmp_path: Path) -> Path:
    path = tmp_path / "staging"
    path.mkdir()
    return path


@pytest.fixture
def settings(staging_dir: Path) -> GatewaySettings:
    return GatewaySettings(
        default_provider="polling-provider",
        poll_interval_s=0.0,
        max_wait_s=5.0,
        max_attempts=None,
        staging_dir=str(staging_dir),
    )


@pytest.fixture
def assembly() -> FakeAssemblyAI:
    return FakeAssemblyAI()


@pytest.fixture
def whisper(staging_dir: Path) -> FakeWhisper:
    return FakeWhisper(staging_dir=staging_dir)


@pytest.fixture
def make_gateway(settings, assembly, whisper):
    """Factory building a gateway wired to the fake providers."""

    def _make(
        settings: GatewaySettings = settings,
        assembly: FakeAssemblyAI = assembly,
        whisper: FakeWhisper = whisper,
    ) -> TranscriptionGateway:
        factories = {
            ProviderSelector.POLLING: lambda: AssemblyAIProvider(
                api_key="assembly-key", base_url=ASSEMBLY_URL, transport=assembly.transport
            ),
            ProviderSelector.SYNC: lambda: WhisperProvider(
                api_key="openai-key", base_url=WHISPER_URL, transport=whisper.transport
            ),
        }
        return TranscriptionGateway(
            settings=settings,
            factories=factories,
            stager=PayloadStager(settings.staging_dir),
        )

    return _make


@pytest.fixture
def gateway(make_gateway) -> TranscriptionGateway:
    return make_gateway()
