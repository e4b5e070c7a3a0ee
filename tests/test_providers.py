"""Tests for the provider adapters and the provider registry.

WHY: Adapters are the only code that speaks provider wire formats. These
tests pin the request sequence, the mapping of remote answers onto
SubmitOutcome / JobStatusReport, and the failure surfaces.

HOW: Real adapters run against httpx.MockTransport fakes from conftest.
"""

from __future__ import annotations

import asyncio

import httpx
import pytest

from transcription_gateway.errors import (
    ConfigurationError,
    ErrorKind,
    ProviderAPIError,
    UnknownProviderError,
)
from transcription_gateway.providers import (
    PROVIDERS,
    AssemblyAIProvider,
    PollingProvider,
    ProviderSelector,
    SynchronousProvider,
    WhisperProvider,
    resolve_selector,
)
from transcription_gateway.providers.models import (
    Completed,
    Failed,
    Immediate,
    JobState,
    Pending,
    TranscriptionJob,
)
from transcription_gateway.staging import AudioPayload, PayloadStager, StagingMode

from conftest import ASSEMBLY_URL, WHISPER_URL, FakeAssemblyAI, FakeWhisper


def _assembly(fake: FakeAssemblyAI) -> AssemblyAIProvider:
    return AssemblyAIProvider(api_key="assembly-key", base_url=ASSEMBLY_URL, transport=fake.transport)


def _whisper(fake: FakeWhisper) -> WhisperProvider:
    return WhisperProvider(api_key="openai-key", base_url=WHISPER_URL, transport=fake.transport)


async def _submit(provider, stager: PayloadStager, payload: AudioPayload):
    async with provider:
        async with stager.staged(payload, provider.staging_mode) as staged:
            return await provider.submit(staged)


# ---------------------------------------------------------------------------
# AssemblyAI (polling)
# ---------------------------------------------------------------------------


class TestAssemblyAISubmit:
    def test_upload_then_create_returns_pending_job(self, staging_dir):
        fake = FakeAssemblyAI()
        outcome = asyncio.run(
            _submit(_assembly(fake), PayloadStager(str(staging_dir)), AudioPayload(b"clip", "audio/webm"))
        )

        assert isinstance(outcome, Pending)
        assert outcome.job.id == "job-1"
        assert outcome.job.provider == ProviderSelector.POLLING
        assert [m for m, _ in fake.calls] == ["POST", "POST"]
        assert fake.calls[0][1].endswith("/v2/upload")
        assert fake.calls[1][1].endswith("/v2/transcript")
        assert fake.uploads == [b"clip"]
        assert fake.jobs["job-1"]["body"]["audio_url"] == "https://cdn.test/upload/1"

    def test_sends_authorization_header(self, staging_dir):
        seen = []

        def handler(request):
            seen.append(request.headers.get("authorization"))
            return httpx.Response(500, json={"error": "stop"})

        provider = AssemblyAIProvider(
            api_key="assembly-key", base_url=ASSEMBLY_URL, transport=httpx.MockTransport(handler)
        )
        asyncio.run(_submit(provider, PayloadStager(str(staging_dir)), AudioPayload(b"clip")))
        assert seen == ["assembly-key"]

    def test_upload_failure_creates_no_job(self, staging_dir):
        fake = FakeAssemblyAI(upload_status=500)
        outcome = asyncio.run(
            _submit(_assembly(fake), PayloadStager(str(staging_dir)), AudioPayload(b"clip"))
        )

        assert isinstance(outcome, Immediate)
        assert isinstance(outcome.result, Failed)
        assert outcome.result.kind == ErrorKind.UPLOAD
        assert "upload rejected" in outcome.result.detail
        assert len(fake.calls) == 1
        assert fake.jobs == {}

    def test_upload_transport_error_is_upload_failure(self, staging_dir):
        fake = FakeAssemblyAI(upload_error=httpx.ConnectError("connection refused"))
        outcome = asyncio.run(
            _submit(_assembly(fake), PayloadStager(str(staging_dir)), AudioPayload(b"clip"))
        )

        assert isinstance(outcome, Immediate)
        assert outcome.result.kind == ErrorKind.UPLOAD
        assert "connection refused" in outcome.result.detail

    def test_create_failure_is_submit_failure(self, staging_dir):
        fake = FakeAssemblyAI(create_status=400)
        outcome = asyncio.run(
            _submit(_assembly(fake), PayloadStager(str(staging_dir)), AudioPayload(b"clip"))
        )

        assert isinstance(outcome, Immediate)
        assert outcome.result.kind == ErrorKind.SUBMIT
        assert "invalid audio_url" in outcome.result.detail
        assert fake.jobs == {}

    def test_job_requests_language_detection_by_default(self, staging_dir):
        fake = FakeAssemblyAI()
        asyncio.run(_submit(_assembly(fake), PayloadStager(str(staging_dir)), AudioPayload(b"clip")))
        assert fake.jobs["job-1"]["body"]["language_detection"] is True

    def test_uses_in_memory_staging(self):
        assert AssemblyAIProvider.staging_mode == StagingMode.IN_MEMORY


class TestAssemblyAIStatus:
    @pytest.mark.parametrize(
        "remote, expected",
        [
            ({"status": "queued"}, JobState.SUBMITTED),
            ({"status": "processing"}, JobState.PROCESSING),
            ({"status": "completed", "text": "hi"}, JobState.COMPLETED),
            ({"status": "error", "error": "bad audio"}, JobState.ERRORED),
            ({"status": "something-new"}, JobState.PROCESSING),
        ],
    )
    def test_status_mapping(self, remote, expected):
        def handler(request):
            return httpx.Response(200, json=dict(remote, id="job-9"))

        provider = AssemblyAIProvider(
            api_key="k", base_url=ASSEMBLY_URL, transport=httpx.MockTransport(handler)
        )

        async def run():
            async with provider:
                return await provider.get_status(TranscriptionJob("job-9", ProviderSelector.POLLING))

        report = asyncio.run(run())
        assert report.state == expected
        if expected == JobState.COMPLETED:
            assert report.text == "hi"
        if expected == JobState.ERRORED:
            assert report.error_detail == "bad audio"

    def test_status_http_error_raises(self):
        provider = AssemblyAIProvider(
            api_key="k",
            base_url=ASSEMBLY_URL,
            transport=httpx.MockTransport(lambda request: httpx.Response(503, text="down")),
        )

        async def run():
            async with provider:
                await provider.get_status(TranscriptionJob("job-1", ProviderSelector.POLLING))

        with pytest.raises(ProviderAPIError) as exc_info:
            asyncio.run(run())
        assert exc_info.value.status_code == 503

    def test_requires_context_manager(self):
        provider = AssemblyAIProvider(api_key="k", base_url=ASSEMBLY_URL)
        with pytest.raises(RuntimeError):
            asyncio.run(provider.get_status(TranscriptionJob("job-1", ProviderSelector.POLLING)))

    def test_missing_api_key(self, monkeypatch):
        monkeypatch.delenv("ASSEMBLYAI_API_KEY", raising=False)
        with pytest.raises(ConfigurationError):
            AssemblyAIProvider()


# ---------------------------------------------------------------------------
# Whisper (synchronous)
# ---------------------------------------------------------------------------


class TestWhisperSubmit:
    def test_returns_completed_text(self, staging_dir):
        fake = FakeWhisper(staging_dir=staging_dir)
        outcome = asyncio.run(
            _submit(_whisper(fake), PayloadStager(str(staging_dir)), AudioPayload(b"clip", "audio/webm"))
        )

        assert outcome == Immediate(Completed("hello world"))
        request = fake.requests[0]
        assert request.method == "POST"
        assert request.url.path == "/v1/audio/transcriptions"
        assert request.headers["authorization"] == "Bearer openai-key"
        assert b'name="model"' in request.content
        assert b"whisper-1" in request.content
        assert b"clip" in request.content

    def test_streams_from_staged_file(self, staging_dir):
        fake = FakeWhisper(staging_dir=staging_dir)
        asyncio.run(
            _submit(_whisper(fake), PayloadStager(str(staging_dir)), AudioPayload(b"clip", "audio/webm"))
        )

        seen = fake.staged_files_seen[0]
        assert len(seen) == 1
        assert seen[0].endswith(".webm")
        assert 'filename="{}"'.format(seen[0]).encode() in fake.requests[0].content

    def test_staged_file_is_read_off_the_event_loop(self, staging_dir, monkeypatch):
        fake = FakeWhisper(staging_dir=staging_dir)
        offloaded = []
        real_to_thread = asyncio.to_thread

        async def recording_to_thread(func, *args, **kwargs):
            offloaded.append(getattr(func, "__name__", repr(func)))
            return await real_to_thread(func, *args, **kwargs)

        monkeypatch.setattr(asyncio, "to_thread", recording_to_thread)
        outcome = asyncio.run(
            _submit(_whisper(fake), PayloadStager(str(staging_dir)), AudioPayload(b"clip", "audio/webm"))
        )

        assert outcome == Immediate(Completed("hello world"))
        assert offloaded == ["_write_exclusive", "read_bytes"]

    def test_remote_error_is_provider_failure(self, staging_dir):
        fake = FakeWhisper(status_code=400)
        outcome = asyncio.run(
            _submit(_whisper(fake), PayloadStager(str(staging_dir)), AudioPayload(b"clip"))
        )

        assert outcome == Immediate(Failed(ErrorKind.PROVIDER, "Invalid file format"))

    def test_transport_error_is_provider_failure(self, staging_dir):
        fake = FakeWhisper(error=httpx.ReadTimeout("timed out"))
        outcome = asyncio.run(
            _submit(_whisper(fake), PayloadStager(str(staging_dir)), AudioPayload(b"clip"))
        )

        assert isinstance(outcome.result, Failed)
        assert outcome.result.kind == ErrorKind.PROVIDER

    def test_uses_file_backed_staging(self):
        assert WhisperProvider.staging_mode == StagingMode.FILE_BACKED

    def test_missing_api_key(self, monkeypatch):
        monkeypatch.delenv("OPENAI_API_KEY", raising=False)
        with pytest.raises(ConfigurationError):
            WhisperProvider()


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------


class TestRegistry:
    def test_registry_covers_both_variants(self):
        assert issubclass(PROVIDERS[ProviderSelector.POLLING], PollingProvider)
        assert issubclass(PROVIDERS[ProviderSelector.SYNC], SynchronousProvider)

    def test_each_adapter_declares_its_selector(self):
        for selector, provider_cls in PROVIDERS.items():
            assert provider_cls.selector == selector

    def test_resolve_known_selectors(self):
        assert resolve_selector("polling-provider") == ProviderSelector.POLLING
        assert resolve_selector(" Sync-Provider ") == ProviderSelector.SYNC
        assert resolve_selector(ProviderSelector.SYNC) == ProviderSelector.SYNC

    def test_resolve_unknown_selector(self):
        with pytest.raises(UnknownProviderError) as exc_info:
            resolve_selector("carrier-pigeon")
        assert "carrier-pigeon" in str(exc_info.value)
        assert "polling-provider" in str(exc_info.value)


class TestModels:
    def test_terminal_states(self):
        assert JobState.COMPLETED.is_terminal
        assert JobState.ERRORED.is_terminal
        assert not JobState.SUBMITTED.is_terminal
        assert not JobState.PROCESSING.is_terminal

    def test_result_variants(self):
        assert Completed("hi").ok
        assert not Failed(ErrorKind.PROVIDER, "bad audio").ok

    def test_job_records_creation_time(self):
        job = TranscriptionJob("job-1", ProviderSelector.POLLING)
        assert job.created_at > 0
