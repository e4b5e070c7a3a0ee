"""Abstract provider adapters and their shared HTTP plumbing.

WHY: The gateway treats every speech-to-text service through one
capability, ``submit(staged) -> SubmitOutcome``. Adding a provider should
mean writing one subclass and registering it, not touching call sites.

HOW: BaseProvider owns an authenticated httpx.AsyncClient for the lifetime
of an ``async with`` block and declares the staging mode it needs.
SynchronousProvider answers with Immediate results. PollingProvider answers
with Pending jobs and adds get_status() for the completion waiter.

To add a new provider:
1. Create a new module in providers/
2. Subclass SynchronousProvider or PollingProvider
3. Implement submit() (and get_status() for polling providers)
4. Register it in PROVIDERS in providers/__init__.py
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any, ClassVar, Dict, Optional

import httpx

from transcription_gateway.errors import ProviderAPIError
from transcription_gateway.providers.models import (
    JobStatusReport,
    ProviderSelector,
    SubmitOutcome,
    TranscriptionJob,
)
from transcription_gateway.staging import StagedPayload, StagingMode

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = httpx.Timeout(300.0, connect=30.0)


class BaseProvider(ABC):
    """Common base for all transcription provider adapters.

    Use as: ``async with Provider(...) as provider: ...``. Each request
    gets its own instance, so no connection state is shared between
    requests.

    Args:
        api_key: Provider credential. Subclasses load it from config when
            omitted.
        base_url: API root URL.
        transport: Optional httpx transport (tests inject MockTransport).
        timeout: Per-request HTTP timeout.
    """

    selector: ClassVar[ProviderSelector]
    staging_mode: ClassVar[StagingMode] = StagingMode.IN_MEMORY
    display_name: ClassVar[str] = "provider"

    def __init__(
        self,
        api_key: str,
        base_url: str,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: httpx.Timeout = DEFAULT_TIMEOUT,
    ) -> None:
        self._api_key = api_key
        self._base_url = base_url.rstrip("/")
        self._transport = transport
        self._timeout = timeout
        self._client: Optional[httpx.AsyncClient] = None

    async def __aenter__(self) -> BaseProvider:
        self._client = httpx.AsyncClient(
            base_url=self._base_url,
            headers=self._auth_headers(),
            timeout=self._timeout,
            transport=self._transport,
        )
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:  # noqa: ANN001
        if self._client:
            await self._client.aclose()
            self._client = None

    @abstractmethod
    def _auth_headers(self) -> Dict[str, str]:
        """Headers that authenticate every request to this provider."""

    @abstractmethod
    async def submit(self, staged: StagedPayload) -> SubmitOutcome:
        """Hand the staged payload to the provider.

        Remote failures are returned as ``Immediate(Failed(...))``, never
        raised, so that no job is created for a failed submission.
        """

    def _ensure_client(self) -> httpx.AsyncClient:
        """Return the active httpx client, raising if not in context manager."""
        if self._client is None:
            raise RuntimeError(
                "{} must be used as an async context manager: "
                "async with provider: ...".format(type(self).__name__)
            )
        return self._client

    async def _request(self, method: str, url: str, **kwargs: Any) -> Any:
        """Send one request and return the decoded JSON body.

        Raises:
            ProviderAPIError: Transport failure, non-2xx status, or a body
                that is not JSON.
        """
        client = self._ensure_client()
        try:
            resp = await client.request(method, url, **kwargs)
        except httpx.HTTPError as exc:
            raise ProviderAPIError(self.display_name, None, str(exc) or type(exc).__name__) from exc

        if resp.status_code not in (200, 201):
            raise ProviderAPIError(self.display_name, resp.status_code, _error_text(resp))

        try:
            return resp.json()
        except ValueError as exc:
            raise ProviderAPIError(
                self.display_name, resp.status_code, "Response body is not valid JSON"
            ) from exc


class SynchronousProvider(BaseProvider):
    """A provider whose single call returns the final transcript."""


class PollingProvider(BaseProvider):
    """A provider that accepts a job and reports its status on request."""

    @abstractmethod
    async def get_status(self, job: TranscriptionJob) -> JobStatusReport:
        """Observe the current state of ``job``.

        Raises:
            ProviderAPIError: The status request itself failed.
        """


def _error_text(resp: httpx.Response) -> str:
    """Best human-readable message from an error response."""
    try:
        data = resp.json()
    except ValueError:
        return resp.text or resp.reason_phrase
    if isinstance(data, dict):
        error = data.get("error")
        if isinstance(error, dict):
            return str(error.get("message") or error)
        if error:
            return str(error)
    return resp.text or resp.reason_phrase
