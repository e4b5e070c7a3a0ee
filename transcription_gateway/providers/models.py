"""Result, job, and outcome types shared by every provider adapter.

WHY: The gateway must handle a provider that answers immediately and one
that hands back a job to poll through the same code path. Typed, immutable
values make the two shapes explicit and keep provider JSON out of the core.

HOW: TranscriptionResult is either Completed or Failed. A submit() call
returns a SubmitOutcome: Immediate wraps a terminal result, Pending wraps a
TranscriptionJob that the completion waiter drives to a terminal result.
JobStatusReport is one observation of a pending job's state.

RULES:
- Results and jobs are frozen after creation
- Failed always carries an ErrorKind plus a human-readable detail
- JobState has two terminal values: COMPLETED and ERRORED
"""

from __future__ import annotations

import enum
import time
from dataclasses import dataclass, field
from typing import Optional, Union

from transcription_gateway.errors import ErrorKind


class ProviderSelector(str, enum.Enum):
    """Identifies which adapter handles a request."""

    POLLING = "polling-provider"
    SYNC = "sync-provider"


class JobState(str, enum.Enum):
    """Normalized lifecycle of a provider-side job."""

    SUBMITTED = "submitted"
    PROCESSING = "processing"
    COMPLETED = "completed"
    ERRORED = "errored"

    @property
    def is_terminal(self) -> bool:
        return self in (JobState.COMPLETED, JobState.ERRORED)


@dataclass(frozen=True)
class Completed:
    """Terminal success carrying the transcript text."""

    text: str

    @property
    def ok(self) -> bool:
        return True


@dataclass(frozen=True)
class Failed:
    """Terminal failure.

    Attributes:
        kind: Which stage failed (upload, submit, provider, timeout, ...).
        detail: Human-readable description, e.g. the provider's error text.
    """

    kind: ErrorKind
    detail: str

    @property
    def ok(self) -> bool:
        return False


TranscriptionResult = Union[Completed, Failed]


@dataclass(frozen=True)
class TranscriptionJob:
    """A provider-side unit of pending work.

    Attributes:
        id: Opaque identifier assigned by the provider.
        provider: The selector of the adapter that created the job.
        created_at: Epoch seconds when the job was accepted.
    """

    id: str
    provider: ProviderSelector
    created_at: float = field(default_factory=time.time)


@dataclass(frozen=True)
class JobStatusReport:
    """One observation of a pending job.

    ``text`` is set only for COMPLETED and ``error_detail`` only for ERRORED.
    """

    state: JobState
    text: Optional[str] = None
    error_detail: Optional[str] = None


@dataclass(frozen=True)
class Immediate:
    """submit() produced a terminal result with no job to wait on."""

    result: TranscriptionResult


@dataclass(frozen=True)
class Pending:
    """submit() created a provider-side job that must be polled."""

    job: TranscriptionJob


SubmitOutcome = Union[Immediate, Pending]
