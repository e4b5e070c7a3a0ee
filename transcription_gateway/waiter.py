"""Completion waiter: drive a pending job to a terminal result.

WHY: A polling provider returns a job id, not a transcript. Someone has to
ask for the job's status until it is done, and that wait must be bounded:
a stuck job must not keep a request (or a polling loop) alive forever.

HOW: Poll get_status() at a fixed interval. A COMPLETED observation returns
Completed(text); ERRORED returns Failed(PROVIDER, detail). Non-terminal
states sleep and retry. The overall deadline is ``max_wait`` seconds on the
monotonic clock, optionally combined with a ``max_attempts`` poll cap; on
exhaustion the waiter returns Failed(TIMEOUT, "timeout").

RULES:
- The first poll happens immediately after submission (no initial sleep)
- Sleeps never extend past the deadline, and neither does a status call:
  each get_status() is bounded by the remaining time (MIN_POLL_TIMEOUT_S
  at least); a call that runs out counts as a failed poll
- A failed status request (ProviderAPIError) is logged and the loop moves
  on to its next iteration; it is not retried separately
- Cancellation (asyncio.CancelledError) propagates to the caller untouched
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable
from typing import Optional

from transcription_gateway.config import MAX_WAIT_S, POLL_INTERVAL_S
from transcription_gateway.errors import ErrorKind, ProviderAPIError
from transcription_gateway.providers.base import PollingProvider
from transcription_gateway.providers.models import (
    Completed,
    Failed,
    JobState,
    TranscriptionJob,
    TranscriptionResult,
)

logger = logging.getLogger(__name__)

TIMEOUT_DETAIL = "timeout"

# Lower bound on the timeout of a single status call
MIN_POLL_TIMEOUT_S = 0.05


async def wait_until_complete(
    provider: PollingProvider,
    job: TranscriptionJob,
    poll_interval: float = POLL_INTERVAL_S,
    max_wait: float = MAX_WAIT_S,
    max_attempts: Optional[int] = None,
    on_status: Optional[Callable[[str], None]] = None,
) -> TranscriptionResult:
    """Poll ``job`` until it reaches a terminal state or the deadline passes.

    Args:
        provider: The adapter that created ``job`` (inside its context manager).
        job: The pending job to wait on.
        poll_interval: Seconds to sleep between polls.
        max_wait: Overall deadline in seconds, measured from the first poll.
        max_attempts: Optional maximum number of status requests.
        on_status: Optional callback receiving human-readable status lines.

    Returns:
        Completed, Failed(PROVIDER) for provider-reported errors, or
        Failed(TIMEOUT) when the deadline or attempt cap is exhausted.
    """
    if poll_interval < 0:
        raise ValueError("poll_interval must be >= 0")
    if max_attempts is not None and max_attempts < 1:
        raise ValueError("max_attempts must be >= 1")

    start_time = time.monotonic()
    deadline = start_time + max(max_wait, 0.0)
    attempts = 0

    while True:
        attempts += 1
        poll_timeout = max(deadline - time.monotonic(), MIN_POLL_TIMEOUT_S)
        try:
            report = await asyncio.wait_for(provider.get_status(job), timeout=poll_timeout)
        except asyncio.TimeoutError:
            logger.warning(
                "Status poll %d for job %s got no answer within %.2fs", attempts, job.id, poll_timeout
            )
            report = None
        except ProviderAPIError as exc:
            logger.warning(
                "Status poll %d for job %s failed: %s", attempts, job.id, exc
            )
            report = None

        if report is not None:
            if on_status:
                elapsed = int(time.monotonic() - start_time)
                on_status(
                    "Job {} {} (elapsed: {}m {:02d}s)".format(
                        job.id, report.state.value, elapsed // 60, elapsed % 60
                    )
                )

            if report.state == JobState.COMPLETED:
                logger.info("Job %s completed after %d poll(s)", job.id, attempts)
                return Completed(report.text or "")

            if report.state == JobState.ERRORED:
                detail = report.error_detail or "Transcription failed"
                logger.info("Job %s errored after %d poll(s): %s", job.id, attempts, detail)
                return Failed(ErrorKind.PROVIDER, detail)

        remaining = deadline - time.monotonic()
        if remaining <= 0 or (max_attempts is not None and attempts >= max_attempts):
            logger.warning(
                "Job %s still not terminal after %d poll(s) and %.1fs, giving up",
                job.id,
                attempts,
                time.monotonic() - start_time,
            )
            return Failed(ErrorKind.TIMEOUT, TIMEOUT_DETAIL)

        await asyncio.sleep(min(poll_interval, remaining))
