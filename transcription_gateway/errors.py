"""Error taxonomy for the transcription gateway.

WHY: A request can fail locally (bad input, disk), at a remote call
(upload, submit, poll), or because the provider itself rejected the audio.
Callers need to tell these apart in logs while still receiving one uniform
error shape at the HTTP boundary.

HOW: Every gateway error derives from GatewayError and carries an ErrorKind.
The normalizer collapses the kind into a status code and a message string;
the kind itself is only used for logging and status selection.

RULES:
- Each subclass pins its own ``kind`` as a class attribute
- ``str(exc)`` is always a human-readable message safe to show callers
- ProviderAPIError describes a single failed remote call; adapters translate
  it into a Failed result of the matching kind
- GatewayResponse.raise_for_error() turns a failed response back into the
  GatewayError subclass for its kind (UploadError, TranscriptionTimeoutError...)
"""

from __future__ import annotations

import enum
from typing import List, Optional


class ErrorKind(str, enum.Enum):
    """Categories of failure, preserved for logging and status selection."""

    INVALID_REQUEST = "invalid_request"
    CONFIGURATION = "configuration"
    STAGING = "staging"
    UPLOAD = "upload"
    SUBMIT = "submit"
    PROVIDER = "provider"
    TIMEOUT = "timeout"
    UNEXPECTED = "unexpected"


class GatewayError(Exception):
    """Base class for all errors raised by the gateway core."""

    kind: ErrorKind = ErrorKind.UNEXPECTED
    status_code: Optional[int] = None

    def __init__(self, message: str, detail: Optional[str] = None) -> None:
        self.message = message
        self.detail = detail
        super().__init__(message)


class InvalidRequestError(GatewayError):
    """Raised when the request itself is unusable; the caller must fix it."""

    kind = ErrorKind.INVALID_REQUEST


class MissingAudioError(InvalidRequestError):
    """Raised when a request carries no audio payload."""

    def __init__(self) -> None:
        super().__init__("Please upload a file")


class UnsupportedMediaError(InvalidRequestError):
    """Raised when the declared content type is not an accepted audio type."""

    status_code = 415

    def __init__(self, content_type: str) -> None:
        self.content_type = content_type
        super().__init__("Unsupported content type '{}'".format(content_type))


class UnknownProviderError(InvalidRequestError):
    """Raised when the provider selector names no registered adapter."""

    def __init__(self, selector: str, available: List[str]) -> None:
        self.selector = selector
        self.available = available
        super().__init__(
            "Unknown provider '{}'. Available: {}".format(
                selector, ", ".join(available)
            )
        )


class ConfigurationError(GatewayError):
    """Raised when required configuration (e.g. an API key) is missing."""

    kind = ErrorKind.CONFIGURATION


class StagingError(GatewayError):
    """Raised when the audio payload cannot be prepared locally."""

    kind = ErrorKind.STAGING


class UploadError(GatewayError):
    """Raised when sending the payload to the provider fails."""

    kind = ErrorKind.UPLOAD


class SubmitError(GatewayError):
    """Raised when the provider refuses to create a transcription job."""

    kind = ErrorKind.SUBMIT


class ProviderFailure(GatewayError):
    """Raised when the provider reports a terminal error for accepted work."""

    kind = ErrorKind.PROVIDER


class TranscriptionTimeoutError(GatewayError, TimeoutError):
    """Raised when a job does not reach a terminal state before its deadline.

    The remote job may still be running; it is not cancelled provider-side.
    """

    kind = ErrorKind.TIMEOUT

    def __init__(self, message: str = "timeout", detail: Optional[str] = None) -> None:
        super().__init__(message, detail=detail)


class ProviderAPIError(Exception):
    """Raised when one remote provider call fails.

    Wraps the HTTP status code (None for transport failures such as a
    refused connection) and the response body or error summary.
    """

    def __init__(self, provider: str, status_code: Optional[int], message: str) -> None:
        self.provider = provider
        self.status_code = status_code
        self.message = message
        if status_code is None:
            super().__init__("{} request failed: {}".format(provider, message))
        else:
            super().__init__(
                "{} API error {}: {}".format(provider, status_code, message)
            )
