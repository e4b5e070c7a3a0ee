"""Result normalizer: one response shape regardless of provider or failure.

WHY: Callers should not care which provider ran or where a request failed.
They receive either ``{"text": ...}`` or ``{"error": ...}``; the failure
category survives only for logging and status-code selection.

HOW: normalize() accepts a TranscriptionResult, a GatewayError, or any
other exception and builds a GatewayResponse. STATUS_CODES maps each
ErrorKind to the HTTP status reported with the error.

RULES:
- A GatewayResponse holds exactly one of ``text`` / ``error``
- Completed → 200; every failure → a non-2xx status
- Unexpected exceptions never leak their message to the caller
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional, Type, Union

from transcription_gateway.errors import (
    ConfigurationError,
    ErrorKind,
    GatewayError,
    InvalidRequestError,
    ProviderFailure,
    StagingError,
    SubmitError,
    TranscriptionTimeoutError,
    UploadError,
)
from transcription_gateway.providers.models import Completed, Failed, TranscriptionResult

UNEXPECTED_ERROR_MESSAGE = "Internal transcription error"

STATUS_CODES: Dict[ErrorKind, int] = {
    ErrorKind.INVALID_REQUEST: 400,
    ErrorKind.CONFIGURATION: 500,
    ErrorKind.STAGING: 500,
    ErrorKind.UPLOAD: 502,
    ErrorKind.SUBMIT: 502,
    ErrorKind.PROVIDER: 502,
    ErrorKind.TIMEOUT: 504,
    ErrorKind.UNEXPECTED: 500,
}

ERROR_TYPES: Dict[ErrorKind, Type[GatewayError]] = {
    ErrorKind.INVALID_REQUEST: InvalidRequestError,
    ErrorKind.CONFIGURATION: ConfigurationError,
    ErrorKind.STAGING: StagingError,
    ErrorKind.UPLOAD: UploadError,
    ErrorKind.SUBMIT: SubmitError,
    ErrorKind.PROVIDER: ProviderFailure,
    ErrorKind.TIMEOUT: TranscriptionTimeoutError,
    ErrorKind.UNEXPECTED: GatewayError,
}


@dataclass(frozen=True)
class GatewayResponse:
    """The externally visible outcome of one transcription request."""

    text: Optional[str] = None
    error: Optional[str] = None
    kind: Optional[ErrorKind] = None
    status_code: int = 200

    def __post_init__(self) -> None:
        if (self.text is None) == (self.error is None):
            raise ValueError("GatewayResponse needs exactly one of text or error")

    @property
    def ok(self) -> bool:
        return self.error is None

    def body(self) -> Dict[str, Any]:
        if self.error is not None:
            return {"error": self.error}
        return {"text": self.text}

    def raise_for_error(self) -> str:
        """Return the transcript, or raise the GatewayError for this failure.

        The raised exception's class matches ``kind`` (ERROR_TYPES) and its
        status_code is the one this response carries.
        """
        if self.error is None:
            return self.text or ""
        error_cls = ERROR_TYPES.get(self.kind or ErrorKind.UNEXPECTED, GatewayError)
        exc = error_cls(self.error)
        exc.status_code = self.status_code
        raise exc


def error_response(kind: ErrorKind, message: str, status_code: Optional[int] = None) -> GatewayResponse:
    return GatewayResponse(
        error=message,
        kind=kind,
        status_code=status_code or STATUS_CODES.get(kind, 500),
    )


def normalize(outcome: Union[TranscriptionResult, BaseException]) -> GatewayResponse:
    """Map any terminal outcome to a GatewayResponse."""
    if isinstance(outcome, Completed):
        return GatewayResponse(text=outcome.text)

    if isinstance(outcome, Failed):
        return error_response(outcome.kind, outcome.detail or outcome.kind.value)

    if isinstance(outcome, GatewayError):
        return error_response(outcome.kind, outcome.message, outcome.status_code)

    return error_response(ErrorKind.UNEXPECTED, UNEXPECTED_ERROR_MESSAGE)
