"""Pydantic response models for the HTTP API.

WHY: The FastAPI endpoints need typed schemas for response serialization
and the generated OpenAPI documentation.

RULES:
- All models use Field(description=...) for OpenAPI documentation
- Transcription responses carry exactly one of ``text`` / ``error``
- Python 3.9+ compatible (Optional/List from typing, no PEP 604 unions)
"""

from __future__ import annotations

from typing import List

from pydantic import BaseModel, Field


class TranscriptionResponse(BaseModel):
    """Successful transcription."""

    text: str = Field(description="Transcript of the uploaded audio.")

    model_config = {"json_schema_extra": {"examples": [{"text": "hello world"}]}}


class ErrorResponse(BaseModel):
    """Standard error response body.

    RULES:
    - error is always a human-readable message
    """

    error: str = Field(description="Human-readable error description.")

    model_config = {"json_schema_extra": {"examples": [{"error": "Please upload a file"}]}}


class ProviderInfo(BaseModel):
    """Description of a registered transcription provider."""

    selector: str = Field(description="Value to send in the 'provider' form field.")
    name: str = Field(description="Human-readable provider name.")
    protocol: str = Field(description="Completion protocol: 'polling' or 'synchronous'.")
    staging: str = Field(description="How the audio is staged: 'in-memory' or 'file-backed'.")
    default: bool = Field(description="Whether requests without a provider use this one.")


class ProviderListResponse(BaseModel):
    providers: List[ProviderInfo] = Field(description="Registered providers.")


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = Field(description="Service health status.", json_schema_extra={"example": "ok"})
    version: str = Field(description="API version string.", json_schema_extra={"example": "0.1.0"})
