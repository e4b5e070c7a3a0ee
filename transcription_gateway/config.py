"""Configuration constants, accepted audio types, and .env loading.

WHY: Provider endpoints, credentials, polling limits, and server settings
must be easy to find and override per deployment. Keeping them as plain
module-level data (not buried in logic) makes them obvious to change.

HOW: python-dotenv loads the .env file on import. Each constant reads its
environment variable with a sensible default. GatewaySettings snapshots the
values once at process start so request handling only ever reads a frozen
object. load_api_key() gives a clear error when a credential is missing.

RULES:
- API keys are loaded from the environment, never hardcoded
- Every default can be overridden via an environment variable
- SUPPORTED_CONTENT_TYPES maps MIME types (without parameters) to the file
  extension used when a payload has to be staged to disk
- Settings are read-only after initialization
"""

from __future__ import annotations

import os
import tempfile
from dataclasses import dataclass
from typing import Optional, Tuple

from dotenv import load_dotenv

from transcription_gateway.errors import ConfigurationError

# Load .env from the working directory
load_dotenv()

# ---------------------------------------------------------------------------
# Accepted audio content types
# ---------------------------------------------------------------------------

SUPPORTED_CONTENT_TYPES: dict[str, str] = {
    "audio/webm": ".webm",
    "video/webm": ".webm",
    "audio/ogg": ".ogg",
    "audio/wav": ".wav",
    "audio/x-wav": ".wav",
    "audio/wave": ".wav",
    "audio/mpeg": ".mp3",
    "audio/mp3": ".mp3",
    "audio/mp4": ".m4a",
    "audio/x-m4a": ".m4a",
    "audio/aac": ".aac",
    "audio/flac": ".flac",
    "audio/x-flac": ".flac",
    "video/mp4": ".mp4",
    "application/octet-stream": ".bin",
}

DEFAULT_CONTENT_TYPE = "application/octet-stream"


def base_content_type(content_type: Optional[str]) -> str:
    """Strip parameters from a MIME type: ``audio/webm;codecs=opus`` → ``audio/webm``."""
    if not content_type:
        return DEFAULT_CONTENT_TYPE
    return content_type.split(";", 1)[0].strip().lower()


def extension_for(content_type: str) -> str:
    """File extension for a content type, ``.bin`` when unknown."""
    return SUPPORTED_CONTENT_TYPES.get(base_content_type(content_type), ".bin")


# ---------------------------------------------------------------------------
# Provider defaults
# ---------------------------------------------------------------------------

ASSEMBLYAI_BASE_URL = os.getenv("ASSEMBLYAI_BASE_URL", "https://api.assemblyai.com/v2")
WHISPER_BASE_URL = os.getenv("WHISPER_BASE_URL", "https://api.openai.com/v1")
WHISPER_MODEL = os.getenv("WHISPER_MODEL", "whisper-1")

# ---------------------------------------------------------------------------
# Gateway defaults
# ---------------------------------------------------------------------------

DEFAULT_PROVIDER = os.getenv("GATEWAY_DEFAULT_PROVIDER", "polling-provider")
POLL_INTERVAL_S = float(os.getenv("GATEWAY_POLL_INTERVAL_S", "5"))
MAX_WAIT_S = float(os.getenv("GATEWAY_MAX_WAIT_S", "300"))
STAGING_DIR = os.getenv("GATEWAY_STAGING_DIR", "") or tempfile.gettempdir()

HOST = os.getenv("GATEWAY_HOST", "0.0.0.0")
PORT = int(os.getenv("GATEWAY_PORT", "3000"))
CORS_ORIGINS = os.getenv("GATEWAY_CORS_ORIGINS", "*")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()


def load_api_key(env_name: str) -> str:
    """Load a provider API key from the environment.

    RULES:
    - Raises ConfigurationError if the key is missing or empty
    - Never returns a default/placeholder value
    """
    key = os.getenv(env_name, "").strip()
    if not key:
        raise ConfigurationError(
            "Provider API key not configured. Add {} to the .env file.".format(env_name)
        )
    return key


@dataclass(frozen=True)
class GatewaySettings:
    """Process-wide settings, captured once at startup.

    Attributes:
        default_provider: Selector used when a request names no provider.
        poll_interval_s: Fixed delay between status polls.
        max_wait_s: Overall deadline for one polling wait.
        max_attempts: Optional cap on status polls (None = deadline only).
        staging_dir: Directory for file-backed staging.
        cors_origins: Origins allowed by the HTTP server.
    """

    default_provider: str = DEFAULT_PROVIDER
    poll_interval_s: float = POLL_INTERVAL_S
    max_wait_s: float = MAX_WAIT_S
    max_attempts: Optional[int] = None
    staging_dir: str = STAGING_DIR
    cors_origins: Tuple[str, ...] = ("*",)

    @classmethod
    def from_env(cls) -> GatewaySettings:
        """Build settings from the current environment."""
        attempts = os.getenv("GATEWAY_MAX_ATTEMPTS", "").strip()
        origins = os.getenv("GATEWAY_CORS_ORIGINS", CORS_ORIGINS)
        return cls(
            default_provider=os.getenv("GATEWAY_DEFAULT_PROVIDER", DEFAULT_PROVIDER),
            poll_interval_s=float(os.getenv("GATEWAY_POLL_INTERVAL_S", str(POLL_INTERVAL_S))),
            max_wait_s=float(os.getenv("GATEWAY_MAX_WAIT_S", str(MAX_WAIT_S))),
            max_attempts=int(attempts) if attempts else None,
            staging_dir=os.getenv("GATEWAY_STAGING_DIR", "") or STAGING_DIR,
            cors_origins=tuple(o.strip() for o in origins.split(",") if o.strip()),
        )
