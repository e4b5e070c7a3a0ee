"""Payload staging: hold uploaded audio in the form a provider needs.

WHY: Some providers accept raw bytes, others need a file they can stream
from disk. Either way the payload belongs to exactly one request and must
not outlive it, so a leaked temp file is a bug, not a tolerable cost.

HOW: PayloadStager.stage() turns an AudioPayload into a StagedPayload
handle. In-memory handles wrap the buffer; file-backed handles point at a
uniquely named file in the staging directory. PayloadStager.staged() is an
async context manager that pairs stage() with release() so every exit path
(return, exception, task cancellation) removes the file.

RULES:
- File names are ``gateway-audio-<uuid4 hex><ext>``, never timestamp-based
- Disk reads and writes run in a worker thread so the event loop keeps serving
- Any OSError while writing raises StagingError and leaves no file behind
- release() is idempotent and a no-op for in-memory handles
"""

from __future__ import annotations

import asyncio
import enum
import logging
import os
import uuid
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from transcription_gateway.config import (
    DEFAULT_CONTENT_TYPE,
    STAGING_DIR,
    SUPPORTED_CONTENT_TYPES,
    base_content_type,
    extension_for,
)
from transcription_gateway.errors import (
    MissingAudioError,
    StagingError,
    UnsupportedMediaError,
)

logger = logging.getLogger(__name__)

STAGED_FILE_PREFIX = "gateway-audio-"


class StagingMode(str, enum.Enum):
    """How a provider wants to receive the payload."""

    IN_MEMORY = "in-memory"
    FILE_BACKED = "file-backed"


@dataclass(frozen=True)
class AudioPayload:
    """Raw audio bytes plus their declared MIME type.

    Owned by the request that created it and never mutated afterwards.
    """

    data: bytes
    content_type: str = DEFAULT_CONTENT_TYPE

    @classmethod
    def from_upload(
        cls, data: Optional[bytes], content_type: Optional[str] = None
    ) -> AudioPayload:
        """Validate an inbound upload and wrap it.

        Raises MissingAudioError for absent or empty audio and
        UnsupportedMediaError for content types outside
        SUPPORTED_CONTENT_TYPES.
        """
        if not data:
            raise MissingAudioError()
        mime = base_content_type(content_type)
        if mime not in SUPPORTED_CONTENT_TYPES:
            raise UnsupportedMediaError(mime)
        return cls(data=bytes(data), content_type=mime)

    @property
    def extension(self) -> str:
        return extension_for(self.content_type)

    @property
    def size(self) -> int:
        return len(self.data)


@dataclass
class StagedPayload:
    """Handle to a payload prepared for one provider call.

    Attributes:
        payload: The original audio payload.
        mode: The staging mode used.
        path: Location of the staged file, only for file-backed handles.
        released: True once release() has run.
    """

    payload: AudioPayload
    mode: StagingMode
    path: Optional[Path] = None
    released: bool = False

    @property
    def content_type(self) -> str:
        return self.payload.content_type

    @property
    def filename(self) -> str:
        """Name to present to a provider for multipart uploads."""
        if self.path is not None:
            return self.path.name
        return "audio{}".format(self.payload.extension)

    def read_bytes(self) -> bytes:
        if self.released:
            raise RuntimeError("Staged payload has already been released")
        return self.payload.data

    async def load(self) -> bytes:
        """Bytes to send to the provider.

        File-backed handles are read from disk in a worker thread;
        in-memory handles return the buffer.
        """
        if self.released:
            raise RuntimeError("Staged payload has already been released")
        if self.path is None:
            return self.payload.data
        return await asyncio.to_thread(self.path.read_bytes)


class PayloadStager:
    """Stage and release audio payloads.

    Args:
        staging_dir: Directory for file-backed payloads. Defaults to
            STAGING_DIR from config.
    """

    def __init__(self, staging_dir: Optional[str] = None) -> None:
        self._staging_dir = Path(staging_dir or STAGING_DIR)

    @property
    def staging_dir(self) -> Path:
        return self._staging_dir

    async def stage(self, payload: AudioPayload, mode: StagingMode) -> StagedPayload:
        """Prepare ``payload`` for a provider using ``mode``.

        Raises:
            StagingError: The staged file could not be written.
        """
        if mode == StagingMode.IN_MEMORY:
            return StagedPayload(payload=payload, mode=mode)

        path = self._staging_dir / "{}{}{}".format(
            STAGED_FILE_PREFIX, uuid.uuid4().hex, payload.extension
        )
        try:
            await asyncio.to_thread(_write_exclusive, path, payload.data)
        except OSError as exc:
            logger.error("Failed to stage payload to %s: %s", path, exc)
            raise StagingError(
                "Could not prepare the audio for transcription", detail=str(exc)
            ) from exc

        logger.debug("Staged %d bytes to %s", payload.size, path)
        return StagedPayload(payload=payload, mode=mode, path=path)

    def release(self, handle: StagedPayload) -> None:
        """Release a staged payload, deleting its file if it has one."""
        if handle.released:
            return
        handle.released = True
        if handle.path is None:
            return
        try:
            handle.path.unlink()
        except FileNotFoundError:
            pass
        except OSError:
            logger.warning("Failed to remove staged file: %s", handle.path)
            return
        logger.debug("Released staged file %s", handle.path)

    @asynccontextmanager
    async def staged(
        self, payload: AudioPayload, mode: StagingMode
    ) -> AsyncIterator[StagedPayload]:
        """Stage ``payload`` for the duration of the ``async with`` block."""
        handle = await self.stage(payload, mode)
        try:
            yield handle
        finally:
            self.release(handle)


def _write_exclusive(path: Path, data: bytes) -> None:
    """Write ``data`` to a new file, removing any partial file on failure."""
    fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_EXCL, 0o600)
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(data)
    except OSError:
        try:
            path.unlink()
        except OSError:
            pass
        raise
