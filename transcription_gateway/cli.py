"""Command-line interface for the transcription gateway.

WHY: Operators need to run the HTTP server, and it is handy to push a local
clip through exactly the same dispatch, wait, and normalize path without
standing up a client.

HOW: argparse with two subcommands. ``serve`` starts uvicorn with the
FastAPI app. ``transcribe`` reads a file, runs TranscriptionGateway in
process via asyncio.run(), prints the transcript to stdout and status lines
to stderr.

RULES:
- Status output goes to stderr (not stdout) so the transcript can be piped
- ``transcribe`` exits 1 on any gateway error, 130 on Ctrl-C
- Content type is inferred from the file extension unless given
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from dataclasses import replace
from pathlib import Path
from typing import List, Optional

from transcription_gateway.config import (
    DEFAULT_CONTENT_TYPE,
    HOST,
    LOG_LEVEL,
    PORT,
    SUPPORTED_CONTENT_TYPES,
    GatewaySettings,
)
from transcription_gateway.errors import GatewayError
from transcription_gateway.providers import PROVIDERS


def _status(msg: str) -> None:
    """Print a status message to stderr."""
    print(msg, file=sys.stderr, flush=True)


def configure_logging(level: str = LOG_LEVEL) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
    )


def content_type_for_path(path: Path) -> str:
    """First registered content type whose extension matches ``path``."""
    ext = path.suffix.lower()
    for content_type, suffix in SUPPORTED_CONTENT_TYPES.items():
        if suffix == ext:
            return content_type
    return DEFAULT_CONTENT_TYPE


async def _run_transcribe(args: argparse.Namespace) -> int:
    from transcription_gateway.gateway import TranscriptionGateway

    input_path = Path(args.input_file).resolve()
    if not input_path.is_file():
        _status("Error: File not found: {}".format(input_path))
        return 1

    settings = GatewaySettings.from_env()
    if args.poll_interval is not None:
        settings = replace(settings, poll_interval_s=args.poll_interval)
    if args.max_wait is not None:
        settings = replace(settings, max_wait_s=args.max_wait)

    content_type = args.content_type or content_type_for_path(input_path)
    _status("Transcribing {} ({})...".format(input_path.name, content_type))

    gateway = TranscriptionGateway(settings=settings)
    response = await gateway.transcribe(
        input_path.read_bytes(),
        content_type,
        args.provider,
        on_status=_status,
    )

    try:
        text = response.raise_for_error()
    except GatewayError as exc:
        _status("Error: {}".format(exc))
        return 1

    print(text)
    return 0


def _run_serve(args: argparse.Namespace) -> int:
    from transcription_gateway.server.app import run_api

    run_api(host=args.host, port=args.port)
    return 0


def build_parser() -> argparse.ArgumentParser:
    """Build the argparse parser for the CLI."""
    parser = argparse.ArgumentParser(
        prog="transcription-gateway",
        description="Dispatch audio clips to speech-to-text providers and "
                    "return normalized transcripts.",
    )
    parser.add_argument(
        "--log-level",
        default=LOG_LEVEL,
        help="Logging level (default: %(default)s).",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    serve = subparsers.add_parser("serve", help="Run the HTTP API server.")
    serve.add_argument("--host", default=HOST, help="Bind address (default: %(default)s).")
    serve.add_argument("--port", type=int, default=PORT, help="Port (default: %(default)s).")

    transcribe = subparsers.add_parser("transcribe", help="Transcribe a local audio file.")
    transcribe.add_argument("input_file", help="Path to the audio file to transcribe.")
    transcribe.add_argument(
        "--provider",
        default=None,
        help="Provider selector. Available: {}. Default: configured default.".format(
            ", ".join(s.value for s in PROVIDERS)
        ),
    )
    transcribe.add_argument(
        "--content-type",
        default=None,
        help="MIME type of the audio (default: inferred from the extension).",
    )
    transcribe.add_argument(
        "--poll-interval",
        type=float,
        default=None,
        help="Seconds between status polls for polling providers.",
    )
    transcribe.add_argument(
        "--max-wait",
        type=float,
        default=None,
        help="Give up after this many seconds of polling.",
    )
    return parser


def main(argv: Optional[List[str]] = None) -> None:
    """Entry point for the ``transcription-gateway`` console script."""
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(args.log_level)

    if args.command == "serve":
        sys.exit(_run_serve(args))

    try:
        code = asyncio.run(_run_transcribe(args))
    except KeyboardInterrupt:
        _status("\nCancelled by user.")
        sys.exit(130)
    sys.exit(code)


if __name__ == "__main__":
    main()
