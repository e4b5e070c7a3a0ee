"""Package entry point for ``python -m transcription_gateway``.

Delegates to the CLI's main() function.
"""

from transcription_gateway.cli import main

if __name__ == "__main__":
    main()
