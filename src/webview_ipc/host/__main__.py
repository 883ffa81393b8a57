"""Run the lighting host over stdio: ``python -m webview_ipc.host``."""

import asyncio
import logging
import sys

from .stdio import run_stdio_host


def main() -> None:
    """Synchronous entry point."""
    # Configure logging to stderr (protocol goes to stdout)
    logging.basicConfig(
        level=logging.WARNING,
        format="%(levelname)s: %(message)s",
        stream=sys.stderr,
    )
    asyncio.run(run_stdio_host())


if __name__ == "__main__":
    main()
