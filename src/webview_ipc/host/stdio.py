"""Development host over stdio.

Speaks the envelope protocol over stdin/stdout using JSON lines, so a
StdioChannel can launch it as a subprocess:
- Reads one envelope per line from stdin
- Writes responses and broadcasts to stdout, one per line
- Logs go to stderr, never stdout

Wire format:
    stdin:  {"type": "getState", "requestId": "req_1"}\\n
    stdout: {"color": 0, ..., "requestId": "req_1", "type": "getState-response"}\\n
"""

from __future__ import annotations

import asyncio
import logging
import sys
from typing import BinaryIO

from .core import IpcHost
from .lighting import create_lighting_host

logger = logging.getLogger(__name__)

ENCODING = "utf-8"
NEWLINE = "\n"


class StdioHostServer:
    """Serves an IpcHost over binary stdin/stdout streams.

    Usage:
        server = StdioHostServer(create_lighting_host())
        await server.run()  # Blocks until stdin closes
    """

    def __init__(
        self,
        host: IpcHost,
        stdin: BinaryIO | None = None,
        stdout: BinaryIO | None = None,
    ):
        self.host = host
        self._stdin = stdin or sys.stdin.buffer
        self._stdout = stdout or sys.stdout.buffer
        self._running = False

    async def run(self) -> None:
        """Process lines until stdin closes."""
        self._running = True
        disconnect = self.host.connect(self._write)

        try:
            while self._running:
                line = await self._read_line()
                if line is None:
                    logger.info("stdin closed, shutting down")
                    break

                line = line.strip()
                if not line:
                    continue

                # Skip UTF-8 BOM if present at start
                if line.startswith("\ufeff"):
                    line = line[1:]

                reply = await self.host.handle_message(line)
                if reply is not None:
                    await self._write(reply)

        except asyncio.CancelledError:
            logger.info("stdio host cancelled")
        finally:
            self._running = False
            disconnect()

    async def stop(self) -> None:
        """Stop after the current line."""
        self._running = False

    async def _read_line(self) -> str | None:
        loop = asyncio.get_running_loop()
        data = await loop.run_in_executor(None, self._stdin.readline)
        if not data:
            return None
        return data.decode(ENCODING, errors="replace")

    async def _write(self, raw: str) -> None:
        self._stdout.write((raw + NEWLINE).encode(ENCODING))
        self._stdout.flush()


async def run_stdio_host(host: IpcHost | None = None) -> None:
    """Run the lighting host over the process's stdio."""
    await StdioHostServer(host or create_lighting_host()).run()
