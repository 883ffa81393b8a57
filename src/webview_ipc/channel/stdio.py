"""Channel over a host subprocess's stdin/stdout.

Launches the host as a subprocess and communicates via newline-delimited
JSON, one envelope per line.

Wire format:
- Outbound: JSON object + newline to subprocess stdin
- Inbound: JSON object + newline from subprocess stdout
- stderr is forwarded to the debug log
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import os

from ..errors import ChannelUnavailableError
from .base import BaseChannel

logger = logging.getLogger(__name__)

ENCODING = "utf-8"
NEWLINE = "\n"

# Largest stdout line accepted from the host; longer lines are discarded
STREAM_LIMIT = 16 * 1024 * 1024


class StdioChannel(BaseChannel):
    """Channel to a host process speaking JSON lines."""

    def __init__(
        self,
        command: list[str],
        working_directory: str | None = None,
        env: dict[str, str] | None = None,
        limit: int = STREAM_LIMIT,
    ) -> None:
        super().__init__()
        if not command:
            raise ValueError("Host command must not be empty")
        self.command = command
        self.working_directory = working_directory
        self.env = env
        self.limit = limit
        self._process: asyncio.subprocess.Process | None = None
        self._reader_task: asyncio.Task[None] | None = None
        self._stderr_task: asyncio.Task[None] | None = None

    @property
    def pid(self) -> int | None:
        """Process id of the running host, if any."""
        return self._process.pid if self._process else None

    async def _do_open(self) -> None:
        """Launch subprocess and start the readers."""
        env = None
        if self.env:
            env = {**os.environ, **self.env}

        self._process = await asyncio.create_subprocess_exec(
            *self.command,
            stdin=asyncio.subprocess.PIPE,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            cwd=self.working_directory,
            env=env,
            limit=self.limit,
        )

        self._reader_task = asyncio.create_task(self._read_loop())
        self._stderr_task = asyncio.create_task(self._read_stderr())

        logger.info(f"Launched host: {' '.join(self.command)} (pid={self._process.pid})")

    async def _do_close(self) -> None:
        """Terminate subprocess."""
        for task in (self._reader_task, self._stderr_task):
            if task and task is not asyncio.current_task():
                task.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await task
        self._reader_task = None
        self._stderr_task = None

        if self._process:
            if self._process.stdin:
                self._process.stdin.close()
            if self._process.returncode is None:
                self._process.terminate()
                try:
                    await asyncio.wait_for(self._process.wait(), timeout=5.0)
                except TimeoutError:
                    self._process.kill()
                    await self._process.wait()
            logger.info(f"Host terminated (pid={self._process.pid})")
            self._process = None

    async def flush(self) -> None:
        """Wait for buffered stdin writes to reach the host."""
        if self._process and self._process.stdin and not self._process.stdin.is_closing():
            with contextlib.suppress(ConnectionError):
                await self._process.stdin.drain()

    def _do_emit(self, raw: str) -> None:
        """Write one JSON line to stdin. The write is buffered, not awaited."""
        if not self._process or not self._process.stdin or self._process.stdin.is_closing():
            raise ChannelUnavailableError("Host process not running")

        self._process.stdin.write((raw + NEWLINE).encode(ENCODING))

    async def _read_loop(self) -> None:
        """Background task dispatching stdout lines to listeners."""
        if not self._process or not self._process.stdout:
            return

        try:
            while True:
                try:
                    line = await self._process.stdout.readline()
                except ValueError:
                    # readline already dropped the overlong data
                    logger.warning(f"Discarding host line over {self.limit} bytes")
                    continue
                if not line:
                    # EOF - host exited
                    break

                line_str = line.decode(ENCODING, errors="replace").strip()
                if not line_str:
                    continue

                self._dispatch(line_str)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"Read loop error: {e}")

        logger.info("Host closed its stdout")
        self._mark_closed()

    async def _read_stderr(self) -> None:
        """Read and log stderr output."""
        if not self._process or not self._process.stderr:
            return

        try:
            while True:
                try:
                    line = await self._process.stderr.readline()
                except ValueError:
                    continue
                if not line:
                    break
                logger.debug(f"[host stderr] {line.decode(ENCODING, errors='replace').rstrip()}")
        except asyncio.CancelledError:
            pass
