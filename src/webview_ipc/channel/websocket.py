"""Channel over a WebSocket connection to the host.

The host exposes an ``/ipc`` WebSocket endpoint; each text frame carries
one envelope. Outbound frames are queued by ``emit`` and written by a
background task, so emitting never waits on the network.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import Any

import websockets

from ..config import DEFAULT_URL
from .base import BaseChannel

logger = logging.getLogger(__name__)


class WebSocketChannel(BaseChannel):
    """Full-duplex channel to the host's WebSocket endpoint."""

    def __init__(
        self,
        url: str = DEFAULT_URL,
        *,
        ping_interval: float | None = 30,
        ping_timeout: float | None = 10,
    ) -> None:
        super().__init__()
        # Accept http(s) URLs for convenience
        self.url = url.replace("http://", "ws://").replace("https://", "wss://")
        self.ping_interval = ping_interval
        self.ping_timeout = ping_timeout
        self._ws: Any = None  # websockets ClientConnection
        self._outbox: asyncio.Queue[str] | None = None
        self._reader_task: asyncio.Task[None] | None = None
        self._writer_task: asyncio.Task[None] | None = None

    @property
    def pending_writes(self) -> int:
        """Number of emitted messages not yet written to the socket."""
        return self._outbox.qsize() if self._outbox else 0

    async def _do_open(self) -> None:
        """Connect and start the reader/writer tasks."""
        self._ws = await websockets.connect(
            self.url,
            ping_interval=self.ping_interval,
            ping_timeout=self.ping_timeout,
        )
        self._outbox = asyncio.Queue()
        self._reader_task = asyncio.create_task(self._read_loop())
        self._writer_task = asyncio.create_task(self._write_loop())
        logger.info(f"WebSocket connected to {self.url}")

    async def flush(self, timeout: float = 1.0) -> None:
        """Wait (bounded) until queued frames have been written."""
        if not self._outbox or not self._writer_task or self._writer_task.done():
            return
        try:
            await asyncio.wait_for(self._outbox.join(), timeout=timeout)
        except TimeoutError:
            logger.warning(f"{self._outbox.qsize()} frame(s) still queued after {timeout}s")

    async def _do_close(self) -> None:
        """Stop the tasks and close the socket."""
        for task in (self._reader_task, self._writer_task):
            if task and task is not asyncio.current_task():
                task.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await task
        self._reader_task = None
        self._writer_task = None
        self._outbox = None

        if self._ws:
            await self._ws.close()
            self._ws = None

    def _do_emit(self, raw: str) -> None:
        """Queue one frame for the writer task."""
        assert self._outbox is not None
        self._outbox.put_nowait(raw)

    async def _write_loop(self) -> None:
        """Background task draining the outbox."""
        assert self._outbox is not None
        while True:
            raw = await self._outbox.get()
            try:
                await self._ws.send(raw)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                # Fire-and-forget: delivery failures are logged, not raised
                logger.warning(f"WebSocket send failed: {e}")
            finally:
                self._outbox.task_done()

    async def _read_loop(self) -> None:
        """Background task dispatching inbound frames to listeners."""
        try:
            async for data in self._ws:
                if isinstance(data, bytes):
                    data = data.decode("utf-8", errors="replace")
                self._dispatch(data)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"WebSocket receive error: {e}")

        logger.info("WebSocket closed by host")
        self._mark_closed()
