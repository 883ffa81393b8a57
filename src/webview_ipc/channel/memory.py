"""In-memory channel for testing.

Allows injecting inbound messages and canned host responses, and records
every emitted message. No actual I/O - everything is in-memory.
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any

from ..protocol.envelope import CORRELATION_KEY, Envelope, decode, encode, response_type
from .base import BaseChannel, ChannelState

logger = logging.getLogger(__name__)


class MockChannel(BaseChannel):
    """Mock channel standing in for the host.

    Usage:
        channel = MockChannel()
        channel.set_response("getState", {"mode": "auto"})

        client = IpcClient(channel)
        state = await client.request("getState")

        assert channel.emitted_envelopes[0].type == "getState"
    """

    def __init__(self, *, opened: bool = True, echo_correlation: bool = True) -> None:
        super().__init__()
        self.echo_correlation = echo_correlation
        self._emitted: list[str] = []
        self._responses: dict[str, dict[str, Any]] = {}
        if opened:
            self._state = ChannelState.OPEN

    @property
    def emitted(self) -> list[str]:
        """Get all raw messages written to the host."""
        return self._emitted.copy()

    @property
    def emitted_envelopes(self) -> list[Envelope]:
        """Get all written messages, decoded."""
        return [decode(raw) for raw in self._emitted]

    def set_response(self, command_type: str, payload: dict[str, Any] | None = None) -> None:
        """Answer every ``command_type`` command with ``<command_type>-response``.

        Args:
            command_type: The command to answer (e.g., "getState")
            payload: Fields of the response envelope
        """
        self._responses[command_type] = dict(payload or {})

    def deliver(self, message: str | Envelope | dict[str, Any]) -> None:
        """Inject one inbound message, as if the host had sent it."""
        if isinstance(message, Envelope):
            raw = message.to_wire()
        elif isinstance(message, dict):
            raw = json.dumps(message)
        else:
            raw = message

        if not self.is_open:
            logger.debug("Dropping inbound message on closed channel")
            return
        self._dispatch(raw)

    def disconnect(self) -> None:
        """Simulate the host going away."""
        self._mark_closed()

    def clear(self) -> None:
        """Clear recorded messages and canned responses."""
        self._emitted.clear()
        self._responses.clear()

    async def _do_open(self) -> None:
        """No-op for mock."""
        pass

    async def _do_close(self) -> None:
        """No-op for mock."""
        pass

    def _do_emit(self, raw: str) -> None:
        """Record the message and schedule a canned response."""
        self._emitted.append(raw)

        try:
            envelope = decode(raw)
        except ValueError:
            return
        if envelope.type not in self._responses:
            return

        payload = dict(self._responses[envelope.type])
        if self.echo_correlation and envelope.request_id is not None:
            payload[CORRELATION_KEY] = envelope.payload[CORRELATION_KEY]
        reply = encode(response_type(envelope.type), payload)

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            self.deliver(reply)
        else:
            loop.call_soon(self.deliver, reply)
