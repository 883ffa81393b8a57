"""Host-side message handling.

The host is the other end of the channel: it applies commands and answers
requests. Handlers are registered per command type and may be sync or
async. A handler returning a mapping is answered with a
``<type>-response`` envelope (echoing the request's ``requestId``); a
handler returning None is treated as one-way.
"""

from __future__ import annotations

import inspect
import logging
from collections.abc import Awaitable, Callable
from typing import Any

from ..errors import DecodeError
from ..protocol.commands import CommandType, command_name
from ..protocol.envelope import CORRELATION_KEY, decode, encode, response_type

logger = logging.getLogger(__name__)

HandlerResult = dict[str, Any] | None
Handler = Callable[[dict[str, Any]], HandlerResult | Awaitable[HandlerResult]]

# Writes one raw message to a connected UI
Sender = Callable[[str], Awaitable[None]]


class IpcHost:
    """Command handler registry plus the set of connected UIs.

    Usage:
        host = IpcHost()

        @host.on("ping")
        def ping(payload):
            return {}

        reply = await host.handle_message('{"type": "ping", "requestId": "r1"}')
        # '{"requestId": "r1", "type": "ping-response"}'
    """

    def __init__(self) -> None:
        self._handlers: dict[str, Handler] = {}
        self._connections: list[Sender] = []

    @property
    def commands(self) -> list[str]:
        """Registered command types."""
        return sorted(self._handlers)

    @property
    def connection_count(self) -> int:
        """Number of connected UIs."""
        return len(self._connections)

    def on(self, command: str | CommandType, handler: Handler | None = None) -> Any:
        """Register a handler, directly or as a decorator."""
        name = command_name(command)

        def register(fn: Handler) -> Handler:
            self._handlers[name] = fn
            return fn

        if handler is not None:
            return register(handler)
        return register

    def connect(self, sender: Sender) -> Callable[[], None]:
        """Track a connected UI; returns a function that forgets it."""
        self._connections.append(sender)
        logger.info(f"IPC connection opened ({len(self._connections)} active)")

        def disconnect() -> None:
            if sender in self._connections:
                self._connections.remove(sender)
                logger.info(f"IPC connection closed ({len(self._connections)} active)")

        return disconnect

    async def handle_message(self, raw: str) -> str | None:
        """Handle one inbound message.

        Returns:
            The raw response to send back, or None for one-way commands,
            unknown commands, malformed input and handler failures.
        """
        try:
            envelope = decode(raw)
        except DecodeError as e:
            logger.warning(f"Invalid IPC message: {e}")
            return None

        logger.debug(f"Recv {envelope.type}")

        handler = self._handlers.get(envelope.type)
        if handler is None:
            logger.info(f"No handler for '{envelope.type}', ignoring")
            return None

        try:
            result = handler(envelope.data())
            if inspect.isawaitable(result):
                result = await result
        except Exception:
            logger.exception(f"Error handling {envelope.type}")
            return None

        if result is None:
            return None

        reply = dict(result)
        if envelope.request_id is not None:
            reply[CORRELATION_KEY] = envelope.payload[CORRELATION_KEY]
        logger.debug(f"Send {response_type(envelope.type)}")
        return encode(response_type(envelope.type), reply)

    async def broadcast(self, event_type: str, payload: dict[str, Any] | None = None) -> int:
        """Send an envelope to every connected UI.

        Returns:
            Number of connections the message was written to
        """
        raw = encode(event_type, payload)
        delivered = 0
        for sender in list(self._connections):
            try:
                await sender(raw)
                delivered += 1
            except Exception as e:
                logger.warning(f"Broadcast of {event_type} failed: {e}")
        return delivered
