"""Channel abstraction.

A channel wraps the host-provided bidirectional message primitive:
- emit(raw): write one text message to the host, never blocking the caller
- subscribe(listener): receive every inbound text message, in order

Delivery is broadcast. Every subscriber sees every inbound message and
filtering by type is left to the layers above (see RequestCorrelator).

Architecture:
- Channel is the PROTOCOL (interface) consumed by dispatcher/correlator
- BaseChannel implements listener bookkeeping and the state machine
- Subclasses implement the actual I/O (_do_open, _do_close, _do_emit)
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Callable
from enum import Enum
from typing import Any, Protocol, runtime_checkable

from ..errors import ChannelUnavailableError

logger = logging.getLogger(__name__)

# Inbound message callback, invoked on the event loop thread
Listener = Callable[[str], None]

# Deregistration handle returned by subscribe()
Unsubscribe = Callable[[], None]


class ChannelState(str, Enum):
    """Connection state machine."""

    CLOSED = "closed"
    OPENING = "opening"
    OPEN = "open"


@runtime_checkable
class Channel(Protocol):
    """Protocol for host channels.

    All channels must implement:
    - open/close: lifecycle management
    - emit: enqueue one outbound text message
    - subscribe: register an inbound message listener
    - on_close: be told when the channel goes away
    """

    @property
    def is_open(self) -> bool:
        """Check if the channel can carry messages."""
        ...

    async def open(self) -> None:
        """Open the channel.

        Raises:
            ChannelUnavailableError: If the host cannot be reached
        """
        ...

    async def close(self) -> None:
        """Close the channel."""
        ...

    async def flush(self) -> None:
        """Wait until emitted messages have been handed to the transport."""
        ...

    def emit(self, raw: str) -> None:
        """Write one message to the host.

        Raises:
            ChannelUnavailableError: If the channel is not open
        """
        ...

    def subscribe(self, listener: Listener) -> Unsubscribe:
        """Register a listener for inbound messages."""
        ...

    def on_close(self, callback: Callable[[], None]) -> Unsubscribe:
        """Register a callback fired each time the channel closes."""
        ...


class BaseChannel(ABC):
    """Base class for channels with common functionality.

    Provides:
    - State management
    - Listener registration and ordered broadcast
    - Close notification
    """

    def __init__(self) -> None:
        self._state = ChannelState.CLOSED
        self._listeners: list[Listener] = []
        self._close_callbacks: list[Callable[[], None]] = []

    @property
    def state(self) -> ChannelState:
        """Current channel state."""
        return self._state

    @property
    def is_open(self) -> bool:
        """Check if the channel can carry messages."""
        return self._state == ChannelState.OPEN

    @property
    def listener_count(self) -> int:
        """Number of registered inbound listeners."""
        return len(self._listeners)

    async def open(self) -> None:
        """Open the channel."""
        if self._state != ChannelState.CLOSED:
            return

        self._state = ChannelState.OPENING
        try:
            await self._do_open()
        except ChannelUnavailableError:
            self._state = ChannelState.CLOSED
            raise
        except Exception as e:
            self._state = ChannelState.CLOSED
            raise ChannelUnavailableError(f"Failed to open channel: {e}") from e

        self._state = ChannelState.OPEN
        logger.info(f"{self.__class__.__name__} opened")

    async def close(self) -> None:
        """Close the channel and release its resources.

        Also reaps resources left behind when the remote side went away
        first, so it is safe to call on an already closed channel.
        """
        try:
            if self.is_open:
                await self.flush()
            await self._do_close()
        finally:
            self._mark_closed()

    async def flush(self) -> None:
        """Wait until emitted messages have been handed to the transport."""
        return None

    def emit(self, raw: str) -> None:
        """Write one message to the host without waiting for delivery."""
        if not self.is_open:
            raise ChannelUnavailableError(f"{self.__class__.__name__} is not open")
        self._do_emit(raw)

    def subscribe(self, listener: Listener) -> Unsubscribe:
        """Register a listener; returns an idempotent unsubscribe function."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def on_close(self, callback: Callable[[], None]) -> Unsubscribe:
        """Register a callback fired each time the channel closes."""
        self._close_callbacks.append(callback)

        def unsubscribe() -> None:
            if callback in self._close_callbacks:
                self._close_callbacks.remove(callback)

        return unsubscribe

    def _dispatch(self, raw: str) -> None:
        """Broadcast one inbound message to every active listener.

        Listeners removed during dispatch are skipped. A failing listener
        never affects the others.
        """
        for listener in list(self._listeners):
            if listener not in self._listeners:
                continue
            try:
                listener(raw)
            except Exception:
                logger.exception("Error in channel listener")

    def _mark_closed(self) -> None:
        """Transition to CLOSED and notify close callbacks."""
        if self._state == ChannelState.CLOSED:
            return

        self._state = ChannelState.CLOSED
        logger.info(f"{self.__class__.__name__} closed")

        for callback in list(self._close_callbacks):
            try:
                callback()
            except Exception:
                logger.exception("Error in channel close callback")

    # Abstract methods for subclasses
    @abstractmethod
    async def _do_open(self) -> None:
        """Implementation-specific open logic."""
        ...

    @abstractmethod
    async def _do_close(self) -> None:
        """Implementation-specific close logic."""
        ...

    @abstractmethod
    def _do_emit(self, raw: str) -> None:
        """Implementation-specific send logic. Must not block."""
        ...

    async def __aenter__(self) -> BaseChannel:
        await self.open()
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()
