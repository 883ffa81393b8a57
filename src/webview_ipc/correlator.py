"""Request/response correlation.

``request(type, payload)`` sends a command and resolves exactly once, when
the matching ``<type>-response`` envelope arrives on the shared channel,
no matter how many other messages travel over it concurrently.

Correlation rules:
- Every request gets a unique ``requestId``. When ``correlate`` is on it
  is sent along with the command.
- A response echoing a ``requestId`` resolves only the pending request
  with that id and the expected response type. Unknown ids belong to
  someone else and are ignored.
- A response without ``requestId`` (hosts that do not echo it) is
  consumed by the oldest pending request expecting that response type.
- Malformed inbound text is dropped.

Pending requests live in a registry keyed by request id and are removed
when they resolve, time out, get cancelled, or the channel closes. The
correlator keeps one channel listener while anything is pending and
deregisters it once the registry is empty.
"""

from __future__ import annotations

import asyncio
import functools
import logging
import uuid
from collections.abc import Generator
from dataclasses import dataclass, field
from typing import Any

from .channel.base import Channel, Unsubscribe
from .dispatcher import CommandDispatcher
from .errors import ChannelUnavailableError, DecodeError, RequestTimeoutError
from .protocol.commands import CommandType, command_name
from .protocol.envelope import CORRELATION_KEY, Envelope, decode, response_type

logger = logging.getLogger(__name__)

# Sentinel: use the correlator's default timeout
INHERIT_TIMEOUT: Any = object()


@dataclass
class PendingRequest:
    """A request waiting for its response.

    Awaiting the object yields the response payload, or raises
    RequestTimeoutError, ChannelUnavailableError, or CancelledError.
    """

    request_id: str
    type: str
    response_type: str
    future: asyncio.Future[dict[str, Any]]
    timeout: float | None = None
    created_at: float = field(default_factory=lambda: asyncio.get_running_loop().time())
    _timer: asyncio.TimerHandle | None = field(default=None, repr=False)
    _correlator: RequestCorrelator | None = field(default=None, repr=False)

    def done(self) -> bool:
        """Check if the request has settled."""
        return self.future.done()

    @property
    def elapsed(self) -> float:
        """Seconds since the request was sent."""
        return self.future.get_loop().time() - self.created_at

    def cancel(self) -> bool:
        """Abandon the request without resolving it."""
        if self._correlator is not None:
            return self._correlator.cancel(self.request_id)
        return self.future.cancel()

    def __await__(self) -> Generator[Any, None, dict[str, Any]]:
        return self.future.__await__()


class RequestCorrelator:
    """Matches inbound response envelopes to outstanding requests.

    Usage:
        correlator = RequestCorrelator(channel, timeout=5.0)
        state = await correlator.request("getState")

        # Or keep a handle to cancel later
        pending = correlator.submit("getState")
        pending.cancel()
    """

    def __init__(
        self,
        channel: Channel,
        dispatcher: CommandDispatcher | None = None,
        *,
        timeout: float | None = None,
        correlate: bool = True,
    ) -> None:
        """Initialize the correlator.

        Args:
            channel: Shared channel to listen on
            dispatcher: Dispatcher used to send commands (default: new one on channel)
            timeout: Default seconds to wait for a response (None waits forever)
            correlate: Whether to attach ``requestId`` to outgoing requests
        """
        self.channel = channel
        self.dispatcher = dispatcher or CommandDispatcher(channel)
        self.timeout = timeout
        self.correlate = correlate
        self._pending: dict[str, PendingRequest] = {}
        self._unsubscribe: Unsubscribe | None = None
        self._unsubscribe_close = channel.on_close(self._on_channel_closed)

    @property
    def pending(self) -> list[PendingRequest]:
        """Snapshot of outstanding requests, oldest first."""
        return list(self._pending.values())

    @property
    def is_listening(self) -> bool:
        """Check if the correlator currently holds a channel listener."""
        return self._unsubscribe is not None

    def submit(
        self,
        command: str | CommandType,
        payload: dict[str, Any] | None = None,
        *,
        timeout: float | None = INHERIT_TIMEOUT,
    ) -> PendingRequest:
        """Send a request and return its pending handle.

        Must be called from within a running event loop.

        Raises:
            ChannelUnavailableError: If the channel is not open
        """
        name = command_name(command)
        if not self.channel.is_open:
            raise ChannelUnavailableError(f"Cannot request '{name}': channel is not open")

        if timeout is INHERIT_TIMEOUT:
            timeout = self.timeout

        loop = asyncio.get_running_loop()
        request_id = f"req_{uuid.uuid4().hex[:12]}"
        pending = PendingRequest(
            request_id=request_id,
            type=name,
            response_type=response_type(name),
            future=loop.create_future(),
            timeout=timeout,
            _correlator=self,
        )

        # Register before sending so a synchronous reply cannot be missed
        self._pending[request_id] = pending
        pending.future.add_done_callback(functools.partial(self._settled, request_id))
        self._ensure_listening()

        outbound = dict(payload or {})
        if self.correlate:
            outbound[CORRELATION_KEY] = request_id

        try:
            self.dispatcher.send(name, outbound)
        except Exception:
            pending.future.cancel()
            self._release(request_id)
            raise

        if timeout is not None:
            pending._timer = loop.call_later(timeout, self._expire, request_id)

        logger.debug(f"Request {name} pending (id={request_id}, timeout={timeout})")
        return pending

    async def request(
        self,
        command: str | CommandType,
        payload: dict[str, Any] | None = None,
        *,
        timeout: float | None = INHERIT_TIMEOUT,
    ) -> dict[str, Any]:
        """Send a request and wait for its response payload.

        Args:
            command: Command type; the response is ``<command>-response``
            payload: Command fields
            timeout: Seconds to wait, None to wait forever (default: correlator's)

        Returns:
            The response fields, without ``type`` and ``requestId``

        Raises:
            ChannelUnavailableError: If the channel is or becomes unavailable
            RequestTimeoutError: If no response arrives in time
        """
        pending = self.submit(command, payload, timeout=timeout)
        try:
            return await pending
        finally:
            if not pending.done():
                self.cancel(pending.request_id)

    def cancel(self, request_id: str) -> bool:
        """Cancel one pending request.

        Returns:
            True if the request was still pending
        """
        pending = self._pending.get(request_id)
        if pending is None or pending.done():
            return False

        pending.future.cancel()
        self._release(request_id)
        logger.debug(f"Request {pending.type} cancelled (id={request_id})")
        return True

    def cancel_all(self) -> int:
        """Cancel every pending request; returns how many were cancelled."""
        return sum(self.cancel(request_id) for request_id in list(self._pending))

    def close(self) -> None:
        """Cancel everything and stop watching the channel."""
        self.cancel_all()
        self._unsubscribe_close()

    def _ensure_listening(self) -> None:
        if self._unsubscribe is None:
            self._unsubscribe = self.channel.subscribe(self._on_message)

    def _release(self, request_id: str) -> None:
        """Drop a request from the registry. Idempotent."""
        pending = self._pending.pop(request_id, None)
        if pending is None:
            return

        if pending._timer is not None:
            pending._timer.cancel()
            pending._timer = None

        if not self._pending and self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    def _settled(self, request_id: str, future: asyncio.Future[dict[str, Any]]) -> None:
        self._release(request_id)
        # Mark the error retrieved; a discarded handle must not be reported at GC
        if not future.cancelled():
            future.exception()

    def _expire(self, request_id: str) -> None:
        pending = self._pending.get(request_id)
        if pending is None or pending.done():
            return

        logger.warning(f"Request {pending.type} timed out after {pending.timeout}s")
        pending.future.set_exception(
            RequestTimeoutError(pending.type, pending.timeout or 0.0, request_id=request_id)
        )
        self._release(request_id)

    def _on_message(self, raw: str) -> None:
        """Channel listener: resolve the request an inbound envelope answers."""
        try:
            envelope = decode(raw)
        except DecodeError as e:
            logger.debug(f"Dropping malformed message: {e}")
            return

        logger.debug(f"Recv {envelope.type}")
        if not envelope.is_response():
            return

        pending = self._match(envelope)
        if pending is None:
            return

        pending.future.set_result(envelope.data())
        logger.debug(f"Request {pending.type} resolved in {pending.elapsed:.3f}s")
        self._release(pending.request_id)

    def _match(self, envelope: Envelope) -> PendingRequest | None:
        """Find the pending request an envelope answers, if any."""
        request_id = envelope.request_id
        if request_id is not None:
            pending = self._pending.get(request_id)
            if pending and not pending.done() and envelope.is_response_to(pending.type):
                return pending
            return None

        # No correlation id: first match wins, in issue order
        for pending in self._pending.values():
            if not pending.done() and envelope.is_response_to(pending.type):
                return pending
        return None

    def _on_channel_closed(self) -> None:
        for pending in list(self._pending.values()):
            if not pending.done():
                error = ChannelUnavailableError(
                    f"Channel closed while waiting for '{pending.response_type}'"
                )
                pending.future.set_exception(error)
            self._release(pending.request_id)
