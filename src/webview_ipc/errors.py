"""Error types for the IPC layer.

Only application-level failures reach callers:
- ChannelUnavailableError: the host channel is missing or closed
- RequestTimeoutError: no matching response arrived within the deadline

DecodeError is raised by the codec and handled at the channel boundary;
malformed inbound traffic is dropped, never surfaced to callers.
"""

from __future__ import annotations


class IpcError(Exception):
    """Base class for all IPC errors."""

    pass


class DecodeError(IpcError, ValueError):
    """Inbound text is not a valid envelope."""

    def __init__(self, message: str, raw: str | None = None) -> None:
        super().__init__(message)
        self.raw = raw


class ChannelUnavailableError(IpcError, ConnectionError):
    """The host channel is missing, not yet open, or already closed."""

    pass


class RequestTimeoutError(IpcError, TimeoutError):
    """A request did not receive its response in time."""

    def __init__(self, request_type: str, timeout: float, request_id: str | None = None) -> None:
        super().__init__(f"No '{request_type}-response' received within {timeout:g}s")
        self.request_type = request_type
        self.timeout = timeout
        self.request_id = request_id
