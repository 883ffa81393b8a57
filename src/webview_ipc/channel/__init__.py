"""Channel adapters.

Provides interchangeable wrappers around the host message primitive:
- MockChannel - in-memory, for tests and embedding
- StdioChannel - host subprocess speaking JSON lines
- WebSocketChannel - host ``/ipc`` WebSocket endpoint

The dispatcher and correlator accept any Channel, so callers can switch
between channels without code changes.
"""

from .base import BaseChannel, Channel, ChannelState, Listener, Unsubscribe
from .memory import MockChannel
from .stdio import StdioChannel
from .websocket import WebSocketChannel

__all__ = [
    # Base abstractions
    "BaseChannel",
    "Channel",
    "ChannelState",
    "Listener",
    "Unsubscribe",
    # Implementations
    "MockChannel",
    "StdioChannel",
    "WebSocketChannel",
]
