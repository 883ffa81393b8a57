"""webview-ipc - command/response messaging over a shared host channel.

Provides:
- Envelope codec: one flat JSON object per message, keyed by "type"
- CommandDispatcher: fire-and-forget commands
- RequestCorrelator: requests resolved by their "<type>-response"
- Channels: WebSocket, stdio subprocess, and in-memory mock
- IpcClient: all of the above over one channel
"""

from .channel import (
    BaseChannel,
    Channel,
    ChannelState,
    MockChannel,
    StdioChannel,
    WebSocketChannel,
)
from .client import (
    IpcClient,
    LightingAPI,
    create_channel,
    create_client,
    create_subprocess_client,
    create_test_client,
    create_websocket_client,
)
from .config import IpcConfig
from .correlator import PendingRequest, RequestCorrelator
from .dispatcher import CommandDispatcher
from .errors import ChannelUnavailableError, DecodeError, IpcError, RequestTimeoutError
from .protocol import CommandType, Envelope, Mode, decode, encode, response_type

__version__ = "0.1.0"

__all__ = [
    # Client
    "IpcClient",
    "LightingAPI",
    "create_channel",
    "create_client",
    "create_subprocess_client",
    "create_test_client",
    "create_websocket_client",
    "IpcConfig",
    # Core
    "CommandDispatcher",
    "RequestCorrelator",
    "PendingRequest",
    # Protocol
    "Envelope",
    "CommandType",
    "Mode",
    "encode",
    "decode",
    "response_type",
    # Channels
    "Channel",
    "BaseChannel",
    "ChannelState",
    "MockChannel",
    "StdioChannel",
    "WebSocketChannel",
    # Errors
    "IpcError",
    "DecodeError",
    "ChannelUnavailableError",
    "RequestTimeoutError",
]
