"""Channel-aware IPC client.

Bundles a channel with one dispatcher and one correlator so callers only
deal with ``send`` and ``request``. Works with any Channel implementation
(WebSocket, stdio subprocess, or mock).
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from .channel.base import BaseChannel, Channel
from .channel.memory import MockChannel
from .channel.stdio import StdioChannel
from .channel.websocket import WebSocketChannel
from .config import DEFAULT_TIMEOUT, IpcConfig
from .correlator import INHERIT_TIMEOUT, PendingRequest, RequestCorrelator
from .dispatcher import CommandDispatcher
from .protocol import commands
from .protocol.commands import CommandType, Mode
from .protocol.envelope import Envelope


@dataclass
class LightingAPI:
    """Lighting controller commands."""

    _client: IpcClient

    def set_color(self, color: int) -> None:
        """Set the static color (0xRRGGBB)."""
        self._client.send_envelope(commands.set_color(color))

    def set_toggle_color(self, color: int) -> None:
        """Set the color alternated with the static color."""
        self._client.send_envelope(commands.set_toggle_color(color))

    def set_toggle_speed(self, speed: int | None) -> None:
        """Set the toggle period in milliseconds (None switches it off)."""
        self._client.send_envelope(commands.set_toggle_speed(speed))

    def set_strobe_speed(self, speed: int | None) -> None:
        """Set the strobe period in milliseconds (None switches it off)."""
        self._client.send_envelope(commands.set_strobe_speed(speed))

    def set_mode(self, mode: str | Mode) -> None:
        """Switch the controller mode (black, manual, auto)."""
        self._client.send_envelope(commands.set_mode(mode))

    async def get_state(self) -> dict[str, Any]:
        """Fetch the host's current lighting state."""
        return await self._client.request(CommandType.GET_STATE)

    async def ping(self) -> dict[str, Any]:
        """Round-trip a ping through the host."""
        return await self._client.request(CommandType.PING)


class IpcClient:
    """IPC client over a single shared channel.

    Usage:
        # WebSocket host
        async with create_websocket_client("ws://127.0.0.1:4096/ipc") as client:
            client.send("setMode", {"mode": "auto"})
            state = await client.request("getState")

        # Testing
        channel = MockChannel()
        channel.set_response("ping", {})
        client = create_test_client(channel)
    """

    def __init__(
        self,
        channel: Channel,
        *,
        timeout: float | None = None,
        correlate: bool = True,
        owns_channel: bool = True,
    ) -> None:
        self.channel = channel
        self.dispatcher = CommandDispatcher(channel)
        self.correlator = RequestCorrelator(
            channel, self.dispatcher, timeout=timeout, correlate=correlate
        )
        self._owns_channel = owns_channel

    @property
    def is_open(self) -> bool:
        """Check if the channel is open."""
        return self.channel.is_open

    @property
    def lights(self) -> LightingAPI:
        """Lighting controller commands."""
        return LightingAPI(_client=self)

    @property
    def pending(self) -> list[PendingRequest]:
        """Outstanding requests, oldest first."""
        return self.correlator.pending

    def send(self, command: str | CommandType, payload: dict[str, Any] | None = None) -> None:
        """Fire-and-forget a command."""
        self.dispatcher.send(command, payload)

    def send_envelope(self, envelope: Envelope) -> None:
        """Fire-and-forget a prebuilt envelope."""
        self.dispatcher.send(envelope.type, envelope.payload)

    async def request(
        self,
        command: str | CommandType,
        payload: dict[str, Any] | None = None,
        *,
        timeout: float | None = INHERIT_TIMEOUT,
    ) -> dict[str, Any]:
        """Send a command and wait for its ``-response`` payload."""
        return await self.correlator.request(command, payload, timeout=timeout)

    def submit(
        self,
        command: str | CommandType,
        payload: dict[str, Any] | None = None,
        *,
        timeout: float | None = INHERIT_TIMEOUT,
    ) -> PendingRequest:
        """Send a command and return a cancellable pending handle."""
        return self.correlator.submit(command, payload, timeout=timeout)

    async def open(self) -> None:
        """Open the channel."""
        await self.channel.open()

    async def close(self) -> None:
        """Cancel outstanding requests and close the channel if owned."""
        self.correlator.cancel_all()
        if self._owns_channel:
            await self.channel.close()

    async def __aenter__(self) -> IpcClient:
        await self.open()
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()


# Factory functions


def create_channel(config: IpcConfig) -> BaseChannel:
    """Build the channel described by a config."""
    if config.mode == "stdio":
        return StdioChannel(
            config.command,
            working_directory=config.working_directory,
            env=config.env,
        )
    if config.mode == "mock":
        return MockChannel()
    return WebSocketChannel(config.url)


def create_client(config: IpcConfig | None = None) -> IpcClient:
    """Create a client from a config (default: from environment)."""
    config = config or IpcConfig.from_env()
    return IpcClient(
        create_channel(config),
        timeout=config.timeout,
        correlate=config.correlate,
    )


def create_websocket_client(
    url: str | None = None,
    timeout: float | None = DEFAULT_TIMEOUT,
) -> IpcClient:
    """Create a client connected to a host's WebSocket endpoint."""
    return create_client(IpcConfig(mode="websocket", timeout=timeout, **_only_set(url=url)))


def create_subprocess_client(
    command: list[str] | None = None,
    working_directory: str | None = None,
    env: dict[str, str] | None = None,
    timeout: float | None = DEFAULT_TIMEOUT,
) -> IpcClient:
    """Create a client that launches the host as a subprocess."""
    return create_client(
        IpcConfig(
            mode="stdio",
            working_directory=working_directory,
            env=env,
            timeout=timeout,
            **_only_set(command=command),
        )
    )


def create_test_client(channel: MockChannel | None = None, **kwargs: Any) -> IpcClient:
    """Create a client over a mock channel.

    A passed-in channel stays owned by the caller.
    """
    return IpcClient(channel or MockChannel(), owns_channel=channel is None, **kwargs)


def _only_set(**values: Any) -> dict[str, Any]:
    return {k: v for k, v in values.items() if v is not None}
