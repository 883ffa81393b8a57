"""One-way command dispatch.

Fire-and-forget: the envelope is encoded and handed to the channel, and
``send`` returns immediately. Used for state changes the host applies
without a confirmation handshake (e.g. "set this parameter").
"""

from __future__ import annotations

import logging
from typing import Any

from .channel.base import Channel
from .protocol.commands import CommandType, command_name
from .protocol.envelope import encode

logger = logging.getLogger(__name__)


class CommandDispatcher:
    """Sends commands over a channel without awaiting acknowledgement."""

    def __init__(self, channel: Channel) -> None:
        self.channel = channel

    def send(self, command: str | CommandType, payload: dict[str, Any] | None = None) -> None:
        """Encode and emit one command.

        Raises:
            ChannelUnavailableError: If the channel is not open
            ValueError: If the command name is empty
        """
        name = command_name(command)
        raw = encode(name, payload)
        logger.debug(f"Send {name}")
        self.channel.emit(raw)
