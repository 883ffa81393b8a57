"""Command vocabulary for the lighting controller.

These are application payloads riding the generic envelope protocol.
The protocol itself does not care about their shape; the factories here
only keep field names consistent between the UI side and the host.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from .envelope import Envelope

# Palette offered by the controller UI (0xRRGGBB)
COLORS: tuple[int, ...] = (
    0x000000,
    0xFF0000,
    0x00FF00,
    0x0000FF,
    0xFFFF00,
    0xFF00FF,
    0x00FFFF,
    0xFFFFFF,
)

# Toggle/strobe periods in milliseconds; None switches the effect off
SPEEDS: tuple[int | None, ...] = (None, 22, 50, 100, 200, 250, 500, 750, 1000)


class CommandType(str, Enum):
    """All commands understood by the lighting host."""

    # One-way state changes
    SET_COLOR = "setColor"
    SET_TOGGLE_COLOR = "setToggleColor"
    SET_TOGGLE_SPEED = "setToggleSpeed"
    SET_STROBE_SPEED = "setStrobeSpeed"
    SET_MODE = "setMode"

    # Requests (answered with "<type>-response")
    GET_STATE = "getState"
    PING = "ping"


class Mode(str, Enum):
    """Controller operating modes."""

    BLACK = "black"
    MANUAL = "manual"
    AUTO = "auto"


def command_name(command: str | CommandType) -> str:
    """Normalize a command to its wire name."""
    return command.value if isinstance(command, CommandType) else command


def create(command: str | CommandType, payload: dict[str, Any] | None = None) -> Envelope:
    """Factory for command envelopes."""
    return Envelope(type=command_name(command), payload=dict(payload or {}))


def format_color(color: int) -> str:
    """Render a packed color as a CSS hex string."""
    return f"#{color:06x}"


def format_speed(speed: int | None) -> str:
    """Render a speed the way the controller buttons label it."""
    return "Off" if speed is None else f"{speed}ms"


# Convenience factories for the controller commands


def set_color(color: int) -> Envelope:
    """Create a setColor command."""
    return create(CommandType.SET_COLOR, {"color": color})


def set_toggle_color(color: int) -> Envelope:
    """Create a setToggleColor command."""
    return create(CommandType.SET_TOGGLE_COLOR, {"color": color})


def set_toggle_speed(speed: int | None) -> Envelope:
    """Create a setToggleSpeed command."""
    return create(CommandType.SET_TOGGLE_SPEED, {"speed": speed})


def set_strobe_speed(speed: int | None) -> Envelope:
    """Create a setStrobeSpeed command."""
    return create(CommandType.SET_STROBE_SPEED, {"speed": speed})


def set_mode(mode: str | Mode) -> Envelope:
    """Create a setMode command."""
    return create(CommandType.SET_MODE, {"mode": mode.value if isinstance(mode, Mode) else mode})
