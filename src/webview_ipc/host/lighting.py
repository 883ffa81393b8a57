"""Lighting controller state held by the development host.

Applies the one-way setter commands, answers ``getState`` and ``ping``,
and broadcasts ``stateChanged`` to every connected UI after each change so
that several UIs stay in sync.
"""

from __future__ import annotations

import logging
from typing import Any

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from ..protocol.commands import CommandType, Mode
from .core import IpcHost

logger = logging.getLogger(__name__)

STATE_CHANGED = "stateChanged"


class LightingState(BaseModel):
    """Current controller settings, serialized with camelCase keys."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        validate_assignment=True,
    )

    color: int = 0x000000
    toggle_color: int = 0x000000
    toggle_speed: int | None = None
    strobe_speed: int | None = None
    mode: Mode = Mode.BLACK

    def to_payload(self) -> dict[str, Any]:
        """Wire representation."""
        return self.model_dump(by_alias=True, mode="json")


class LightingController:
    """Binds a LightingState to a host's command handlers."""

    def __init__(self, host: IpcHost, state: LightingState | None = None) -> None:
        self.host = host
        self.state = state or LightingState()

        host.on(CommandType.SET_COLOR, self._setter("color", "color"))
        host.on(CommandType.SET_TOGGLE_COLOR, self._setter("toggle_color", "color"))
        host.on(CommandType.SET_TOGGLE_SPEED, self._setter("toggle_speed", "speed"))
        host.on(CommandType.SET_STROBE_SPEED, self._setter("strobe_speed", "speed"))
        host.on(CommandType.SET_MODE, self._setter("mode", "mode"))
        host.on(CommandType.GET_STATE, self.get_state)
        host.on(CommandType.PING, self.ping)

    def _setter(self, attribute: str, field: str) -> Any:
        async def handler(payload: dict[str, Any]) -> None:
            # Validation errors propagate to the host, which logs them
            setattr(self.state, attribute, payload.get(field))
            logger.info(f"{attribute} = {getattr(self.state, attribute)!r}")
            await self.host.broadcast(STATE_CHANGED, self.state.to_payload())

        return handler

    def get_state(self, payload: dict[str, Any]) -> dict[str, Any]:
        return self.state.to_payload()

    def ping(self, payload: dict[str, Any]) -> dict[str, Any]:
        return {}


def create_lighting_host(state: LightingState | None = None) -> IpcHost:
    """Create a host preloaded with the lighting controller handlers."""
    host = IpcHost()
    LightingController(host, state)
    return host
