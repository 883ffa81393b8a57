"""Client configuration.

Values come from keyword arguments, environment variables, or CLI options
(highest precedence last):

    WEBVIEW_IPC_MODE       websocket | stdio | mock
    WEBVIEW_IPC_URL        WebSocket endpoint of the host
    WEBVIEW_IPC_COMMAND    Host command line for stdio mode
    WEBVIEW_IPC_TIMEOUT    Request timeout in seconds (0 or "none" disables)
    WEBVIEW_IPC_CORRELATE  Attach requestId to requests (1/true/yes)
"""

from __future__ import annotations

import os
import shlex
from collections.abc import Mapping
from dataclasses import dataclass, field

DEFAULT_URL = "ws://127.0.0.1:4096/ipc"
DEFAULT_TIMEOUT = 30.0

MODES = ("websocket", "stdio", "mock")


def _default_command() -> list[str]:
    return ["webview-ipc", "host", "--stdio"]


def _parse_bool(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes")


def _parse_timeout(value: str) -> float | None:
    value = value.strip().lower()
    if value in ("", "none", "off"):
        return None
    timeout = float(value)
    return timeout if timeout > 0 else None


@dataclass
class IpcConfig:
    """Configuration for IPC clients."""

    # Channel kind
    mode: str = "websocket"

    # WebSocket settings
    url: str = DEFAULT_URL

    # Stdio settings (host launched as subprocess)
    command: list[str] = field(default_factory=_default_command)
    working_directory: str | None = None
    env: dict[str, str] | None = None

    # Requests
    timeout: float | None = DEFAULT_TIMEOUT
    correlate: bool = True

    def __post_init__(self) -> None:
        if self.mode not in MODES:
            raise ValueError(f"Unknown channel mode '{self.mode}', expected one of {MODES}")
        if self.timeout is not None and self.timeout <= 0:
            self.timeout = None

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None, **overrides: object) -> IpcConfig:
        """Build a config from WEBVIEW_IPC_* environment variables.

        Keyword overrides that are not None take precedence.
        """
        environ = os.environ if environ is None else environ
        values: dict[str, object] = {}

        if mode := environ.get("WEBVIEW_IPC_MODE"):
            values["mode"] = mode.strip().lower()
        if url := environ.get("WEBVIEW_IPC_URL"):
            values["url"] = url.strip()
        if command := environ.get("WEBVIEW_IPC_COMMAND"):
            values["command"] = shlex.split(command)
        if "WEBVIEW_IPC_TIMEOUT" in environ:
            values["timeout"] = _parse_timeout(environ["WEBVIEW_IPC_TIMEOUT"])
        if "WEBVIEW_IPC_CORRELATE" in environ:
            values["correlate"] = _parse_bool(environ["WEBVIEW_IPC_CORRELATE"])

        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)  # type: ignore[arg-type]
