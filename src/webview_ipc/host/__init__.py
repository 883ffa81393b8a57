"""Development host for the webview IPC protocol.

Stands in for the native webview host during development and testing:
- IpcHost: command handler registry and connected UIs
- LightingController: the lighting controller's state and commands
- create_app: Starlette application exposing /ipc over WebSocket
- StdioHostServer: the same host over JSON lines on stdio
"""

from .app import create_app
from .core import Handler, IpcHost
from .lighting import LightingController, LightingState, create_lighting_host
from .stdio import StdioHostServer, run_stdio_host

__all__ = [
    "Handler",
    "IpcHost",
    "LightingController",
    "LightingState",
    "StdioHostServer",
    "create_app",
    "create_lighting_host",
    "run_stdio_host",
]
