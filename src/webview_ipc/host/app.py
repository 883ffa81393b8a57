"""Development host application.

Creates the Starlette ASGI application serving:
- /health - Health check with connection count
- /ipc - WebSocket endpoint carrying one envelope per text frame
"""

from __future__ import annotations

import asyncio
import logging

from starlette.applications import Starlette
from starlette.middleware import Middleware
from starlette.middleware.cors import CORSMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse
from starlette.routing import Route, WebSocketRoute
from starlette.websockets import WebSocket, WebSocketDisconnect

from .core import IpcHost
from .lighting import create_lighting_host

logger = logging.getLogger(__name__)


class IpcWebSocketHandler:
    """Handles one UI connection on the /ipc endpoint.

    Each inbound frame goes through the host; replies and broadcasts share
    a lock so frames are never interleaved.
    """

    def __init__(self, websocket: WebSocket, host: IpcHost):
        self.websocket = websocket
        self.host = host
        self._send_lock = asyncio.Lock()

    async def send(self, raw: str) -> None:
        async with self._send_lock:
            await self.websocket.send_text(raw)

    async def handle(self) -> None:
        """Main handler for the WebSocket connection."""
        await self.websocket.accept()
        disconnect = self.host.connect(self.send)

        try:
            while True:
                raw = await self.websocket.receive_text()
                reply = await self.host.handle_message(raw)
                if reply is not None:
                    await self.send(reply)
        except WebSocketDisconnect:
            logger.info("IPC WebSocket disconnected")
        except Exception as e:
            logger.exception(f"IPC WebSocket error: {e}")
        finally:
            disconnect()


def create_app(host: IpcHost | None = None) -> Starlette:
    """Create the host application.

    Args:
        host: Host to serve (default: lighting controller host)

    Returns:
        Configured Starlette application
    """
    host = host or create_lighting_host()

    async def health_check(request: Request) -> JSONResponse:
        """Health check endpoint."""
        return JSONResponse(
            {
                "status": "ok",
                "connections": host.connection_count,
                "commands": host.commands,
            }
        )

    async def ipc_endpoint(websocket: WebSocket) -> None:
        await IpcWebSocketHandler(websocket, host).handle()

    routes = [
        Route("/health", health_check, methods=["GET"]),
        WebSocketRoute("/ipc", ipc_endpoint),
    ]

    # CORS middleware for local development
    middleware = [
        Middleware(
            CORSMiddleware,
            allow_origins=["http://localhost:*", "http://127.0.0.1:*"],
            allow_methods=["*"],
            allow_headers=["*"],
        ),
    ]

    app = Starlette(routes=routes, middleware=middleware)
    app.state.host = host
    return app
