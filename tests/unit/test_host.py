"""Unit tests for the development host.

Covers handler dispatch, the lighting controller, and the Starlette app
(health route and /ipc WebSocket) via Starlette's TestClient.
"""

from __future__ import annotations

import json
from unittest.mock import AsyncMock

import pytest
from starlette.testclient import TestClient

from webview_ipc.host import IpcHost, LightingState, create_app, create_lighting_host
from webview_ipc.host.lighting import STATE_CHANGED

# =============================================================================
# IpcHost
# =============================================================================


class TestIpcHost:
    """Test message handling and broadcast."""

    @pytest.mark.asyncio
    async def test_reply_echoes_request_id(self):
        host = IpcHost()
        host.on("echo", lambda payload: {"text": payload["text"]})

        reply = await host.handle_message('{"type": "echo", "text": "hi", "requestId": "r1"}')

        assert json.loads(reply) == {"type": "echo-response", "text": "hi", "requestId": "r1"}

    @pytest.mark.asyncio
    async def test_reply_without_request_id(self):
        host = IpcHost()
        host.on("ping", lambda payload: {})

        reply = await host.handle_message('{"type": "ping"}')

        assert json.loads(reply) == {"type": "ping-response"}

    @pytest.mark.asyncio
    async def test_handler_sees_data_without_request_id(self):
        host = IpcHost()
        seen = []

        @host.on("setMode")
        async def set_mode(payload):
            seen.append(payload)

        reply = await host.handle_message('{"type": "setMode", "mode": "auto", "requestId": "r"}')

        assert reply is None
        assert seen == [{"mode": "auto"}]

    @pytest.mark.asyncio
    async def test_unknown_command_ignored(self):
        assert await IpcHost().handle_message('{"type": "nope"}') is None

    @pytest.mark.asyncio
    async def test_malformed_message_ignored(self):
        assert await IpcHost().handle_message("{oops") is None

    @pytest.mark.asyncio
    async def test_handler_error_ignored(self, caplog):
        host = IpcHost()

        def broken(payload):
            raise RuntimeError("boom")

        host.on("broken", broken)

        assert await host.handle_message('{"type": "broken"}') is None
        assert "Error handling broken" in caplog.text

    @pytest.mark.asyncio
    async def test_broadcast(self):
        host = IpcHost()
        first, second = AsyncMock(), AsyncMock(side_effect=RuntimeError("gone"))
        host.connect(first)
        host.connect(second)

        delivered = await host.broadcast("stateChanged", {"mode": "auto"})

        assert delivered == 1
        first.assert_awaited_once()
        assert json.loads(first.await_args.args[0]) == {"type": "stateChanged", "mode": "auto"}

    def test_connect_and_disconnect(self):
        host = IpcHost()
        disconnect = host.connect(AsyncMock())
        assert host.connection_count == 1

        disconnect()
        disconnect()
        assert host.connection_count == 0


# =============================================================================
# Lighting controller
# =============================================================================


class TestLightingController:
    """Test the lighting controller handlers."""

    def test_registers_all_commands(self):
        assert create_lighting_host().commands == [
            "getState",
            "ping",
            "setColor",
            "setMode",
            "setStrobeSpeed",
            "setToggleColor",
            "setToggleSpeed",
        ]

    @pytest.mark.asyncio
    async def test_setters_update_state(self):
        state = LightingState()
        host = create_lighting_host(state)

        await host.handle_message('{"type": "setColor", "color": 16711680}')
        await host.handle_message('{"type": "setToggleColor", "color": 255}')
        await host.handle_message('{"type": "setToggleSpeed", "speed": 500}')
        await host.handle_message('{"type": "setStrobeSpeed", "speed": 22}')
        await host.handle_message('{"type": "setMode", "mode": "auto"}')

        assert state.to_payload() == {
            "color": 0xFF0000,
            "toggleColor": 0x0000FF,
            "toggleSpeed": 500,
            "strobeSpeed": 22,
            "mode": "auto",
        }

    @pytest.mark.asyncio
    async def test_get_state_response(self):
        host = create_lighting_host(LightingState(mode="manual", color=1))

        reply = json.loads(await host.handle_message('{"type": "getState", "requestId": "r9"}'))

        assert reply["type"] == "getState-response"
        assert reply["requestId"] == "r9"
        assert reply["mode"] == "manual"
        assert reply["color"] == 1

    @pytest.mark.asyncio
    async def test_change_is_broadcast(self):
        host = create_lighting_host()
        sender = AsyncMock()
        host.connect(sender)

        await host.handle_message('{"type": "setMode", "mode": "manual"}')

        event = json.loads(sender.await_args.args[0])
        assert event["type"] == STATE_CHANGED
        assert event["mode"] == "manual"

    @pytest.mark.asyncio
    async def test_invalid_value_rejected(self):
        state = LightingState()
        host = create_lighting_host(state)

        await host.handle_message('{"type": "setMode", "mode": "disco"}')

        assert state.mode == "black"


# =============================================================================
# Starlette app
# =============================================================================


class TestApp:
    """Test the HTTP/WebSocket application."""

    def test_health(self):
        client = TestClient(create_app())

        response = client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "ok"
        assert data["connections"] == 0
        assert "getState" in data["commands"]

    def test_ipc_request_response(self):
        client = TestClient(create_app())

        with client.websocket_connect("/ipc") as ws:
            ws.send_text('{"type": "ping", "requestId": "req_1"}')
            reply = json.loads(ws.receive_text())

        assert reply == {"type": "ping-response", "requestId": "req_1"}

    def test_ipc_state_change_broadcast(self):
        client = TestClient(create_app())

        with client.websocket_connect("/ipc") as ws:
            ws.send_text('{"type": "setColor", "color": 65280}')
            event = json.loads(ws.receive_text())
            ws.send_text('{"type": "getState"}')
            state = json.loads(ws.receive_text())

        assert event["type"] == STATE_CHANGED
        assert event["color"] == 65280
        assert state["type"] == "getState-response"
        assert state["color"] == 65280

    def test_ipc_malformed_frame_keeps_connection(self):
        client = TestClient(create_app())

        with client.websocket_connect("/ipc") as ws:
            ws.send_text("garbage")
            ws.send_text('{"type": "ping"}')
            reply = json.loads(ws.receive_text())

        assert reply == {"type": "ping-response"}
