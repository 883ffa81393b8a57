"""webview-ipc CLI.

Talks to a lighting host from the terminal, or runs the development host.

Usage:
    webview-ipc send setMode -d mode=auto          # Fire-and-forget command
    webview-ipc send setColor -d color=16711680
    webview-ipc request getState                    # Wait for getState-response
    webview-ipc request ping --timeout 2 --format json

    webview-ipc host                                # WebSocket host on :4096
    webview-ipc host --port 8080
    webview-ipc host --stdio                        # JSON lines over stdio

    webview-ipc --command "webview-ipc host --stdio" request getState
"""

from __future__ import annotations

import asyncio
import json
import logging
import shlex
import sys
from typing import Any

import click

from .client import IpcClient, create_client
from .config import IpcConfig
from .errors import ChannelUnavailableError, RequestTimeoutError
from .protocol.commands import format_color, format_speed

# Output format options
FORMAT_TABLE = "table"
FORMAT_JSON = "json"

# Lighting state fields rendered the way the controller labels them
COLOR_FIELDS = ("color", "toggleColor")
SPEED_FIELDS = ("toggleSpeed", "strobeSpeed")


def parse_fields(fields: tuple[str, ...]) -> dict[str, Any]:
    """Turn KEY=VALUE pairs into a payload.

    Values are read as JSON when they parse, so numbers, booleans and
    null keep their type; anything else is kept as a string.
    """
    payload: dict[str, Any] = {}
    for item in fields:
        key, sep, value = item.partition("=")
        if not sep or not key:
            raise click.BadParameter(f"Expected KEY=VALUE, got '{item}'", param_hint="--data")
        try:
            payload[key] = json.loads(value)
        except json.JSONDecodeError:
            payload[key] = value
    return payload


def _load_payload(fields: tuple[str, ...], raw_json: str | None) -> dict[str, Any]:
    payload: dict[str, Any] = {}
    if raw_json:
        try:
            parsed = json.loads(raw_json)
        except json.JSONDecodeError as e:
            raise click.BadParameter(f"Invalid JSON: {e}", param_hint="--json") from e
        if not isinstance(parsed, dict):
            raise click.BadParameter("Payload must be a JSON object", param_hint="--json")
        payload.update(parsed)
    payload.update(parse_fields(fields))
    return payload


def _build_config(ctx: click.Context, **overrides: Any) -> IpcConfig:
    obj = ctx.obj or {}
    mode = "stdio" if obj.get("command") else None
    try:
        return IpcConfig.from_env(
            url=obj.get("url"),
            command=obj.get("command"),
            mode=mode,
            **overrides,
        )
    except ValueError as e:
        raise click.UsageError(str(e)) from e


def _run(client: IpcClient, action: Any) -> Any:
    """Open the client, run one action, close it, and map errors to exit codes."""

    async def go() -> Any:
        async with client:
            return await action(client)

    try:
        return asyncio.run(go())
    except RequestTimeoutError as e:
        click.echo(f"Timed out: {e}", err=True)
        sys.exit(1)
    except ChannelUnavailableError as e:
        click.echo(f"Host unavailable: {e}", err=True)
        sys.exit(1)


@click.group()
@click.option("--url", default=None, help="WebSocket endpoint of the host")
@click.option("--command", "host_command", default=None, help="Launch the host as a subprocess")
@click.option("--verbose", "-v", is_flag=True, help="Log protocol traffic to stderr")
@click.pass_context
def main(ctx: click.Context, url: str | None, host_command: str | None, verbose: bool) -> None:
    """webview-ipc - command/response messaging with a lighting host."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )
    ctx.ensure_object(dict)
    ctx.obj["url"] = url
    ctx.obj["command"] = shlex.split(host_command) if host_command else None


@main.command("send")
@click.argument("command_type")
@click.option("--data", "-d", "fields", multiple=True, help="Payload field as KEY=VALUE")
@click.option("--json", "raw_json", default=None, help="Payload as a JSON object")
@click.pass_context
def send_command(
    ctx: click.Context, command_type: str, fields: tuple[str, ...], raw_json: str | None
) -> None:
    """Send a one-way command."""
    payload = _load_payload(fields, raw_json)
    client = create_client(_build_config(ctx))

    async def action(c: IpcClient) -> None:
        c.send(command_type, payload)

    _run(client, action)
    click.echo(f"Sent {command_type}", err=True)


@main.command("request")
@click.argument("command_type")
@click.option("--data", "-d", "fields", multiple=True, help="Payload field as KEY=VALUE")
@click.option("--json", "raw_json", default=None, help="Payload as a JSON object")
@click.option("--timeout", "-t", type=float, default=None, help="Seconds to wait (0 waits forever)")
@click.option("--no-correlate", is_flag=True, help="Do not attach a requestId")
@click.option(
    "--format",
    "output_format",
    type=click.Choice([FORMAT_TABLE, FORMAT_JSON]),
    default=FORMAT_TABLE,
    help="Output format",
)
@click.pass_context
def request_command(
    ctx: click.Context,
    command_type: str,
    fields: tuple[str, ...],
    raw_json: str | None,
    timeout: float | None,
    no_correlate: bool,
    output_format: str,
) -> None:
    """Send a request and print the response payload."""
    payload = _load_payload(fields, raw_json)
    overrides: dict[str, Any] = {"correlate": False} if no_correlate else {}
    if timeout is not None:
        # 0 disables the timeout
        overrides["timeout"] = timeout
    config = _build_config(ctx, **overrides)

    async def action(c: IpcClient) -> dict[str, Any]:
        return await c.request(command_type, payload)

    response = _run(create_client(config), action)

    if output_format == FORMAT_JSON:
        click.echo(json.dumps(response, indent=2, ensure_ascii=False))
        return

    if not response:
        click.echo(f"{command_type}-response (empty)")
        return
    width = max(len(key) for key in response)
    for key, value in response.items():
        click.echo(f"{key:<{width}}  {format_field(key, value)}")


def format_field(key: str, value: Any) -> str:
    """Render one response field for table output."""
    is_int = isinstance(value, int) and not isinstance(value, bool)
    if key in COLOR_FIELDS and is_int:
        return format_color(value)
    if key in SPEED_FIELDS and (value is None or is_int):
        return format_speed(value)
    return json.dumps(value, ensure_ascii=False)


@main.command("host")
@click.option("--host", "bind_host", default="127.0.0.1", help="Host to bind to")
@click.option("--port", default=4096, help="Port to bind to")
@click.option("--stdio", "stdio_mode", is_flag=True, help="Serve JSON lines over stdin/stdout")
def run_host(bind_host: str, port: int, stdio_mode: bool) -> None:
    """Run the development lighting host."""
    if stdio_mode:
        _run_stdio_host()
    else:
        _run_http_host(bind_host, port)


def _run_http_host(host: str, port: int) -> None:
    """Run the WebSocket host under uvicorn."""
    import uvicorn

    click.echo(f"Starting lighting host on ws://{host}:{port}/ipc", err=True)
    click.echo("Press Ctrl+C to stop", err=True)

    uvicorn.run(
        "webview_ipc.host.app:create_app",
        factory=True,
        host=host,
        port=port,
        log_level="info",
    )


def _run_stdio_host() -> None:
    """Run the host over stdio. Nothing but protocol lines goes to stdout."""
    from .host.stdio import run_stdio_host

    try:
        asyncio.run(run_stdio_host())
    except KeyboardInterrupt:
        click.echo("\nShutting down", err=True)


if __name__ == "__main__":
    main()
