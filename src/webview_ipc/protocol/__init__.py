"""Wire protocol for the webview IPC channel.

Key concepts:
- Envelope: one flat JSON object per message, named by its ``type``
- Commands: envelopes sent from the UI to the host
- Responses: envelopes named ``<command>-response``, optionally echoing
  the request's ``requestId`` for correlation
"""

from .commands import COLORS, SPEEDS, CommandType, Mode
from .envelope import (
    CORRELATION_KEY,
    TYPE_KEY,
    Envelope,
    decode,
    encode,
    response_type,
)

__all__ = [
    "COLORS",
    "CORRELATION_KEY",
    "SPEEDS",
    "TYPE_KEY",
    "CommandType",
    "Envelope",
    "Mode",
    "decode",
    "encode",
    "response_type",
]
