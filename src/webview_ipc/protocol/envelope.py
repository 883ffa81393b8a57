"""Envelope codec.

An envelope is the single unit of communication on the channel. On the
wire it is one flat JSON object whose reserved ``type`` key names the
command or event; every other key belongs to the payload:

    {"type": "setColor", "color": 16711680}

Responses reuse the request's name with a ``-response`` suffix:

    {"type": "getState-response", "mode": "auto", "requestId": "req_1a2b3c4d5e6f"}

``requestId`` is the optional correlation field. Requests carry it when
correlation is enabled and hosts that support it echo it back unchanged.
"""

from __future__ import annotations

import json
from typing import Any

from pydantic import BaseModel, Field, ValidationError, field_validator

from ..errors import DecodeError

# Reserved key holding the envelope type
TYPE_KEY = "type"

# Optional correlation field carried by requests and echoed by responses
CORRELATION_KEY = "requestId"

RESPONSE_SUFFIX = "-response"


def response_type(request_type: str) -> str:
    """Derive the response type name for a request type."""
    return f"{request_type}{RESPONSE_SUFFIX}"


class Envelope(BaseModel):
    """A typed message travelling over the channel.

    Example:
        >>> Envelope(type="setMode", payload={"mode": "auto"}).to_wire()
        '{"mode": "auto", "type": "setMode"}'
    """

    type: str
    payload: dict[str, Any] = Field(default_factory=dict)

    @field_validator("type")
    @classmethod
    def _type_not_empty(cls, value: str) -> str:
        if not value:
            raise ValueError("Envelope type must be a non-empty string")
        return value

    @property
    def request_id(self) -> str | None:
        """Correlation id carried by this envelope, if any."""
        value = self.payload.get(CORRELATION_KEY)
        return None if value is None else str(value)

    def is_response(self) -> bool:
        """Check if this envelope uses the response naming convention."""
        return self.type.endswith(RESPONSE_SUFFIX)

    def is_response_to(self, request_type: str) -> bool:
        """Check if this envelope answers the given request type."""
        return self.type == response_type(request_type)

    def data(self) -> dict[str, Any]:
        """Payload without the correlation field."""
        return {k: v for k, v in self.payload.items() if k != CORRELATION_KEY}

    def to_dict(self) -> dict[str, Any]:
        """Flatten into the wire shape. The envelope type always wins."""
        return {**self.payload, TYPE_KEY: self.type}

    def to_wire(self) -> str:
        """Serialize to JSON text."""
        return json.dumps(self.to_dict(), ensure_ascii=False)

    @classmethod
    def from_wire(cls, raw: str | bytes) -> Envelope:
        """Parse JSON text into an envelope.

        Raises:
            DecodeError: If the text is not a JSON object with a non-empty
                string ``type``.
        """
        try:
            parsed = json.loads(raw)
        except (json.JSONDecodeError, UnicodeDecodeError, RecursionError) as e:
            raise DecodeError(f"Invalid JSON: {e}", raw=_preview(raw)) from e

        if not isinstance(parsed, dict):
            raise DecodeError(
                f"Expected a JSON object, got {type(parsed).__name__}", raw=_preview(raw)
            )

        envelope_type = parsed.pop(TYPE_KEY, None)
        if not isinstance(envelope_type, str):
            raise DecodeError("Missing or non-string 'type' field", raw=_preview(raw))

        try:
            return cls(type=envelope_type, payload=parsed)
        except ValidationError as e:
            raise DecodeError(f"Invalid envelope: {e}", raw=_preview(raw)) from e


def encode(envelope_type: str, payload: dict[str, Any] | None = None) -> str:
    """Encode a command into wire text.

    A ``type`` key inside the payload is overridden by ``envelope_type``.

    Raises:
        ValueError: If ``envelope_type`` is empty.
    """
    return Envelope(type=envelope_type, payload=dict(payload or {})).to_wire()


def decode(raw: str | bytes) -> Envelope:
    """Decode wire text into an envelope.

    Raises:
        DecodeError: If the text is not a valid envelope.
    """
    return Envelope.from_wire(raw)


def _preview(raw: str | bytes, limit: int = 80) -> str:
    text = raw.decode("utf-8", errors="replace") if isinstance(raw, bytes) else str(raw)
    return text if len(text) <= limit else text[: limit - 3] + "..."
