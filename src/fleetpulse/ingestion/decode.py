"""Wire payload decoding."""

from __future__ import annotations

import json
from collections.abc import Mapping
from typing import Any

from fleetpulse.exceptions import FleetDecodeError

RawPayload = str | bytes | bytearray | Mapping[str, Any]


def decode_payload(payload: RawPayload) -> dict[str, Any]:
    """Decode one telemetry message into a JSON object.

    Accepts UTF-8 ``bytes``, ``str`` or an already-decoded mapping.

    Raises
    ------
    FleetDecodeError
        If the payload is not valid UTF-8, not valid JSON, or does not
        decode to a JSON object.
    """
    if isinstance(payload, Mapping):
        return dict(payload)

    if isinstance(payload, (bytes, bytearray)):
        try:
            text = bytes(payload).decode("utf-8")
        except UnicodeDecodeError as exc:
            raise FleetDecodeError(f"Payload is not valid UTF-8: {exc}") from exc
    elif isinstance(payload, str):
        text = payload
    else:
        raise FleetDecodeError(f"Unsupported payload type: {type(payload).__name__}")

    try:
        decoded = json.loads(text)
    except json.JSONDecodeError as exc:
        raise FleetDecodeError(f"Payload is not valid JSON: {exc}") from exc

    if not isinstance(decoded, dict):
        raise FleetDecodeError("Payload decoded to non-object JSON")
    return decoded
