"""Log-safe summaries of rejected telemetry payloads.

A rejected payload is logged so operators can see what a source sent.
Sources sometimes embed their upload credentials (``authToken``,
``apiKey``) next to the readings, and a misbehaving source can send very
large bodies, so the payload is masked and shortened first.
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from typing import Any

REDACTED = "<redacted>"

_CREDENTIAL_KEYS: frozenset[str] = frozenset(
    {
        "apikey",
        "authorization",
        "authtoken",
        "accesstoken",
        "password",
        "secret",
        "token",
    }
)


def _mask(value: Any) -> Any:
    if isinstance(value, Mapping):
        return {str(k): REDACTED if str(k).lower() in _CREDENTIAL_KEYS else _mask(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_mask(item) for item in value]
    return value


def _shorten(text: str, limit: int) -> str:
    if len(text) <= limit:
        return text
    return f"{text[:limit]}...<{len(text) - limit} more chars>"


def redact_for_log(payload: Any, *, max_chars: int = 512) -> str:
    """Return a single-line, credential-masked rendering of *payload*.

    *payload* is what the source handed to ingestion: raw bytes, JSON text
    or an already-decoded object. JSON objects and arrays are re-rendered
    compactly with credential keys masked. Text that is not JSON is shown
    as-is. The result is cut at *max_chars*.
    """
    if isinstance(payload, (bytes, bytearray)):
        try:
            payload = bytes(payload).decode("utf-8")
        except UnicodeDecodeError:
            return f"<{len(payload)} bytes, not UTF-8>"

    if isinstance(payload, str):
        try:
            payload = json.loads(payload)
        except ValueError:
            return _shorten(payload, max_chars)

    if isinstance(payload, (Mapping, list)):
        text = json.dumps(_mask(payload), separators=(",", ":"), default=repr)
    else:
        text = repr(payload)
    return _shorten(text, max_chars)
