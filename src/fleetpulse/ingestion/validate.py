"""Required-field check for decoded telemetry."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

REQUIRED_FIELDS: tuple[str, ...] = ("vehicleId", "timestamp", "location")
REQUIRED_LOCATION_FIELDS: tuple[str, ...] = ("latitude", "longitude")


def _present(data: Mapping[str, Any], key: str) -> bool:
    return data.get(key) is not None


def validate(raw: Any) -> bool:
    """Return True when *raw* carries every field the pipeline requires.

    Only presence is checked: ``vehicleId``, ``timestamp`` and a
    ``location`` object holding ``latitude`` and ``longitude``. Value
    types, numeric ranges and timestamp sanity are not inspected. A JSON
    ``null`` counts as absent.
    """
    if not isinstance(raw, Mapping):
        return False
    if not all(_present(raw, key) for key in REQUIRED_FIELDS):
        return False

    location = raw["location"]
    if not isinstance(location, Mapping):
        return False
    return all(_present(location, key) for key in REQUIRED_LOCATION_FIELDS)


def missing_fields(raw: Any) -> list[str]:
    """List the required fields absent from *raw*, for diagnostics."""
    if not isinstance(raw, Mapping):
        return list(REQUIRED_FIELDS)
    missing = [key for key in REQUIRED_FIELDS if not _present(raw, key)]
    location = raw.get("location")
    if isinstance(location, Mapping):
        missing.extend(f"location.{key}" for key in REQUIRED_LOCATION_FIELDS if not _present(location, key))
    elif "location" not in missing:
        missing.append("location")
    return missing
