"""Client-facing projection of a telemetry record."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Literal

from fleetpulse.models._base import FleetBaseModel, truncating_div
from fleetpulse.models.telemetry import TelemetryRecord

# rpm -> "speed" proxy used by live dashboards. Not a real vehicle speed.
RPM_PER_SPEED_UNIT = 100


class BroadcastView(FleetBaseModel):
    """Reduced live view sent to every subscriber."""

    type: Literal["vehicle_update"] = "vehicle_update"
    vehicle_id: str
    timestamp: int
    location: dict[str, Any] | None = None
    fuel_level: float | None = None
    speed: int | None = None

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True, exclude_none=True)


def derive_speed(record: TelemetryRecord) -> int | None:
    """Approximate speed from engine rpm, or ``None`` without an rpm reading."""
    if record.engine is None or record.engine.rpm is None:
        return None
    return truncating_div(record.engine.rpm, RPM_PER_SPEED_UNIT)


def build_broadcast_view(record: TelemetryRecord) -> BroadcastView:
    """Project *record* for subscribers. ``location`` is echoed exactly as received."""
    location = record.raw.get("location")
    if not isinstance(location, Mapping):
        location = record.location.to_wire()
    return BroadcastView(
        vehicle_id=record.vehicle_id,
        timestamp=record.timestamp,
        location=dict(location),
        fuel_level=record.fuel_level,
        speed=derive_speed(record),
    )
