"""Wire models for telemetry records, broadcasts and lifecycle events."""

from fleetpulse.models._base import FleetBaseModel, Reading, WireInt, lenient_float, truncate_int, truncating_div
from fleetpulse.models.broadcast import BroadcastView, build_broadcast_view, derive_speed
from fleetpulse.models.events import LifecycleEvent, OfflineEvent
from fleetpulse.models.telemetry import AccelerometerReading, EngineReading, Location, TelemetryRecord

__all__ = [
    "AccelerometerReading",
    "BroadcastView",
    "EngineReading",
    "FleetBaseModel",
    "LifecycleEvent",
    "Location",
    "OfflineEvent",
    "Reading",
    "TelemetryRecord",
    "WireInt",
    "build_broadcast_view",
    "derive_speed",
    "lenient_float",
    "truncate_int",
    "truncating_div",
]
