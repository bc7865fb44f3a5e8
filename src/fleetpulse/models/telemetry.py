"""Telemetry record model."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, ClassVar

from pydantic import Field, field_validator

from fleetpulse.models._base import FleetBaseModel, Reading, WireInt


class Location(FleetBaseModel):
    """GPS fix reported by the vehicle.

    Coordinates are carried through, not interpreted. Values that are not
    numbers are kept in :attr:`TelemetryRecord.raw` and read as ``None``
    here.

    Parameters
    ----------
    latitude : float or None
        Latitude in degrees.
    longitude : float or None
        Longitude in degrees.
    altitude : float or None
        Altitude in metres.
    speed : float or None
        GPS ground speed.
    heading : float or None
        Heading in degrees.
    """

    latitude: Reading = None
    longitude: Reading = None
    altitude: Reading = None
    speed: Reading = None
    heading: Reading = None


class EngineReading(FleetBaseModel):
    rpm: WireInt | None = None
    temperature: Reading = None
    oil_pressure: Reading = None


class AccelerometerReading(FleetBaseModel):
    x: Reading = None
    y: Reading = None
    z: Reading = None


class TelemetryRecord(FleetBaseModel):
    """One vehicle's point-in-time sensor snapshot.

    Presence of ``vehicleId``, ``timestamp`` and ``location.latitude`` /
    ``location.longitude`` is checked by
    :func:`fleetpulse.ingestion.validate.validate`. Only the values the
    pipeline itself reads can fail to parse: ``timestamp``, ``fuelLevel``
    and the ``engine`` block with its ``rpm``. Everything else is
    pass-through, and the decoded payload is kept unchanged in ``raw``.

    Parameters
    ----------
    vehicle_id : str
        Non-empty vehicle identifier.
    timestamp : int
        Source-supplied epoch milliseconds. Not used for liveness.
    location : Location
        GPS fix.
    fuel_level : float or None
        Fuel level percentage (0-100), not range-checked.
    engine : EngineReading or None
        Engine block.
    accelerometer : AccelerometerReading or None
        Accelerometer block. ``None`` when the source sent something other
        than an object.
    raw : dict
        The decoded payload as received.
    """

    _KEEP_RAW: ClassVar[bool] = True

    vehicle_id: str
    timestamp: WireInt
    location: Location
    fuel_level: float | None = None
    engine: EngineReading | None = None
    accelerometer: AccelerometerReading | None = None
    raw: dict[str, Any] = Field(default_factory=dict, exclude=True)

    @field_validator("vehicle_id", mode="before")
    @classmethod
    def _coerce_vehicle_id(cls, value: object) -> object:
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            value = str(value)
        if isinstance(value, str) and not value.strip():
            raise ValueError("vehicleId must be non-empty")
        return value

    @field_validator("accelerometer", mode="before")
    @classmethod
    def _ignore_malformed_accelerometer(cls, value: object) -> object:
        return value if isinstance(value, (Mapping, AccelerometerReading)) else None
