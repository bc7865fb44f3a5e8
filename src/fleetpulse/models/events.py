"""Lifecycle events delivered to the downstream consumer."""

from __future__ import annotations

from enum import StrEnum

from fleetpulse.models._base import FleetBaseModel, WireInt


class LifecycleEvent(StrEnum):
    CONNECTION_LOST = "connection_lost"


class OfflineEvent(FleetBaseModel):
    """A vehicle has not sent a valid record within the heartbeat timeout.

    Emitted on every sweep for as long as the vehicle stays silent.
    """

    vehicle_id: str
    timestamp: WireInt
    event: LifecycleEvent = LifecycleEvent.CONNECTION_LOST
