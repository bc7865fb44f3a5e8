"""Downstream consumers shipped with fleetpulse."""

from __future__ import annotations

import logging

from fleetpulse.models.events import OfflineEvent
from fleetpulse.models.telemetry import TelemetryRecord


class LoggingConsumer:
    """Downstream consumer that logs what it receives and counts it.

    Used by the server adapter when no processing backend is plugged in.
    """

    def __init__(self, *, logger: logging.Logger | None = None) -> None:
        self._logger = logger or logging.getLogger(__name__)
        self.records_received = 0
        self.events_received = 0

    async def process_telemetry(self, record: TelemetryRecord) -> None:
        self.records_received += 1
        self._logger.debug("Telemetry vehicle=%s timestamp=%s", record.vehicle_id, record.timestamp)

    async def process_event(self, event: OfflineEvent) -> None:
        self.events_received += 1
        self._logger.info("Lifecycle event %s vehicle=%s at=%s", event.event, event.vehicle_id, event.timestamp)
