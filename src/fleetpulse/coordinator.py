"""Ingestion coordinator.

Single entry point for telemetry sources: decode -> validate -> touch
liveness -> forward downstream -> broadcast to live subscribers.
"""

from __future__ import annotations

import logging
from typing import Any, Protocol

from fleetpulse._redact import redact_for_log
from fleetpulse.config import PipelineConfig
from fleetpulse.exceptions import FleetDecodeError, FleetForwardingError, FleetValidationError
from fleetpulse.fanout.registry import BroadcastResult, SubscriberHandle, SubscriberRegistry
from fleetpulse.ingestion.decode import RawPayload, decode_payload
from fleetpulse.ingestion.validate import missing_fields, validate
from fleetpulse.models.broadcast import build_broadcast_view
from fleetpulse.models.events import OfflineEvent
from fleetpulse.models.telemetry import TelemetryRecord
from fleetpulse.state.liveness import LivenessTracker

_logger = logging.getLogger(__name__)


def _vehicle_id(data: dict[str, Any]) -> str | None:
    value = data.get("vehicleId")
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return str(value)
    if isinstance(value, str) and value.strip():
        return value
    return None


class DownstreamConsumer(Protocol):
    """Receives validated records and lifecycle events for further processing.

    ``record.raw`` holds the payload exactly as the source sent it.
    """

    async def process_telemetry(self, record: TelemetryRecord) -> None: ...

    async def process_event(self, event: OfflineEvent) -> None: ...


class IngestionCoordinator:
    """Best-effort telemetry pipeline.

    Usage::

        async with IngestionCoordinator(consumer) as coordinator:
            ok = await coordinator.ingest(payload)

    :meth:`ingest` never raises. Every failure is logged and reported as a
    ``False`` return. The pipeline is not transactional: once a record has
    touched the liveness map, a later forwarding or broadcast failure does
    not undo it.
    """

    def __init__(
        self,
        consumer: DownstreamConsumer,
        *,
        config: PipelineConfig | None = None,
        tracker: LivenessTracker | None = None,
        registry: SubscriberRegistry | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self._config = config or PipelineConfig()
        self._consumer = consumer
        self._logger = logger or _logger
        if tracker is None:
            tracker = LivenessTracker(
                consumer,
                timeout_ms=self._config.heartbeat_timeout_ms,
                sweep_interval=self._config.sweep_interval,
            )
        if registry is None:
            registry = SubscriberRegistry(send_timeout=self._config.broadcast_send_timeout)
        self._tracker = tracker
        self._registry = registry

    # ------------------------------------------------------------------
    # Context manager lifecycle
    # ------------------------------------------------------------------

    async def __aenter__(self) -> IngestionCoordinator:
        self.start()
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.shutdown()

    def start(self) -> None:
        """Start the periodic liveness sweep."""
        self._tracker.start()

    async def shutdown(self) -> None:
        """Stop the liveness sweep. In-flight ``ingest`` calls are not awaited."""
        await self._tracker.stop(grace=self._config.shutdown_grace)

    @property
    def config(self) -> PipelineConfig:
        return self._config

    @property
    def tracker(self) -> LivenessTracker:
        return self._tracker

    @property
    def registry(self) -> SubscriberRegistry:
        return self._registry

    # ------------------------------------------------------------------
    # Subscriber lifecycle (called by the transport layer)
    # ------------------------------------------------------------------

    def register_subscriber(self, session_id: str, handle: SubscriberHandle) -> None:
        self._registry.register(session_id, handle)

    def unregister_subscriber(self, session_id: str) -> None:
        self._registry.unregister(session_id)

    # ------------------------------------------------------------------
    # Ingestion
    # ------------------------------------------------------------------

    async def ingest(self, raw_payload: RawPayload) -> bool:
        """Process one telemetry message.

        Returns ``True`` only when the payload decoded, validated, and was
        forwarded and broadcast without error.
        """
        try:
            data = self._decode_and_validate(raw_payload)
        except FleetDecodeError as exc:
            self._logger.warning("Undecodable telemetry payload: %s", exc)
            return False
        except FleetValidationError as exc:
            self._logger.warning("Invalid telemetry data received: %s payload=%s", exc, redact_for_log(raw_payload))
            return False

        vehicle_id = _vehicle_id(data)
        if vehicle_id is None:
            self._logger.warning("Error processing telemetry data: vehicleId is not a string")
            return False

        # Liveness is updated before the record is parsed or forwarded and
        # is never rolled back by a later failure. Parsing only fails on the
        # values the broadcast reads (timestamp, fuelLevel, the engine block).
        self._tracker.touch(vehicle_id)
        try:
            record = TelemetryRecord.model_validate(data)
        except Exception:
            self._logger.warning("Error processing telemetry data vehicle=%s", vehicle_id, exc_info=True)
            return False

        forwarded = True
        try:
            await self._forward(record)
        except FleetForwardingError as exc:
            self._logger.warning("Error forwarding telemetry: %s", exc, exc_info=exc.__cause__)
            forwarded = False

        broadcast = await self._broadcast(record)
        return forwarded and broadcast

    def _decode_and_validate(self, raw_payload: RawPayload) -> dict[str, Any]:
        data = decode_payload(raw_payload)
        if not validate(data):
            raise FleetValidationError(f"missing required fields: {', '.join(missing_fields(data))}")
        return data

    async def _forward(self, record: TelemetryRecord) -> None:
        try:
            await self._consumer.process_telemetry(record)
        except Exception as exc:
            raise FleetForwardingError(
                f"downstream consumer failed: {type(exc).__name__}: {exc}",
                vehicle_id=record.vehicle_id,
            ) from exc

    async def _broadcast(self, record: TelemetryRecord) -> bool:
        try:
            view = build_broadcast_view(record)
            result: BroadcastResult = await self._registry.broadcast(view)
        except Exception:
            self._logger.warning("Error broadcasting update vehicle=%s", record.vehicle_id, exc_info=True)
            return False
        self._logger.debug(
            "Ingested telemetry vehicle=%s delivered=%d failed=%d",
            record.vehicle_id,
            result.delivered,
            result.failed,
        )
        return True
