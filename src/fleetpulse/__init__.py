"""fleetpulse - Async real-time vehicle telemetry ingestion and fan-out."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("fleetpulse")
except PackageNotFoundError:
    __version__ = "0+local"
from fleetpulse.config import PipelineConfig
from fleetpulse.consumers import LoggingConsumer
from fleetpulse.coordinator import DownstreamConsumer, IngestionCoordinator
from fleetpulse.exceptions import (
    FleetBroadcastSendError,
    FleetConfigError,
    FleetDecodeError,
    FleetError,
    FleetForwardingError,
    FleetValidationError,
)
from fleetpulse.fanout import BroadcastResult, SubscriberHandle, SubscriberRegistry
from fleetpulse.ingestion import decode_payload, validate
from fleetpulse.models import (
    AccelerometerReading,
    BroadcastView,
    EngineReading,
    LifecycleEvent,
    Location,
    OfflineEvent,
    TelemetryRecord,
    build_broadcast_view,
)
from fleetpulse.state import LivenessTracker

__all__ = [
    "__version__",
    "AccelerometerReading",
    "BroadcastResult",
    "BroadcastView",
    "DownstreamConsumer",
    "EngineReading",
    "FleetBroadcastSendError",
    "FleetConfigError",
    "FleetDecodeError",
    "FleetError",
    "FleetForwardingError",
    "FleetValidationError",
    "IngestionCoordinator",
    "LifecycleEvent",
    "LivenessTracker",
    "Location",
    "LoggingConsumer",
    "OfflineEvent",
    "PipelineConfig",
    "SubscriberHandle",
    "SubscriberRegistry",
    "TelemetryRecord",
    "build_broadcast_view",
    "decode_payload",
    "validate",
]
