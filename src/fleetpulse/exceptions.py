"""Custom exception hierarchy for fleetpulse."""

from __future__ import annotations


class FleetError(Exception):
    """Base exception for all fleetpulse errors."""


class FleetConfigError(FleetError):
    """Invalid or missing configuration."""


class FleetDecodeError(FleetError):
    """Payload could not be decoded into a JSON object."""


class FleetValidationError(FleetError):
    """Decoded payload is missing required telemetry fields."""


class FleetForwardingError(FleetError):
    """The downstream consumer raised while handling a record or event.

    The original exception is available as ``__cause__``.
    """

    def __init__(self, message: str, *, vehicle_id: str = "") -> None:
        self.vehicle_id = vehicle_id
        super().__init__(message)


class FleetBroadcastSendError(FleetError):
    """A single subscriber send failed.

    Raised and caught inside :meth:`SubscriberRegistry.broadcast`; it never
    reaches the caller of ``broadcast``.
    """

    def __init__(self, message: str, *, session_id: str = "") -> None:
        self.session_id = session_id
        super().__init__(message)
