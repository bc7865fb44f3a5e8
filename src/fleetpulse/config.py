"""Pipeline configuration for fleetpulse."""

from __future__ import annotations

import dataclasses
import os
from typing import Any

from fleetpulse.exceptions import FleetConfigError


def _env_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "y", "on"}:
        return True
    if normalized in {"0", "false", "no", "n", "off"}:
        return False
    return default


@dataclasses.dataclass(frozen=True)
class PipelineConfig:
    """Ingestion pipeline configuration.

    Parameters
    ----------
    heartbeat_timeout_ms : int
        A vehicle is reported offline once this many milliseconds have
        passed since its last valid record. Defaults to 2 minutes.
    sweep_interval : float
        Seconds between liveness sweeps. The first sweep runs immediately.
    shutdown_grace : float
        Seconds to wait for an in-flight sweep on shutdown before the
        sweep task is force-cancelled.
    broadcast_send_timeout : float
        Seconds a single subscriber send may take before it is counted as
        failed.
    http_host : str
        Bind address for the aiohttp server adapter.
    http_port : int
        Bind port for the aiohttp server adapter.
    telemetry_path : str
        HTTP path accepting telemetry uploads.
    ws_path : str
        HTTP path upgraded to WebSocket for live subscribers.
    mqtt_enabled : bool
        Enable the MQTT telemetry source.
    mqtt_host : str
        MQTT broker host.
    mqtt_port : int
        MQTT broker port.
    mqtt_topic : str
        Topic filter carrying one telemetry JSON object per message.
    mqtt_qos : int
        Subscription QoS (0, 1 or 2).
    mqtt_username : str or None
        Broker username, if the broker requires one.
    mqtt_password : str or None
        Broker password.
    mqtt_tls : bool
        Connect to the broker over TLS.
    mqtt_keepalive : int
        MQTT keepalive in seconds.
    """

    heartbeat_timeout_ms: int = 120_000
    sweep_interval: float = 30.0
    shutdown_grace: float = 5.0
    broadcast_send_timeout: float = 5.0
    http_host: str = "0.0.0.0"  # noqa: S104
    http_port: int = 8080
    telemetry_path: str = "/api/telemetry"
    ws_path: str = "/ws"
    mqtt_enabled: bool = False
    mqtt_host: str = "localhost"
    mqtt_port: int = 1883
    mqtt_topic: str = "fleet/telemetry/#"
    mqtt_qos: int = 0
    mqtt_username: str | None = None
    mqtt_password: str | None = None
    mqtt_tls: bool = False
    mqtt_keepalive: int = 60

    def __post_init__(self) -> None:
        if self.heartbeat_timeout_ms <= 0:
            raise FleetConfigError("heartbeat_timeout_ms must be positive")
        if self.sweep_interval <= 0:
            raise FleetConfigError("sweep_interval must be positive")
        if self.shutdown_grace < 0:
            raise FleetConfigError("shutdown_grace must not be negative")
        if self.broadcast_send_timeout <= 0:
            raise FleetConfigError("broadcast_send_timeout must be positive")
        if self.mqtt_qos not in (0, 1, 2):
            raise FleetConfigError("mqtt_qos must be 0, 1 or 2")

    @classmethod
    def from_env(cls, **overrides: Any) -> PipelineConfig:
        """Create configuration from ``FLEETPULSE_*`` environment variables.

        Explicit keyword arguments override environment values.
        """
        env = os.environ

        _ENV_STR_MAP = {
            "FLEETPULSE_HTTP_HOST": "http_host",
            "FLEETPULSE_TELEMETRY_PATH": "telemetry_path",
            "FLEETPULSE_WS_PATH": "ws_path",
            "FLEETPULSE_MQTT_HOST": "mqtt_host",
            "FLEETPULSE_MQTT_TOPIC": "mqtt_topic",
            "FLEETPULSE_MQTT_USERNAME": "mqtt_username",
            "FLEETPULSE_MQTT_PASSWORD": "mqtt_password",
        }
        _ENV_INT_MAP = {
            "FLEETPULSE_HEARTBEAT_TIMEOUT_MS": "heartbeat_timeout_ms",
            "FLEETPULSE_HTTP_PORT": "http_port",
            "FLEETPULSE_MQTT_PORT": "mqtt_port",
            "FLEETPULSE_MQTT_KEEPALIVE": "mqtt_keepalive",
            "FLEETPULSE_MQTT_QOS": "mqtt_qos",
        }
        _ENV_FLOAT_MAP = {
            "FLEETPULSE_SWEEP_INTERVAL": "sweep_interval",
            "FLEETPULSE_SHUTDOWN_GRACE": "shutdown_grace",
            "FLEETPULSE_BROADCAST_SEND_TIMEOUT": "broadcast_send_timeout",
        }

        config_kwargs: dict[str, Any] = {}
        for env_key, field_name in _ENV_STR_MAP.items():
            val = env.get(env_key)
            if val is not None:
                config_kwargs[field_name] = val

        try:
            for env_key, field_name in _ENV_INT_MAP.items():
                val = env.get(env_key)
                if val is not None and field_name not in overrides:
                    config_kwargs[field_name] = int(val)
            for env_key, field_name in _ENV_FLOAT_MAP.items():
                val = env.get(env_key)
                if val is not None and field_name not in overrides:
                    config_kwargs[field_name] = float(val)
        except ValueError as exc:
            raise FleetConfigError(f"Invalid numeric environment value: {exc}") from exc

        if "mqtt_enabled" not in overrides:
            config_kwargs["mqtt_enabled"] = _env_bool(env.get("FLEETPULSE_MQTT_ENABLED"), False)
        if "mqtt_tls" not in overrides:
            config_kwargs["mqtt_tls"] = _env_bool(env.get("FLEETPULSE_MQTT_TLS"), False)

        config_kwargs.update(overrides)

        return cls(**config_kwargs)
