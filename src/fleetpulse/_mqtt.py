"""MQTT telemetry source.

Vehicles (or a gateway in front of them) publish one telemetry JSON object
per message. :class:`FleetMqttSource` subscribes to the telemetry topic on
a paho-mqtt network thread and hands each payload to
:meth:`IngestionCoordinator.ingest` on the asyncio loop. Only ``ingest``
touches pipeline state; the paho thread never does.
"""

from __future__ import annotations

import asyncio
import logging
import secrets
from collections.abc import Awaitable, Callable
from concurrent.futures import Future
from dataclasses import dataclass
from typing import Any

import paho.mqtt.client as mqtt

from fleetpulse.config import PipelineConfig

ClientFactory = Callable[[str], mqtt.Client]


def _default_client(client_id: str) -> mqtt.Client:
    return mqtt.Client(
        callback_api_version=mqtt.CallbackAPIVersion.VERSION2,
        client_id=client_id,
        protocol=mqtt.MQTTv5,
    )


@dataclass(frozen=True)
class MqttSettings:
    """Broker and subscription details for the telemetry topic."""

    broker_host: str
    broker_port: int
    topic: str
    client_id: str
    qos: int = 0
    username: str | None = None
    password: str | None = None
    tls: bool = False
    keepalive: int = 60
    reconnect_min_delay: int = 1
    reconnect_max_delay: int = 60

    @classmethod
    def from_config(cls, config: PipelineConfig, **overrides: Any) -> MqttSettings:
        values: dict[str, Any] = {
            "broker_host": config.mqtt_host,
            "broker_port": config.mqtt_port,
            "topic": config.mqtt_topic,
            "client_id": f"fleetpulse_{secrets.token_hex(4)}",
            "qos": config.mqtt_qos,
            "username": config.mqtt_username,
            "password": config.mqtt_password,
            "tls": config.mqtt_tls,
            "keepalive": config.mqtt_keepalive,
        }
        values.update(overrides)
        return cls(**values)


class FleetMqttSource:
    """Feeds MQTT telemetry messages into an async ``ingest`` callable.

    The connection is opened in the background and paho reconnects on its
    own after a drop; the subscription is renewed on every successful
    connect. ``received``, ``accepted`` and ``rejected`` count messages by
    the outcome ``ingest`` reported.
    """

    def __init__(
        self,
        *,
        loop: asyncio.AbstractEventLoop,
        ingest: Callable[[bytes], Awaitable[bool]],
        client_factory: ClientFactory = _default_client,
        logger: logging.Logger | None = None,
    ) -> None:
        self._loop = loop
        self._ingest = ingest
        self._client_factory = client_factory
        self._logger = logger or logging.getLogger(__name__)
        self._client: mqtt.Client | None = None
        self._settings: MqttSettings | None = None
        self.received = 0
        self.accepted = 0
        self.rejected = 0

    @property
    def is_running(self) -> bool:
        return self._client is not None

    def start(self, settings: MqttSettings) -> None:
        """Begin connecting to the broker. Returns without waiting for the connection."""
        if self._client is not None:
            self.stop()

        client = self._client_factory(settings.client_id)
        client.enable_logger(self._logger)
        if settings.username is not None:
            client.username_pw_set(settings.username, settings.password)
        if settings.tls:
            client.tls_set()
        client.reconnect_delay_set(settings.reconnect_min_delay, settings.reconnect_max_delay)
        client.on_connect = self._on_connect
        client.on_disconnect = self._on_disconnect
        client.on_message = self._on_message

        self._settings = settings
        client.connect_async(settings.broker_host, settings.broker_port, keepalive=settings.keepalive)
        client.loop_start()
        self._client = client
        self._logger.info(
            "MQTT telemetry source connecting host=%s port=%s topic=%s",
            settings.broker_host,
            settings.broker_port,
            settings.topic,
        )

    def stop(self) -> None:
        """Disconnect and stop the network thread. Safe to call when not started."""
        client = self._client
        self._client = None
        self._settings = None
        if client is None:
            return
        try:
            client.disconnect()
        finally:
            client.loop_stop()
        self._logger.info(
            "MQTT telemetry source stopped received=%d accepted=%d rejected=%d",
            self.received,
            self.accepted,
            self.rejected,
        )

    # ------------------------------------------------------------------
    # paho callbacks (network thread)
    # ------------------------------------------------------------------

    def _on_connect(self, client: mqtt.Client, _userdata: Any, _flags: Any, reason_code: Any, _props: Any) -> None:
        settings = self._settings
        if reason_code.is_failure:
            self._logger.warning("MQTT connect refused: %s", reason_code)
            return
        if settings is None:
            return
        client.subscribe(settings.topic, qos=settings.qos)
        self._logger.debug("MQTT connected; subscribed topic=%s qos=%d", settings.topic, settings.qos)

    def _on_disconnect(self, _client: mqtt.Client, _userdata: Any, _flags: Any, reason_code: Any, _props: Any) -> None:
        if self._client is None:
            return
        if reason_code.is_failure:
            self._logger.warning("MQTT connection lost (%s); reconnecting", reason_code)

    def _on_message(self, _client: mqtt.Client, _userdata: Any, message: mqtt.MQTTMessage) -> None:
        self.received += 1
        pending = self._ingest(message.payload)
        try:
            future = asyncio.run_coroutine_threadsafe(pending, self._loop)
        except RuntimeError:
            if asyncio.iscoroutine(pending):
                pending.close()
            self._logger.debug("MQTT message dropped; event loop closed topic=%s", message.topic)
            return
        future.add_done_callback(lambda fut: self._record_outcome(message.topic, fut))

    def _record_outcome(self, topic: str, future: Future[bool]) -> None:
        if future.cancelled():
            return
        exc = future.exception()
        if exc is not None:
            self.rejected += 1
            self._logger.warning("MQTT ingest raised topic=%s", topic, exc_info=exc)
        elif future.result():
            self.accepted += 1
        else:
            self.rejected += 1
            self._logger.debug("MQTT telemetry rejected topic=%s", topic)
