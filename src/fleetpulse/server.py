"""aiohttp adapter exposing the pipeline over HTTP and WebSocket.

Routes (paths configurable through :class:`PipelineConfig`):

* ``POST /api/telemetry`` - one telemetry JSON object per request.
* ``GET /ws`` - WebSocket upgrade; the connection receives every broadcast.
* ``GET /api/vehicles`` - liveness snapshot of every vehicle seen.
* ``GET /api/vehicles/{vehicle_id}`` - liveness of one vehicle.
"""

from __future__ import annotations

import asyncio
import logging
import secrets
from typing import Any

from aiohttp import WSMsgType, web

from fleetpulse._mqtt import FleetMqttSource, MqttSettings
from fleetpulse.config import PipelineConfig
from fleetpulse.consumers import LoggingConsumer
from fleetpulse.coordinator import IngestionCoordinator

_logger = logging.getLogger(__name__)

COORDINATOR_KEY = web.AppKey("coordinator", IngestionCoordinator)
CONFIG_KEY = web.AppKey("config", PipelineConfig)
MQTT_SOURCE_KEY = web.AppKey("mqtt_source", FleetMqttSource)


class WebSocketSubscriber:
    """:class:`SubscriberHandle` backed by an aiohttp WebSocket connection."""

    def __init__(self, ws: web.WebSocketResponse) -> None:
        self._ws = ws

    def is_open(self) -> bool:
        return not self._ws.closed

    async def send(self, message: str) -> bool:
        await self._ws.send_str(message)
        return True

    async def close(self) -> None:
        await self._ws.close(code=1001, message=b"Server shutdown")


def _vehicle_entry(coordinator: IngestionCoordinator, vehicle_id: str, last_seen: int, now: int) -> dict[str, Any]:
    return {
        "vehicleId": vehicle_id,
        "lastSeen": last_seen,
        "online": coordinator.tracker.is_online(vehicle_id, now),
    }


async def _handle_telemetry(request: web.Request) -> web.Response:
    coordinator = request.app[COORDINATOR_KEY]
    body = await request.read()
    accepted = await coordinator.ingest(body)
    return web.json_response({"accepted": accepted}, status=202 if accepted else 400)


async def _handle_subscribe(request: web.Request) -> web.WebSocketResponse:
    coordinator = request.app[COORDINATOR_KEY]
    ws = web.WebSocketResponse(heartbeat=30.0)
    await ws.prepare(request)

    session_id = secrets.token_hex(8)
    coordinator.register_subscriber(session_id, WebSocketSubscriber(ws))
    try:
        async for msg in ws:
            if msg.type == WSMsgType.ERROR:
                _logger.debug("WebSocket session %s closed with error", session_id, exc_info=ws.exception())
                break
            # Subscribers are receive-only; inbound frames are ignored.
    finally:
        coordinator.unregister_subscriber(session_id)
    return ws


async def _handle_vehicles(request: web.Request) -> web.Response:
    coordinator = request.app[COORDINATOR_KEY]
    tracker = coordinator.tracker
    now = tracker.now()
    entries = [
        _vehicle_entry(coordinator, vehicle_id, last_seen, now)
        for vehicle_id, last_seen in sorted(tracker.snapshot().items())
    ]
    return web.json_response(entries)


async def _handle_vehicle(request: web.Request) -> web.Response:
    coordinator = request.app[COORDINATOR_KEY]
    tracker = coordinator.tracker
    vehicle_id = request.match_info["vehicle_id"]
    last_seen = tracker.last_seen(vehicle_id)
    if last_seen is None:
        return web.json_response({"error": "Vehicle not found"}, status=404)
    return web.json_response(_vehicle_entry(coordinator, vehicle_id, last_seen, tracker.now()))


async def _on_startup(app: web.Application) -> None:
    coordinator = app[COORDINATOR_KEY]
    config = app[CONFIG_KEY]
    coordinator.start()

    if not config.mqtt_enabled:
        return
    source = FleetMqttSource(loop=asyncio.get_running_loop(), ingest=coordinator.ingest)
    try:
        source.start(MqttSettings.from_config(config))
    except Exception:
        _logger.warning("MQTT telemetry source failed to start", exc_info=True)
        return
    app[MQTT_SOURCE_KEY] = source


async def _on_shutdown(app: web.Application) -> None:
    coordinator = app[COORDINATOR_KEY]
    registry = coordinator.registry
    for session_id in registry.session_ids():
        handle = registry.get(session_id)
        if isinstance(handle, WebSocketSubscriber):
            try:
                await handle.close()
            except Exception:
                _logger.debug("Closing WebSocket session %s failed", session_id, exc_info=True)


async def _on_cleanup(app: web.Application) -> None:
    source = app.get(MQTT_SOURCE_KEY)
    if source is not None:
        try:
            await asyncio.get_running_loop().run_in_executor(None, source.stop)
        except Exception:
            _logger.debug("MQTT telemetry source stop failed", exc_info=True)
    await app[COORDINATOR_KEY].shutdown()


def create_app(
    coordinator: IngestionCoordinator | None = None,
    config: PipelineConfig | None = None,
) -> web.Application:
    """Build the aiohttp application serving *coordinator*.

    Without a coordinator, one is created that forwards to a
    :class:`LoggingConsumer`. The liveness sweep is started on application
    startup and stopped on cleanup.
    """
    if coordinator is None:
        coordinator = IngestionCoordinator(LoggingConsumer(), config=config or PipelineConfig())
    config = config or coordinator.config
    app = web.Application()
    app[COORDINATOR_KEY] = coordinator
    app[CONFIG_KEY] = config

    app.router.add_post(config.telemetry_path, _handle_telemetry)
    app.router.add_get(config.ws_path, _handle_subscribe)
    app.router.add_get("/api/vehicles", _handle_vehicles)
    app.router.add_get("/api/vehicles/{vehicle_id}", _handle_vehicle)

    app.on_startup.append(_on_startup)
    app.on_shutdown.append(_on_shutdown)
    app.on_cleanup.append(_on_cleanup)
    return app
