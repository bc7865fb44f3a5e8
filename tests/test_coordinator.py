from __future__ import annotations

import json

import pytest

from fleetpulse.config import PipelineConfig
from fleetpulse.coordinator import IngestionCoordinator
from fleetpulse.fanout.registry import SubscriberRegistry
from fleetpulse.state.liveness import LivenessTracker

VH1 = '{"vehicleId":"VH-1","timestamp":1000,"location":{"latitude":1,"longitude":2}}'


def _coordinator(consumer, clock) -> IngestionCoordinator:
    config = PipelineConfig()
    tracker = LivenessTracker(consumer, timeout_ms=config.heartbeat_timeout_ms, clock=clock)
    return IngestionCoordinator(consumer, config=config, tracker=tracker)


@pytest.mark.asyncio
async def test_valid_record_touches_forwards_and_broadcasts(consumer, clock, make_subscriber) -> None:
    coordinator = _coordinator(consumer, clock)
    subscriber = make_subscriber()
    coordinator.register_subscriber("s1", subscriber)

    assert await coordinator.ingest(VH1) is True

    assert coordinator.tracker.last_seen("VH-1") == clock.now
    assert [record.vehicle_id for record in consumer.records] == ["VH-1"]
    assert len(subscriber.messages) == 1
    assert json.loads(subscriber.messages[0]) == {
        "type": "vehicle_update",
        "vehicleId": "VH-1",
        "timestamp": 1000,
        "location": {"latitude": 1, "longitude": 2},
    }


@pytest.mark.asyncio
async def test_liveness_uses_receipt_time_not_record_timestamp(consumer, clock) -> None:
    coordinator = _coordinator(consumer, clock)

    await coordinator.ingest(VH1)

    assert coordinator.tracker.last_seen("VH-1") != 1000
    assert coordinator.tracker.last_seen("VH-1") == clock.now


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "payload",
    [
        {"timestamp": 1000, "location": {"latitude": 1, "longitude": 2}},
        {"vehicleId": "VH-1", "location": {"latitude": 1, "longitude": 2}},
        {"vehicleId": "VH-1", "timestamp": 1000},
        {"vehicleId": "VH-1", "timestamp": 1000, "location": {"latitude": 1}},
        {"vehicleId": "VH-1", "timestamp": 1000, "location": {"longitude": 2}},
    ],
)
async def test_invalid_record_has_no_side_effects(consumer, clock, make_subscriber, payload) -> None:
    coordinator = _coordinator(consumer, clock)
    subscriber = make_subscriber()
    coordinator.register_subscriber("s1", subscriber)

    assert await coordinator.ingest(json.dumps(payload)) is False

    assert len(coordinator.tracker) == 0
    assert consumer.records == []
    assert subscriber.messages == []


@pytest.mark.asyncio
async def test_invalid_record_does_not_refresh_existing_entry(consumer, clock) -> None:
    coordinator = _coordinator(consumer, clock)
    await coordinator.ingest(VH1)
    first_seen = coordinator.tracker.last_seen("VH-1")

    clock.advance(10_000)
    assert await coordinator.ingest('{"vehicleId":"VH-1","timestamp":2000}') is False

    assert coordinator.tracker.last_seen("VH-1") == first_seen


@pytest.mark.asyncio
@pytest.mark.parametrize("payload", ["{oops", b"\x00\xff", "[]", "null"])
async def test_undecodable_payload_returns_false(consumer, clock, payload) -> None:
    coordinator = _coordinator(consumer, clock)

    assert await coordinator.ingest(payload) is False
    assert len(coordinator.tracker) == 0


@pytest.mark.asyncio
async def test_consumer_failure_keeps_touch_and_still_broadcasts(consumer, clock, make_subscriber) -> None:
    coordinator = _coordinator(consumer, clock)
    subscriber = make_subscriber()
    coordinator.register_subscriber("s1", subscriber)
    consumer.fail_telemetry = True

    assert await coordinator.ingest(VH1) is False

    assert coordinator.tracker.last_seen("VH-1") == clock.now
    assert len(subscriber.messages) == 1


@pytest.mark.asyncio
async def test_subscriber_failure_is_not_surfaced(consumer, clock, make_subscriber) -> None:
    coordinator = _coordinator(consumer, clock)
    broken = make_subscriber(fail_with=OSError("socket closed"))
    healthy = make_subscriber()
    coordinator.register_subscriber("broken", broken)
    coordinator.register_subscriber("healthy", healthy)

    assert await coordinator.ingest(VH1) is True
    assert len(healthy.messages) == 1


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "extra",
    [
        {"fuelLevel": "full"},
        {"engine": {"rpm": "fast"}},
        {"engine": "V8"},
        {"timestamp": "yesterday"},
    ],
)
async def test_unreadable_broadcast_value_after_touch_returns_false(consumer, clock, make_subscriber, extra) -> None:
    coordinator = _coordinator(consumer, clock)
    subscriber = make_subscriber()
    coordinator.register_subscriber("s1", subscriber)
    payload = {"vehicleId": "VH-1", "timestamp": 1000, "location": {"latitude": 1, "longitude": 2}, **extra}

    assert await coordinator.ingest(json.dumps(payload)) is False

    assert coordinator.tracker.last_seen("VH-1") == clock.now
    assert consumer.records == []
    assert subscriber.messages == []


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "extra",
    [
        {"accelerometer": {"x": "n/a"}},
        {"accelerometer": [1, 2, 3]},
        {"engine": {"rpm": 1500, "temperature": "hot"}},
        {"location": {"latitude": "north", "longitude": 2, "altitude": "high"}},
    ],
)
async def test_pass_through_fields_are_not_type_checked(consumer, clock, make_subscriber, extra) -> None:
    coordinator = _coordinator(consumer, clock)
    subscriber = make_subscriber()
    coordinator.register_subscriber("s1", subscriber)
    payload = {"vehicleId": "VH-1", "timestamp": 1000, "location": {"latitude": 1, "longitude": 2}, **extra}

    assert await coordinator.ingest(payload) is True

    assert len(consumer.records) == 1
    assert consumer.records[0].raw == payload
    assert json.loads(subscriber.messages[0])["location"] == payload["location"]


@pytest.mark.asyncio
async def test_broadcast_echoes_location_as_received(consumer, clock, make_subscriber) -> None:
    coordinator = _coordinator(consumer, clock)
    subscriber = make_subscriber()
    coordinator.register_subscriber("s1", subscriber)
    location = {"latitude": 1, "longitude": 2, "accuracy": "gps"}

    await coordinator.ingest({"vehicleId": "VH-1", "timestamp": 1000, "location": location})

    assert json.loads(subscriber.messages[0])["location"] == location


def test_injected_collaborators_are_kept_even_when_empty(consumer, clock) -> None:
    tracker = LivenessTracker(consumer, clock=clock)
    registry = SubscriberRegistry()

    coordinator = IngestionCoordinator(consumer, tracker=tracker, registry=registry)

    assert coordinator.tracker is tracker
    assert coordinator.registry is registry


@pytest.mark.asyncio
async def test_non_string_vehicle_id_is_rejected_without_touch(consumer, clock) -> None:
    coordinator = _coordinator(consumer, clock)
    payload = {"vehicleId": {"id": 1}, "timestamp": 1000, "location": {"latitude": 1, "longitude": 2}}

    assert await coordinator.ingest(payload) is False
    assert len(coordinator.tracker) == 0


@pytest.mark.asyncio
async def test_broadcast_speed_derived_from_rpm(consumer, clock, make_subscriber) -> None:
    coordinator = _coordinator(consumer, clock)
    subscriber = make_subscriber()
    coordinator.register_subscriber("s1", subscriber)
    payload = {
        "vehicleId": "VH-2",
        "timestamp": 5,
        "location": {"latitude": 1, "longitude": 2},
        "fuelLevel": 42.5,
        "engine": {"rpm": 1500, "temperature": 90},
    }

    assert await coordinator.ingest(payload) is True

    message = json.loads(subscriber.messages[0])
    assert message["speed"] == 15
    assert message["fuelLevel"] == 42.5


@pytest.mark.asyncio
async def test_forwarded_record_keeps_all_fields(consumer, clock) -> None:
    coordinator = _coordinator(consumer, clock)
    payload = {
        "vehicleId": "VH-3",
        "timestamp": 5,
        "location": {"latitude": 1, "longitude": 2},
        "accelerometer": {"x": 0.5, "y": 0.1, "z": 9.8},
        "firmware": "1.2.3",
    }

    await coordinator.ingest(payload)

    forwarded = consumer.records[0].to_wire()
    assert forwarded["accelerometer"] == {"x": 0.5, "y": 0.1, "z": 9.8}
    assert forwarded["firmware"] == "1.2.3"


@pytest.mark.asyncio
async def test_unregistered_subscriber_stops_receiving(consumer, clock, make_subscriber) -> None:
    coordinator = _coordinator(consumer, clock)
    subscriber = make_subscriber()
    coordinator.register_subscriber("s1", subscriber)
    await coordinator.ingest(VH1)

    coordinator.unregister_subscriber("s1")
    coordinator.unregister_subscriber("s1")
    await coordinator.ingest(VH1)

    assert len(subscriber.messages) == 1


@pytest.mark.asyncio
async def test_context_manager_starts_and_stops_sweep(consumer) -> None:
    config = PipelineConfig(sweep_interval=10.0, shutdown_grace=0.5)

    async with IngestionCoordinator(consumer, config=config) as coordinator:
        assert coordinator.tracker.is_running
        assert coordinator.tracker.timeout_ms == config.heartbeat_timeout_ms

    assert not coordinator.tracker.is_running
