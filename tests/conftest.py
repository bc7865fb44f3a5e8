from __future__ import annotations

from dataclasses import dataclass, field

import pytest

from fleetpulse.models.events import OfflineEvent
from fleetpulse.models.telemetry import TelemetryRecord


@dataclass
class FakeClock:
    now: int = 1_700_000_000_000

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += ms


@dataclass
class RecordingConsumer:
    records: list[TelemetryRecord] = field(default_factory=list)
    events: list[OfflineEvent] = field(default_factory=list)
    fail_telemetry: bool = False
    fail_events_for: set[str] = field(default_factory=set)

    async def process_telemetry(self, record: TelemetryRecord) -> None:
        if self.fail_telemetry:
            raise RuntimeError("downstream unavailable")
        self.records.append(record)

    async def process_event(self, event: OfflineEvent) -> None:
        if event.vehicle_id in self.fail_events_for:
            raise RuntimeError("downstream unavailable")
        self.events.append(event)


@dataclass
class FakeSubscriber:
    open: bool = True
    fail_with: Exception | None = None
    report_failure: bool = False
    messages: list[str] = field(default_factory=list)

    async def send(self, message: str) -> bool:
        if self.fail_with is not None:
            raise self.fail_with
        if self.report_failure:
            return False
        self.messages.append(message)
        return True

    def is_open(self) -> bool:
        return self.open


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def consumer() -> RecordingConsumer:
    return RecordingConsumer()


@pytest.fixture
def make_subscriber() -> type[FakeSubscriber]:
    return FakeSubscriber
