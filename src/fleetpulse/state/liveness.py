"""Vehicle liveness tracking.

The tracker is the only component that owns the vehicle -> last-seen map.
Ingestion paths call :meth:`LivenessTracker.touch`; a periodic task calls
:meth:`LivenessTracker.sweep` and reports silent vehicles downstream.

Entries are never evicted. The map grows with the number of distinct
vehicle identifiers ever seen, and a vehicle that goes permanently silent
is reported offline on every sweep.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import time
from collections.abc import Callable
from typing import Protocol

from fleetpulse.models.events import OfflineEvent


class EventConsumer(Protocol):
    async def process_event(self, event: OfflineEvent) -> None: ...


def _now_ms() -> int:
    """Current wall-clock epoch timestamp in milliseconds."""
    return int(time.time() * 1000)


class LivenessTracker:
    """Last-seen bookkeeping plus a periodic offline sweep.

    Usage::

        tracker = LivenessTracker(consumer)
        tracker.start()
        tracker.touch("VH-1")
        ...
        await tracker.stop()

    ``touch`` and the reads are single dict operations on the event loop,
    so each vehicle's entry is updated atomically without any lock shared
    with other vehicles or with the subscriber registry.
    """

    def __init__(
        self,
        consumer: EventConsumer,
        *,
        timeout_ms: int = 120_000,
        sweep_interval: float = 30.0,
        clock: Callable[[], int] = _now_ms,
        logger: logging.Logger | None = None,
    ) -> None:
        self._consumer = consumer
        self._timeout_ms = timeout_ms
        self._sweep_interval = sweep_interval
        self._clock = clock
        self._logger = logger or logging.getLogger(__name__)
        self._last_seen: dict[str, int] = {}
        self._sweep_lock = asyncio.Lock()
        self._task: asyncio.Task[None] | None = None

    @property
    def timeout_ms(self) -> int:
        return self._timeout_ms

    @property
    def is_running(self) -> bool:
        """Whether the periodic sweep task is active."""
        return self._task is not None and not self._task.done()

    def __len__(self) -> int:
        return len(self._last_seen)

    def now(self) -> int:
        """Current time in epoch milliseconds, from the tracker's clock."""
        return self._clock()

    # ------------------------------------------------------------------
    # Bookkeeping
    # ------------------------------------------------------------------

    def touch(self, vehicle_id: str) -> int:
        """Record receipt time as *vehicle_id*'s last-seen timestamp.

        Concurrent touches for the same vehicle resolve last-writer-wins on
        the wall-clock read, not on message arrival order.
        """
        now = self._clock()
        self._last_seen[vehicle_id] = now
        return now

    def last_seen(self, vehicle_id: str) -> int | None:
        return self._last_seen.get(vehicle_id)

    def snapshot(self) -> dict[str, int]:
        """Copy of the full last-seen map."""
        return dict(self._last_seen)

    def is_online(self, vehicle_id: str, now: int | None = None) -> bool:
        """Whether *vehicle_id* has been seen within the timeout."""
        last = self._last_seen.get(vehicle_id)
        if last is None:
            return False
        current = self._clock() if now is None else now
        return current - last <= self._timeout_ms

    # ------------------------------------------------------------------
    # Sweep
    # ------------------------------------------------------------------

    async def sweep(self, now: int | None = None, timeout_ms: int | None = None) -> list[OfflineEvent]:
        """Emit one :class:`OfflineEvent` per vehicle silent for longer than the timeout.

        Every known vehicle is checked on every call; there is no
        once-only suppression. A call made while another sweep is still
        running is skipped and returns an empty list.
        """
        if self._sweep_lock.locked():
            self._logger.debug("Liveness sweep skipped; previous sweep still running")
            return []

        async with self._sweep_lock:
            current = self._clock() if now is None else now
            timeout = self._timeout_ms if timeout_ms is None else timeout_ms

            emitted: list[OfflineEvent] = []
            for vehicle_id, last_seen in list(self._last_seen.items()):
                silent_ms = current - last_seen
                if silent_ms <= timeout:
                    continue

                self._logger.info(
                    "Vehicle %s may be offline; last heartbeat %d seconds ago",
                    vehicle_id,
                    silent_ms // 1000,
                )
                event = OfflineEvent(vehicle_id=vehicle_id, timestamp=current)
                try:
                    await self._consumer.process_event(event)
                except Exception:
                    self._logger.warning("Offline event delivery failed vehicle=%s", vehicle_id, exc_info=True)
                    continue
                emitted.append(event)

            return emitted

    # ------------------------------------------------------------------
    # Periodic task lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Start the periodic sweep on the running event loop.

        The first sweep runs immediately. Later sweeps are scheduled at
        fixed-rate deadlines; a deadline that passed while a sweep was
        running is skipped rather than run late.
        """
        if self.is_running:
            return
        self._task = asyncio.get_running_loop().create_task(self._run(), name="fleetpulse-liveness-sweep")
        self._logger.debug(
            "Liveness sweep started interval=%ss timeout=%sms",
            self._sweep_interval,
            self._timeout_ms,
        )

    async def _run(self) -> None:
        loop = asyncio.get_running_loop()
        interval = self._sweep_interval
        started = loop.time()
        tick = 0
        while True:
            try:
                await self.sweep()
            except Exception:
                self._logger.warning("Liveness sweep failed", exc_info=True)

            elapsed = loop.time() - started
            tick = max(tick + 1, int(elapsed // interval) + 1)
            await asyncio.sleep(max(0.0, started + tick * interval - loop.time()))

    async def stop(self, grace: float = 5.0) -> None:
        """Stop the periodic sweep.

        A sweep in progress gets *grace* seconds to finish; the task is
        then cancelled. Waiting for the cancelled task is itself bounded.
        """
        task = self._task
        self._task = None
        if task is None or task.done():
            return

        if self._sweep_lock.locked():
            with contextlib.suppress(TimeoutError):
                await asyncio.wait_for(self._wait_for_idle(), grace)

        task.cancel()
        _done, pending = await asyncio.wait({task}, timeout=grace)
        if pending:
            self._logger.warning("Liveness sweep did not stop within %ss", grace)
        self._logger.debug("Liveness sweep stopped")

    async def _wait_for_idle(self) -> None:
        async with self._sweep_lock:
            return
