"""Live subscriber registry and best-effort fan-out."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterator
from dataclasses import dataclass
from typing import Protocol, runtime_checkable

from fleetpulse.exceptions import FleetBroadcastSendError
from fleetpulse.models.broadcast import BroadcastView


@runtime_checkable
class SubscriberHandle(Protocol):
    """Capability the registry needs from a subscriber transport."""

    async def send(self, message: str) -> bool: ...

    def is_open(self) -> bool: ...


@dataclass(frozen=True)
class BroadcastResult:
    """Outcome counts for one fan-out."""

    delivered: int = 0
    failed: int = 0
    skipped: int = 0

    @property
    def attempted(self) -> int:
        return self.delivered + self.failed


class SubscriberRegistry:
    """Session id -> subscriber handle map.

    The registry never opens or closes transports. Handles are added and
    removed by the transport layer on connect/disconnect. A send that takes
    longer than *send_timeout* seconds is abandoned and counted as failed.
    """

    def __init__(self, *, send_timeout: float = 5.0, logger: logging.Logger | None = None) -> None:
        self._send_timeout = send_timeout
        self._logger = logger or logging.getLogger(__name__)
        self._sessions: dict[str, SubscriberHandle] = {}
        self._send_failures = 0

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, session_id: object) -> bool:
        return session_id in self._sessions

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._sessions))

    @property
    def send_failures(self) -> int:
        """Total failed sends since the registry was created."""
        return self._send_failures

    def register(self, session_id: str, handle: SubscriberHandle) -> None:
        """Register *handle*, replacing any handle already under *session_id*."""
        replaced = session_id in self._sessions
        self._sessions[session_id] = handle
        self._logger.info("Registered subscriber session %s%s", session_id, " (replaced)" if replaced else "")

    def unregister(self, session_id: str) -> None:
        """Remove *session_id*. Unknown ids are ignored."""
        if self._sessions.pop(session_id, None) is not None:
            self._logger.info("Unregistered subscriber session %s", session_id)

    def get(self, session_id: str) -> SubscriberHandle | None:
        return self._sessions.get(session_id)

    def session_ids(self) -> list[str]:
        return list(self._sessions)

    async def broadcast(self, view: BroadcastView) -> BroadcastResult:
        """Send *view* to every registered subscriber.

        Sends run concurrently over a snapshot of the registry. A failed
        send is logged and counted and never stops delivery to the others.
        This method does not raise for send failures.
        """
        message = view.to_json()
        targets = list(self._sessions.items())
        if not targets:
            return BroadcastResult()

        open_targets = [(session_id, handle) for session_id, handle in targets if self._is_open(session_id, handle)]
        skipped = len(targets) - len(open_targets)

        outcomes = await asyncio.gather(
            *(self._deliver(session_id, handle, message) for session_id, handle in open_targets)
        )
        delivered = sum(1 for ok in outcomes if ok)
        failed = len(outcomes) - delivered
        self._send_failures += failed

        if failed or skipped:
            self._logger.debug(
                "Broadcast vehicle=%s delivered=%d failed=%d skipped=%d",
                view.vehicle_id,
                delivered,
                failed,
                skipped,
            )
        return BroadcastResult(delivered=delivered, failed=failed, skipped=skipped)

    def _is_open(self, session_id: str, handle: SubscriberHandle) -> bool:
        try:
            return bool(handle.is_open())
        except Exception:
            self._logger.debug("is_open check failed for session %s", session_id, exc_info=True)
            return False

    async def _deliver(self, session_id: str, handle: SubscriberHandle, message: str) -> bool:
        try:
            await self._send_one(session_id, handle, message)
        except FleetBroadcastSendError as exc:
            self._logger.warning("Error sending update to session %s: %s", session_id, exc)
            return False
        return True

    async def _send_one(self, session_id: str, handle: SubscriberHandle, message: str) -> None:
        try:
            ok = await asyncio.wait_for(handle.send(message), self._send_timeout)
        except TimeoutError as exc:
            raise FleetBroadcastSendError(f"send timed out after {self._send_timeout}s", session_id=session_id) from exc
        except Exception as exc:
            raise FleetBroadcastSendError(f"send raised {type(exc).__name__}: {exc}", session_id=session_id) from exc
        if ok is False:
            raise FleetBroadcastSendError("transport reported send failure", session_id=session_id)
