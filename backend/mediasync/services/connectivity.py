"""Server reachability — health polling plus host-reported online/offline events."""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, Protocol

import httpx

from mediasync.config import settings
from mediasync.services.signals import Signal, Unsubscribe

logger = logging.getLogger(__name__)


class ConnectivityObserver(Protocol):
    """What the reconciler needs to know about the network."""

    def is_online(self) -> bool: ...

    def subscribe(self, callback: Callable[[bool], None]) -> Unsubscribe: ...


class ConnectivityState(str, Enum):
    UNKNOWN = "unknown"
    ONLINE = "online"
    OFFLINE = "offline"


class HttpConnectivityMonitor:
    """Periodically polls the inspection server health endpoint.

    One successful probe marks the server reachable; ``failure_threshold``
    consecutive failures mark it unreachable. ``UNKNOWN`` counts as online so
    a fresh device does not hold back its queue before the first probe.
    """

    def __init__(
        self,
        health_url: str | None = None,
        poll_interval: float | None = None,
        timeout: float | None = None,
        failure_threshold: int | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self._health_url = health_url or f"{settings.server_url}{settings.health_path}"
        self._poll_interval = poll_interval or settings.connectivity_poll_interval
        self._timeout = timeout or settings.connectivity_timeout
        self._failure_threshold = failure_threshold or settings.connectivity_failure_threshold
        self._transport = transport
        self._state = ConnectivityState.UNKNOWN
        self._since = datetime.now(timezone.utc)
        self._consecutive_failures = 0
        self._changes: Signal[bool] = Signal("connectivity")
        self._task: asyncio.Task | None = None
        self._running = False

    @property
    def state(self) -> ConnectivityState:
        return self._state

    @property
    def since(self) -> datetime:
        return self._since

    def is_online(self) -> bool:
        return self._state != ConnectivityState.OFFLINE

    def subscribe(self, callback: Callable[[bool], None]) -> Unsubscribe:
        return self._changes.subscribe(callback)

    async def start(self) -> None:
        """Probe once, then keep polling in the background."""
        if self._task is not None:
            return
        self._running = True
        await self.check()
        self._task = asyncio.create_task(self._run_loop())
        logger.info("Connectivity monitor started — polling %s every %ss", self._health_url, self._poll_interval)

    async def stop(self) -> None:
        self._running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        logger.info("Connectivity monitor stopped")

    async def probe(self) -> bool:
        """GET the health endpoint. Returns True on HTTP 200."""
        try:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                resp = await client.get(self._health_url)
                return resp.status_code == 200
        except (httpx.HTTPError, OSError):
            return False

    async def check(self) -> bool:
        """Probe now and update state. Returns the resulting online flag."""
        self.report(await self.probe(), source="probe")
        return self.is_online()

    def report(self, reachable: bool, source: str = "host") -> None:
        """Feed a reachability observation (probe result or platform event).

        Host events are authoritative: an "offline" event switches state
        immediately, without waiting for the failure threshold.
        """
        if reachable:
            self._consecutive_failures = 0
            self._transition(ConnectivityState.ONLINE, source)
            return

        self._consecutive_failures += 1
        if source != "probe" or self._consecutive_failures >= self._failure_threshold:
            self._transition(ConnectivityState.OFFLINE, source)

    def to_dict(self) -> dict:
        return {
            "state": self._state.value,
            "since": self._since.isoformat(),
        }

    def _transition(self, new_state: ConnectivityState, source: str) -> None:
        if new_state == self._state:
            return
        old_state = self._state
        self._state = new_state
        self._since = datetime.now(timezone.utc)
        logger.info("Connectivity: %s -> %s (%s)", old_state.value, new_state.value, source)
        self._changes.emit(new_state == ConnectivityState.ONLINE)

    async def _run_loop(self) -> None:
        while self._running:
            try:
                await asyncio.sleep(self._poll_interval)
            except asyncio.CancelledError:
                break
            try:
                await self.check()
            except Exception as e:
                logger.error("Connectivity check error: %s", e)
