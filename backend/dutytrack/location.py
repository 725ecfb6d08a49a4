"""
Location provider contract and the client-reported implementation.

The backend never samples GPS itself: the mobile client reports positions
over HTTP. ``ReportedLocationProvider`` turns those reports into the
permission / current-position / watch interface the duty state machine
consumes, applying the watch options (minimum distance and minimum interval
between delivered updates).
"""

import logging
import math
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import datetime
from typing import Protocol

from dutytrack.core.clock import utcnow
from dutytrack.core.errors import UpstreamUnavailable
from dutytrack.schemas.attendance import Coordinate

logger = logging.getLogger(__name__)

LocationCallback = Callable[[Coordinate], Awaitable[None]]

_EARTH_RADIUS_M = 6_371_000.0


@dataclass(frozen=True)
class WatchOptions:
    time_interval_sec: int = 30
    distance_interval_m: int = 10


class Subscription:
    """Handle returned by ``watch_position``; ``cancel`` may be called any number of times."""

    def __init__(self, on_cancel: Callable[[], None]) -> None:
        self._on_cancel = on_cancel
        self.cancelled = False

    def cancel(self) -> None:
        if self.cancelled:
            return
        self.cancelled = True
        self._on_cancel()


class LocationProvider(Protocol):
    async def request_permission(self) -> bool: ...

    async def get_current_position(self) -> Coordinate: ...

    def watch_position(
        self, options: WatchOptions, on_update: LocationCallback
    ) -> Subscription: ...


def distance_m(a: Coordinate, b: Coordinate) -> float:
    """Great-circle distance in metres (haversine)."""
    lat1, lat2 = math.radians(a.latitude), math.radians(b.latitude)
    dlat = lat2 - lat1
    dlon = math.radians(b.longitude - a.longitude)
    h = math.sin(dlat / 2) ** 2 + math.cos(lat1) * math.cos(lat2) * math.sin(dlon / 2) ** 2
    return 2 * _EARTH_RADIUS_M * math.asin(min(1.0, math.sqrt(h)))


class _Watcher:
    def __init__(self, options: WatchOptions, on_update: LocationCallback) -> None:
        self.options = options
        self.on_update = on_update
        self.last_position: Coordinate | None = None
        self.last_delivered_at: datetime | None = None

    def wants(self, position: Coordinate, at: datetime) -> bool:
        if self.last_position is None or self.last_delivered_at is None:
            return True
        elapsed = (at - self.last_delivered_at).total_seconds()
        if elapsed >= self.options.time_interval_sec:
            return True
        return distance_m(self.last_position, position) >= self.options.distance_interval_m


class ReportedLocationProvider:
    """Location provider fed by positions the client reports for one subject."""

    def __init__(self, clock: Callable[[], datetime] = utcnow) -> None:
        self._clock = clock
        self._permission_granted = False
        self._position: Coordinate | None = None
        self._watchers: list[_Watcher] = []

    def set_permission(self, granted: bool) -> None:
        self._permission_granted = granted

    def set_position(self, position: Coordinate) -> None:
        """Record a position without notifying watchers."""
        self._position = position

    @property
    def watching(self) -> bool:
        return bool(self._watchers)

    async def request_permission(self) -> bool:
        return self._permission_granted

    async def get_current_position(self) -> Coordinate:
        if self._position is None:
            raise UpstreamUnavailable("No position has been reported by the client")
        return self._position

    def watch_position(self, options: WatchOptions, on_update: LocationCallback) -> Subscription:
        watcher = _Watcher(options, on_update)
        self._watchers.append(watcher)

        def _remove() -> None:
            if watcher in self._watchers:
                self._watchers.remove(watcher)

        return Subscription(_remove)

    async def report(self, position: Coordinate) -> int:
        """Store a reported position and deliver it to interested watchers.

        Returns the number of watchers the update was delivered to.
        """
        self._position = position
        at = self._clock()
        delivered = 0
        for watcher in list(self._watchers):
            if watcher not in self._watchers or not watcher.wants(position, at):
                continue
            await watcher.on_update(position)
            watcher.last_position = position
            watcher.last_delivered_at = at
            delivered += 1
        if not delivered:
            logger.debug("Location report not delivered (no watcher or below interval)")
        return delivered
