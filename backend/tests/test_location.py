"""
Client-reported location provider tests.

Tests:
  - test_distance_*            : haversine helper
  - TestSubscription           : cancel is idempotent
  - TestReportedLocation       : permission, current position, watch filtering
"""

import pytest

from dutytrack.core.errors import UpstreamUnavailable
from dutytrack.location import ReportedLocationProvider, Subscription, WatchOptions, distance_m
from dutytrack.schemas.attendance import Coordinate

DHAKA = Coordinate(latitude=23.8103, longitude=90.4125)


def test_distance_zero_for_same_point() -> None:
    assert distance_m(DHAKA, DHAKA) == 0


def test_distance_one_degree_of_latitude() -> None:
    a = Coordinate(latitude=0, longitude=0)
    b = Coordinate(latitude=1, longitude=0)
    assert distance_m(a, b) == pytest.approx(111_195, rel=1e-3)


class TestSubscription:
    def test_cancel_runs_callback_once(self) -> None:
        calls = []
        sub = Subscription(lambda: calls.append(1))
        sub.cancel()
        sub.cancel()
        assert calls == [1]
        assert sub.cancelled is True


class TestReportedLocation:
    async def test_permission_defaults_to_denied(self, clock) -> None:
        provider = ReportedLocationProvider(clock)
        assert await provider.request_permission() is False
        provider.set_permission(True)
        assert await provider.request_permission() is True

    async def test_current_position_requires_a_report(self, clock) -> None:
        provider = ReportedLocationProvider(clock)
        with pytest.raises(UpstreamUnavailable):
            await provider.get_current_position()
        provider.set_position(DHAKA)
        assert await provider.get_current_position() == DHAKA

    async def test_watch_filters_by_distance_and_interval(self, clock) -> None:
        provider = ReportedLocationProvider(clock)
        received = []

        async def on_update(position: Coordinate) -> None:
            received.append(position)

        provider.watch_position(WatchOptions(time_interval_sec=30, distance_interval_m=10), on_update)
        assert provider.watching

        assert await provider.report(DHAKA) == 1
        # Same spot a few seconds later: below both thresholds
        clock.advance(seconds=5)
        assert await provider.report(DHAKA) == 0
        # Moved roughly 110 m
        clock.advance(seconds=5)
        moved = Coordinate(latitude=DHAKA.latitude + 0.001, longitude=DHAKA.longitude)
        assert await provider.report(moved) == 1
        # Not moved, but the interval has passed
        clock.advance(seconds=30)
        assert await provider.report(moved) == 1
        assert len(received) == 3

    async def test_cancelled_watch_receives_nothing(self, clock) -> None:
        provider = ReportedLocationProvider(clock)
        received = []

        async def on_update(position: Coordinate) -> None:
            received.append(position)

        sub = provider.watch_position(WatchOptions(), on_update)
        sub.cancel()
        sub.cancel()
        assert not provider.watching
        assert await provider.report(DHAKA) == 0
        assert received == []
        # The reported position is still remembered
        assert await provider.get_current_position() == DHAKA
