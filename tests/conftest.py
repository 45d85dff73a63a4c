"""Shared fixtures: a controllable clock and in-memory platform fakes."""

from __future__ import annotations

import pytest

from storefence.core.cache import StoreLocationCache
from storefence.core.cooldown import CooldownTracker
from storefence.core.dispatcher import NotificationDispatcher
from storefence.core.models import GeofenceSite
from storefence.core.platform import MemoryNotificationService, PermissionStatus
from storefence.core.task import BackgroundLocationTask

T0 = 1_700_000_000.0


class FakeClock:
    def __init__(self, start: float = T0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FlakyNotificationService(MemoryNotificationService):
    """Fails the first ``failures`` schedule calls, then behaves."""

    def __init__(self, failures: int = 1):
        super().__init__()
        self.failures = failures
        self.attempts = 0

    def schedule(self, request):
        self.attempts += 1
        if self.attempts <= self.failures:
            raise RuntimeError("notification service busy")
        return super().schedule(request)


class FakePermissions:
    def __init__(self, **statuses: str):
        self.statuses = statuses
        self.requested: list[str] = []

    def request(self, permission):
        self.requested.append(permission.value)
        return PermissionStatus(self.statuses.get(permission.value, "granted"))


class MemoryTaskRegistry:
    def __init__(self):
        self.tasks: dict = {}

    def is_registered(self, name):
        return name in self.tasks

    def start_location_updates(self, name, options):
        self.tasks[name] = options

    def stop_location_updates(self, name):
        del self.tasks[name]


def platform_sample(lat: float, lon: float, ts: float = T0, accuracy: float = 12.0) -> dict:
    return {
        "coords": {"latitude": lat, "longitude": lon, "accuracy": accuracy},
        "timestamp": int(ts * 1000),
    }


@pytest.fixture()
def clock():
    return FakeClock()


@pytest.fixture()
def countdown():
    return GeofenceSite(
        id="store-countdown",
        name="Countdown",
        latitude=-41.1206,
        longitude=172.9897,
        trigger_radius_m=150.0,
        pending_item_count=3,
    )


@pytest.fixture()
def cache(tmp_path):
    return StoreLocationCache(tmp_path / "geofencing_stores.json")


@pytest.fixture()
def notifier():
    return MemoryNotificationService()


@pytest.fixture()
def tracker(clock):
    return CooldownTracker(window_sec=30 * 60.0, clock=clock)


@pytest.fixture()
def task(cache, tracker, notifier):
    return BackgroundLocationTask(cache, tracker, NotificationDispatcher(notifier))
