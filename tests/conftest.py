"""
Shared fakes for the tracking tests.

All device collaborators are in-memory: sensors return whatever the test
sets, the location provider returns a preset fix (optionally blocking on
an asyncio.Event), and the channel/ringer record what they were asked.
"""

import asyncio
from typing import List, Optional, Tuple

import pytest

from silentzone_notify import NotificationDispatchError, NotificationEventBus
from silentzone_tracker import (
    InMemoryPlaceRepository,
    Place,
    PositionFix,
    TrackerConfig,
    TrackingOrchestrator,
)
from silentzone_zone.geometry.grid import METERS_PER_DEGREE_LAT


START_MS = 1_700_000_000_000

HOME_LAT = 30.0444
HOME_LNG = 31.2357


def offset_north(lat: float, meters: float) -> float:
    """Latitude shifted by a distance in meters (negative = south)."""
    return lat + meters / METERS_PER_DEGREE_LAT


class ManualClock:
    """Epoch-ms clock that only moves when told to."""

    def __init__(self, now: int = START_MS):
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += ms


class FakeSensors:
    def __init__(self, steps: int = 0, magnitude: float = 9.8, heading: float = 0.0):
        self.steps = steps
        self.magnitude = magnitude
        self.heading = heading
        self.fail = False

    async def get_step_count(self):
        if self.fail:
            raise RuntimeError("pedometer offline")
        return {"steps": self.steps}

    async def get_acceleration(self):
        if self.fail:
            raise RuntimeError("accelerometer offline")
        return {"magnitude": self.magnitude}

    async def get_magnetic_heading(self):
        if self.fail:
            raise RuntimeError("compass offline")
        return {"heading": self.heading}


class FakeLocation:
    """
    Location provider returning a preset fix.

    gps_fix answers high-accuracy requests when set; error is raised for
    every other request; block (an asyncio.Event) holds each request until
    the test sets it.
    """

    def __init__(self, fix: Optional[PositionFix] = None, error: Optional[Exception] = None):
        self.fix = fix
        self.error = error
        self.gps_fix: Optional[PositionFix] = None
        self.block: Optional[asyncio.Event] = None
        self.calls: List[bool] = []
        self.cancelled = False

    async def get_current_position(self, high_accuracy, timeout_s, maximum_age_s):
        self.calls.append(high_accuracy)
        if self.block is not None:
            try:
                await self.block.wait()
            except asyncio.CancelledError:
                self.cancelled = True
                raise
        if high_accuracy and self.gps_fix is not None:
            return self.gps_fix
        if self.error is not None:
            raise self.error
        return self.fix


class RecordingChannel:
    def __init__(self):
        self.shown: List[Tuple[str, str, str]] = []
        self.fail = False

    def show_notification(self, title, body, notification_id, silent=False, grouped=True):
        if self.fail:
            raise NotificationDispatchError("display service down")
        self.shown.append((title, body, notification_id))

    @property
    def titles(self) -> List[str]:
        return [title for title, _, _ in self.shown]


class FakeRinger:
    def __init__(self):
        self.calls: List[str] = []

    async def silence(self):
        self.calls.append("silence")

    async def restore(self):
        self.calls.append("restore")


@pytest.fixture
def clock():
    return ManualClock()


@pytest.fixture
def home():
    return Place(id="home", name="Home", lat=HOME_LAT, lng=HOME_LNG, radius_meters=50)


@pytest.fixture
def mosque():
    return Place(id="mosque", name="Central Mosque", lat=30.0478, lng=31.2336, radius_meters=60)


@pytest.fixture
def make_fix(clock):
    def _make(lat: float, lng: float, accuracy: float = 40.0, age_ms: int = 0) -> PositionFix:
        return PositionFix(lat=lat, lng=lng, accuracy_meters=accuracy, timestamp=clock() - age_ms)
    return _make


class Harness:
    """Orchestrator wired to fakes."""

    def __init__(self, places: List[Place], clock: ManualClock, config: Optional[TrackerConfig] = None):
        self.clock = clock
        self.repository = InMemoryPlaceRepository(places)
        self.sensors = FakeSensors()
        self.location = FakeLocation()
        self.channel = RecordingChannel()
        self.ringer = FakeRinger()
        self.bus = NotificationEventBus(channel=self.channel, clock=clock)
        self.orchestrator = TrackingOrchestrator(
            repository=self.repository,
            sensors=self.sensors,
            location=self.location,
            bus=self.bus,
            ringer=self.ringer,
            config=config or TrackerConfig(service_id="test"),
            clock=clock,
        )

    def fix_at(self, lat: float, lng: float, accuracy: float = 40.0) -> None:
        self.location.fix = PositionFix(lat=lat, lng=lng, accuracy_meters=accuracy, timestamp=self.clock())

    def walk(self, steps: int, heading: float) -> None:
        self.sensors.steps += steps
        self.sensors.heading = heading


@pytest.fixture
def harness(clock):
    def _make(places: List[Place], config: Optional[TrackerConfig] = None) -> Harness:
        return Harness(places, clock, config)
    return _make
