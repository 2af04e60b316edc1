# tests/conftest.py

from datetime import datetime, timedelta, timezone

import pytest

from alerting.audio import AudioController
from alerting.engine import AlertEngine
from alerting.models import EngineSettings, RiskAssessment, RiskLevel, SensorReading
from alerting.notifier import NotificationDispatcher

T0 = datetime(2025, 8, 1, 10, 0, 0, tzinfo=timezone.utc)


def make_reading(seconds: float = 0, device_id: str = "1", **overrides) -> SensorReading:
    fields = dict(
        device_id=device_id,
        timestamp=T0 + timedelta(seconds=seconds),
        temperature=30.0,
        humidity=35.0,
        smoke_level=20.0,
    )
    fields.update(overrides)
    return SensorReading(**fields)


def assessment(level: str, confidence: float = 0.9) -> RiskAssessment:
    return RiskAssessment(risk_level=RiskLevel(level), confidence_score=confidence, recommendations=["Stay alert"])


class FakeClock:
    def __init__(self, start: datetime = T0):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


class FakeFetcher:
    """Returns queued readings (or raises queued exceptions) in order."""

    def __init__(self, *items):
        self.items = list(items)
        self.calls = 0

    async def fetch(self) -> SensorReading:
        self.calls += 1
        item = self.items.pop(0)
        if isinstance(item, Exception):
            raise item
        return item


class FakeClassifier:
    def __init__(self, *items):
        self.items = list(items)
        self.seen = []

    async def classify(self, reading: SensorReading) -> RiskAssessment:
        self.seen.append(reading)
        item = self.items.pop(0)
        if isinstance(item, Exception):
            raise item
        return item


class FakePlatform:
    def __init__(self, status: str = "granted", requested_status: str = None):
        self.status = status
        self.requested_status = requested_status or status
        self.permission_requests = 0
        self.presented = []
        self.cancelled = []
        self.cancel_all_calls = 0

    async def get_permission_status(self) -> str:
        return self.status

    async def request_permission(self) -> str:
        self.permission_requests += 1
        self.status = self.requested_status
        return self.status

    async def present(self, payload) -> str:
        self.presented.append(payload)
        return f"notif-{len(self.presented)}"

    async def cancel(self, notification_id: str) -> None:
        self.cancelled.append(notification_id)

    async def cancel_all(self) -> None:
        self.cancel_all_calls += 1


class FakePlayer:
    def __init__(self):
        self.plays = 0
        self.stops = 0

    async def play(self) -> None:
        self.plays += 1

    async def stop(self) -> None:
        self.stops += 1


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def player():
    return FakePlayer()


@pytest.fixture
def platform():
    return FakePlatform()


@pytest.fixture
def build_engine(clock, platform, player):
    """Factory wiring an engine around fake collaborators."""

    def _build(fetched, classified, settings: EngineSettings = None, device_id: str = "1") -> AlertEngine:
        dispatcher = NotificationDispatcher(platform, AudioController(player))
        return AlertEngine(
            device_id=device_id,
            fetcher=FakeFetcher(*fetched),
            classifier=FakeClassifier(*classified),
            dispatcher=dispatcher,
            settings=settings,
            clock=clock,
        )

    return _build

