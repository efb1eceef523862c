"""Shared fixtures for the smile session tests."""

from datetime import datetime, timedelta

import pytest
from fastapi.testclient import TestClient

from smile_session.main import create_app
from smile_session.models import SmileSample
from smile_session.usage import DailyUsageTracker


def series(*pairs) -> tuple[SmileSample, ...]:
    """series((0, 0.8), (1, 0.1)) → tuple of SmileSample."""
    return tuple(SmileSample(time_offset=t, probability=p) for t, p in pairs)


class FakeClock:
    """Controllable stand-in for datetime.now."""

    def __init__(self, start: datetime = datetime(2024, 3, 14, 9, 0, 0)):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def usage(clock) -> DailyUsageTracker:
    return DailyUsageTracker(limit_seconds=180, clock=clock)


@pytest.fixture
def client(usage) -> TestClient:
    return TestClient(create_app(usage=usage))
