# tests/conftest.py
"""
Shared fixtures: a controllable clock, a temp-dir cache store and a clean
call budget for every test.
"""
from datetime import datetime, timedelta, timezone

import pytest

from marketsync.adapters.persistence.file_store import CacheStore
from marketsync.shared.rate_limiter import rate_limiter


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float = 0, minutes: float = 0) -> datetime:
        self.now = self.now + timedelta(seconds=seconds, minutes=minutes)
        return self.now


@pytest.fixture(autouse=True)
def reset_call_budget():
    rate_limiter.reset()
    yield
    rate_limiter.reset()


@pytest.fixture
def clock():
    return FakeClock(datetime(2024, 3, 7, 12, 0, 0, tzinfo=timezone.utc))


@pytest.fixture
def store(tmp_path):
    return CacheStore(tmp_path / "cache")
