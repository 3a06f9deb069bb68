"""Shared fixtures."""

from datetime import datetime, timedelta

import pytest


class ManualClock:
    """Clock that only moves when told to."""

    def __init__(self, start: datetime | None = None):
        self._now = start or datetime(2025, 1, 1, 12, 0, 0)

    def __call__(self) -> datetime:
        return self._now

    def advance(self, delta: timedelta) -> datetime:
        self._now += delta
        return self._now


@pytest.fixture
def clock():
    return ManualClock()
