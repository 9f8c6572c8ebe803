"""
Shared fixtures for all tests.

Provides a deterministic clock and a fresh profiler bound to it.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional

import pytest
from loguru import logger

from callprof import Clock, Profiler

START = datetime(2026, 10, 18, 9, 30, 0, tzinfo=timezone.utc)


class FakeClock(Clock):
    """Clock that only moves when told to, plus an optional fixed step per read."""

    def __init__(self, start: datetime = START, step: Optional[timedelta] = None):
        self.current = start
        self.step = step or timedelta(0)
        self.reads = 0

    def now(self) -> datetime:
        value = self.current
        self.current += self.step
        self.reads += 1
        return value

    def advance(self, delta: timedelta) -> None:
        self.current += delta


@pytest.fixture
def clock() -> FakeClock:
    """Fake clock frozen at START."""
    return FakeClock()


@pytest.fixture
def profiler(clock: FakeClock) -> Profiler:
    """Profiler using the fake clock."""
    return Profiler(clock=clock)


@pytest.fixture
def log_messages():
    """Capture loguru messages emitted during the test."""
    messages = []
    handler_id = logger.add(lambda msg: messages.append(msg.record["message"]), level="DEBUG")
    yield messages
    logger.remove(handler_id)
