"""
Clock capability injected into the profiler.

All timestamps, both the run header and the elapsed time of measured calls,
come from a single Clock so tests can substitute a deterministic one.
"""

from abc import ABC, abstractmethod
from datetime import datetime, timezone


class Clock(ABC):
    """Source of the current instant."""

    @abstractmethod
    def now(self) -> datetime:
        """Return the current instant as a timezone-aware datetime."""


class SystemClock(Clock):
    """Wall clock in UTC."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)

    def __repr__(self) -> str:
        return "SystemClock()"
