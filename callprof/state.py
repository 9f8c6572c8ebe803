"""
Aggregated timings shared by every proxy of one Profiler.

Tracks per-method:
- total elapsed time (only ever grows)
- call count and failed call count
"""

import threading
from dataclasses import dataclass
from datetime import timedelta
from typing import Dict, List, TextIO

from callprof.method_key import MethodKey
from callprof.utils import format_duration

_ZERO = timedelta(0)


@dataclass(slots=True)
class MethodStats:
    """Accumulated measurements for a single MethodKey."""

    total: timedelta = _ZERO
    calls: int = 0
    errors: int = 0

    @property
    def avg(self) -> timedelta:
        """Average duration per call."""
        return self.total / self.calls if self.calls > 0 else _ZERO

    def copy(self) -> "MethodStats":
        return MethodStats(total=self.total, calls=self.calls, errors=self.errors)


class ProfilingState:
    """
    Thread-safe store of elapsed time per MethodKey.

    A single lock guards the table; it is held only for the in-memory update
    or copy, never while a profiled call is running.

    Typical usage:
        state = ProfilingState()
        state.record(key, timedelta(milliseconds=5))
        state.write(sys.stdout)
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._data: Dict[MethodKey, MethodStats] = {}

    def record(self, key: MethodKey, elapsed: timedelta, failed: bool = False) -> None:
        """
        Add one measured call to the total for key.

        Args:
            key: Method the call was made against
            elapsed: Non-negative duration of the call
            failed: Whether the call raised
        """
        if elapsed < _ZERO:
            raise ValueError(f"elapsed must be non-negative, got {elapsed!r}")

        with self._lock:
            stats = self._data.get(key)
            if stats is None:
                stats = self._data[key] = MethodStats()
            stats.total += elapsed
            stats.calls += 1
            if failed:
                stats.errors += 1

    def total(self, key: MethodKey) -> timedelta:
        with self._lock:
            stats = self._data.get(key)
            return stats.total if stats is not None else _ZERO

    def snapshot(self) -> Dict[MethodKey, MethodStats]:
        """Consistent copy of all entries."""
        with self._lock:
            return {key: stats.copy() for key, stats in self._data.items()}

    def lines(self) -> List[str]:
        """Report lines ordered by method name, then by the full key."""
        entries = sorted(
            self.snapshot().items(),
            key=lambda item: (item[0].method_name, str(item[0])),
        )
        return [f"{key}: {format_duration(stats.total)}" for key, stats in entries]

    def write(self, sink: TextIO) -> None:
        """Write one line per recorded method to sink."""
        for line in self.lines():
            sink.write(line)
            sink.write("\n")

    def __len__(self) -> int:
        with self._lock:
            return len(self._data)

    def __bool__(self) -> bool:
        return len(self) > 0
