"""
Profiler: wraps objects in timing proxies and reports aggregated results.
"""

import json
import os
from pathlib import Path
from typing import Any, Dict, Optional, Type, TypeVar, Union

import aiofiles
from loguru import logger

from callprof.clock import Clock, SystemClock
from callprof.descriptor import MeasuredPredicate, describe, marked_profiled
from callprof.exceptions import ProfilerConfigError, ReportWriteError
from callprof.interceptor import ProfilingMethodInterceptor
from callprof.proxy import new_proxy
from callprof.state import ProfilingState
from callprof.utils import format_rfc1123, setup_logging

T = TypeVar("T")

PathLike = Union[str, "os.PathLike[str]"]


class Profiler:
    """
    Measures the methods marked @profiled on wrapped objects.

    One Profiler owns one ProfilingState for its whole lifetime; every proxy
    returned by wrap() records into it.

    Example:
        profiler = Profiler()
        fetcher = profiler.wrap(Fetcher, HttpFetcher())
        fetcher.fetch("https://example.com")
        profiler.write_data("profile.txt")
    """

    def __init__(
        self,
        clock: Optional[Clock] = None,
        predicate: MeasuredPredicate = marked_profiled,
        enabled: bool = True,
        output_path: Optional[PathLike] = None,
    ):
        self.clock = clock if clock is not None else SystemClock()
        self.predicate = predicate
        self.enabled = enabled
        self.output_path = Path(output_path) if output_path is not None else None
        self.state = ProfilingState()
        self.start_time = self.clock.now()

        logger.debug(f"Profiler created at {self.start_time.isoformat()} (enabled={enabled})")

    @classmethod
    def from_settings(
        cls, settings, clock: Optional[Clock] = None, configure_logging: bool = True
    ) -> "Profiler":
        """Build a profiler from ProfilerSettings, applying its log level unless told not to."""
        if configure_logging:
            setup_logging(settings.log_level)
        return cls(
            clock=clock,
            enabled=settings.enabled,
            output_path=settings.output_path,
        )

    # ---------------------------------------------------------
    # Wrapping
    # ---------------------------------------------------------

    def wrap(self, capability: Type[T], target: T) -> T:
        """
        Return a proxy of capability that times the measured methods of target.

        Raises:
            TypeError: capability is not a class or target is None
            ProfilerConfigError: capability declares no measured method, or
                target lacks one of its methods
        """
        if not isinstance(capability, type):
            raise TypeError(f"capability must be a class, got {capability!r}")
        if target is None:
            raise TypeError("target must not be None")

        descriptor = describe(capability, self.predicate)
        if not descriptor.measured_methods:
            raise ProfilerConfigError(
                "Capability does not declare any profiled methods",
                capability=capability,
            )

        missing = sorted(
            name for name in descriptor.methods
            if not callable(getattr(target, name, None))
        )
        if missing:
            raise ProfilerConfigError(
                f"Target {type(target).__qualname__} does not implement: {', '.join(missing)}",
                capability=capability,
            )

        if not self.enabled:
            return target

        interceptor = ProfilingMethodInterceptor(self.clock, target, self.state, descriptor)
        return new_proxy(descriptor, interceptor)

    # ---------------------------------------------------------
    # Reporting
    # ---------------------------------------------------------

    def render(self) -> str:
        """Full report text: header, one line per method, trailing newline."""
        lines = [f"Run at {format_rfc1123(self.start_time)}"]
        lines.extend(self.state.lines())
        return "\n".join(lines) + "\n\n"

    def write_data(self, destination: Union[PathLike, Any]) -> None:
        """
        Write the report to an open text sink or append it to a file.

        A sink (anything with write()) is left open. A path is created if
        needed, appended to and always closed; OSError is raised as
        ReportWriteError naming the path.
        """
        if isinstance(destination, (str, os.PathLike)):
            self._write_path(Path(destination))
            return

        if not callable(getattr(destination, "write", None)):
            raise TypeError(f"destination must be a path or a writable sink, got {destination!r}")
        destination.write(self.render())

    def _write_path(self, path: Path) -> None:
        text = self.render()
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with open(path, "a", encoding="utf-8") as f:
                f.write(text)
        except OSError as e:
            logger.error(f"Failed to write profiling data to {path}: {e}")
            raise ReportWriteError(
                f"Failed to write profiling data to {path}", destination=path
            ) from e

        logger.info(f"Profiling data written to {path} ({len(self.state)} methods)")

    async def awrite_data(self, destination: PathLike) -> None:
        """Async variant of write_data for file destinations."""
        path = Path(destination)
        text = self.render()
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            async with aiofiles.open(path, "a", encoding="utf-8") as f:
                await f.write(text)
        except OSError as e:
            logger.error(f"Failed to write profiling data to {path}: {e}")
            raise ReportWriteError(
                f"Failed to write profiling data to {path}", destination=path
            ) from e

        logger.info(f"Profiling data written to {path} ({len(self.state)} methods)")

    def flush(self) -> bool:
        """
        Append the report to the configured output path.

        Returns:
            False when no output path is configured
        """
        if self.output_path is None:
            return False
        self.write_data(self.output_path)
        return True

    def log_summary(self) -> None:
        """Log the report line by line at INFO."""
        for line in self.render().rstrip("\n").split("\n"):
            logger.info(line)

    def export_json(self, output_path: Optional[PathLike] = None) -> Dict[str, Any]:
        """
        Export the aggregated timings as a dict, and as JSON if a path is given.

        Args:
            output_path: Optional file to (over)write with pretty-printed JSON
        """
        data = {
            "start_time": self.start_time.isoformat(),
            "methods": {
                str(key): {
                    "type": key.type_name,
                    "method": key.method_name,
                    "parameter_types": list(key.parameter_types),
                    "total_s": stats.total.total_seconds(),
                    "avg_s": stats.avg.total_seconds(),
                    "calls": stats.calls,
                    "errors": stats.errors,
                }
                for key, stats in self.state.snapshot().items()
            },
        }

        if output_path is None:
            return data

        path = Path(output_path)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with open(path, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2)
        except OSError as e:
            raise ReportWriteError(
                f"Failed to export profiling data to {path}", destination=path
            ) from e

        logger.info(f"Profiling data exported to {path}")
        return data
