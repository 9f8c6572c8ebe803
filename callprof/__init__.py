"""
callprof - transparent method timing through capability proxies.
"""

from callprof.clock import Clock, SystemClock
from callprof.config import ProfilerSettings
from callprof.descriptor import CapabilityDescriptor, CapabilityMethod, describe
from callprof.exceptions import (
    InterceptionError,
    ProfilerConfigError,
    ProfilerError,
    ReportWriteError,
)
from callprof.interceptor import ProfilingMethodInterceptor, unwrap
from callprof.marker import is_profiled, profiled
from callprof.method_key import MethodKey
from callprof.profiler import Profiler
from callprof.state import MethodStats, ProfilingState
from callprof.utils import setup_logging

__all__ = [
    # Clock
    "Clock",
    "SystemClock",
    # Capabilities
    "profiled",
    "is_profiled",
    "describe",
    "CapabilityDescriptor",
    "CapabilityMethod",
    # Aggregation
    "MethodKey",
    "MethodStats",
    "ProfilingState",
    "ProfilingMethodInterceptor",
    "unwrap",
    # Profiler
    "Profiler",
    "ProfilerSettings",
    "setup_logging",
    # Errors
    "ProfilerError",
    "ProfilerConfigError",
    "ReportWriteError",
    "InterceptionError",
]
