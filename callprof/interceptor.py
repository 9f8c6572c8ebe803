"""
Per-proxy invocation handler.

Every call made on a proxy lands in ProfilingMethodInterceptor.invoke (or
ainvoke for coroutine methods). Measured calls are timed with the injected
clock and recorded in the shared ProfilingState; everything else is passed
straight to the target.
"""

from datetime import timedelta
from typing import Any, Callable, Dict, Tuple

from callprof.clock import Clock
from callprof.descriptor import BASELINE_OPERATIONS, CapabilityDescriptor, CapabilityMethod
from callprof.exceptions import InterceptionError
from callprof.method_key import MethodKey
from callprof.state import ProfilingState

_ZERO = timedelta(0)


class ProfilingMethodInterceptor:
    """Times measured methods of one target and forwards all calls to it."""

    __slots__ = ("_clock", "_target", "_state", "_descriptor")

    def __init__(
        self,
        clock: Clock,
        target: Any,
        state: ProfilingState,
        descriptor: CapabilityDescriptor,
    ):
        if clock is None or target is None or state is None or descriptor is None:
            raise TypeError("clock, target, state and descriptor are required")
        self._clock = clock
        self._target = target
        self._state = state
        self._descriptor = descriptor

    @property
    def target(self) -> Any:
        return self._target

    def _resolve(self, name: str) -> Callable[..., Any]:
        try:
            return getattr(self._target, name)
        except AttributeError as e:
            raise InterceptionError(
                f"Target {type(self._target).__qualname__} has no method {name!r}",
                method=name,
            ) from e

    def _elapsed(self, start) -> timedelta:
        elapsed = self._clock.now() - start
        return elapsed if elapsed > _ZERO else _ZERO

    def _record(self, method: CapabilityMethod, elapsed: timedelta, failed: bool) -> None:
        self._state.record(MethodKey.of(type(self._target), method), elapsed, failed=failed)

    def invoke_baseline(self, name: str, args: Tuple[Any, ...]) -> Any:
        """
        Equality, hashing, truthiness and text rendering with the target's own semantics.

        A proxy on the other side of a comparison is replaced by its target.
        """
        args = tuple(unwrap(arg) for arg in args)
        if name == "__hash__":
            return hash(self._target)
        if name == "__repr__":
            return repr(self._target)
        if name == "__str__":
            return str(self._target)
        if name == "__bool__":
            return bool(self._target)
        if name == "__eq__":
            return self._target == args[0]
        if name == "__ne__":
            return self._target != args[0]
        raise InterceptionError(f"{name!r} is not a baseline operation", method=name)

    def invoke(self, method: CapabilityMethod, args: Tuple[Any, ...], kwargs: Dict[str, Any]) -> Any:
        name = method.name
        if name in BASELINE_OPERATIONS and name in self._descriptor.baseline_operations:
            return self.invoke_baseline(name, args)

        bound = self._resolve(name)
        if not method.measured:
            return bound(*args, **kwargs)

        failed = True
        start = self._clock.now()
        try:
            result = bound(*args, **kwargs)
            failed = False
            return result
        finally:
            self._record(method, self._elapsed(start), failed)

    async def ainvoke(self, method: CapabilityMethod, args: Tuple[Any, ...], kwargs: Dict[str, Any]) -> Any:
        """Coroutine counterpart of invoke: the awaited call is what gets timed."""
        bound = self._resolve(method.name)
        if not method.measured:
            return await bound(*args, **kwargs)

        failed = True
        start = self._clock.now()
        try:
            result = await bound(*args, **kwargs)
            failed = False
            return result
        finally:
            self._record(method, self._elapsed(start), failed)


PROXY_INTERCEPTOR_ATTR = "_callprof_interceptor"


def unwrap(obj: Any) -> Any:
    """Return the target behind a proxy, or obj itself when it is not one."""
    try:
        interceptor = object.__getattribute__(obj, PROXY_INTERCEPTOR_ATTR)
    except AttributeError:
        return obj
    if isinstance(interceptor, ProfilingMethodInterceptor):
        return interceptor.target
    return obj
