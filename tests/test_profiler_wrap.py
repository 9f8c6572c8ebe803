"""
Tests for Profiler.wrap and the interceptor behind its proxies.

Covers pass-through of values and exceptions, timing of measured methods,
the fail-fast guard, equality delegation and attribute forwarding.
"""

import threading
from abc import ABC, abstractmethod
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace
from typing import Protocol, runtime_checkable

import pytest

from callprof import (
    Clock,
    InterceptionError,
    MethodKey,
    Profiler,
    ProfilerConfigError,
    profiled,
    unwrap,
)

START = datetime(2026, 10, 18, 9, 30, 0, tzinfo=timezone.utc)


class Calculator(ABC):
    @profiled
    @abstractmethod
    def slow(self) -> int: ...

    @abstractmethod
    def fast(self, x: int) -> int: ...

    @profiled
    @abstractmethod
    def fail(self, message: str) -> None: ...

    @abstractmethod
    def fail_fast(self) -> None: ...


class CalculatorError(Exception):
    pass


class FakeCalculator(Calculator):
    def __init__(self, clock, ident=0):
        self.clock = clock
        self.ident = ident
        self.label = "calc"

    def slow(self):
        self.clock.advance(timedelta(seconds=2))
        return 42

    def fast(self, x):
        return x * 2

    def fail(self, message):
        self.clock.advance(timedelta(seconds=1))
        try:
            raise KeyError("inner")
        except KeyError as e:
            raise CalculatorError(message) from e

    def fail_fast(self):
        raise CalculatorError("fast failure")

    def __eq__(self, other):
        return isinstance(other, FakeCalculator) and other.ident == self.ident

    def __hash__(self):
        return hash(self.ident)

    def __repr__(self):
        return f"FakeCalculator({self.ident})"


class Unprofiled(ABC):
    @abstractmethod
    def run(self): ...


class Comparable(ABC):
    @profiled
    @abstractmethod
    def __eq__(self, other): ...


class Point(Comparable):
    def __init__(self, x):
        self.x = x

    def __eq__(self, other):
        return isinstance(other, Point) and other.x == self.x


class Bag(ABC):
    @profiled
    @abstractmethod
    def __len__(self) -> int: ...


@runtime_checkable
class Greeter(Protocol):
    @profiled
    def greet(self, name: str) -> str: ...


class EnglishGreeter:
    def greet(self, name):
        return f"Hello, {name}"


def _key(method, params=()):
    return MethodKey(FakeCalculator, method, params)


@pytest.fixture
def target(clock):
    return FakeCalculator(clock, ident=1)


@pytest.fixture
def proxy(profiler, target):
    return profiler.wrap(Calculator, target)


class TestSubstitutability:
    def test_proxy_is_instance_of_capability(self, proxy, target):
        assert isinstance(proxy, Calculator)
        assert proxy is not target
        assert type(proxy) is not FakeCalculator

    def test_each_wrap_creates_new_proxy(self, profiler, target):
        first = profiler.wrap(Calculator, target)
        second = profiler.wrap(Calculator, target)

        assert first is not second
        assert type(first) is type(second)

    def test_protocol_capability(self, profiler):
        greeter = profiler.wrap(Greeter, EnglishGreeter())

        assert isinstance(greeter, Greeter)
        assert greeter.greet("Ann") == "Hello, Ann"
        assert profiler.state.total(MethodKey(EnglishGreeter, "greet", ("str",))) == timedelta(0)
        assert len(profiler.state) == 1

    def test_duck_typed_target(self, profiler):
        ns = SimpleNamespace(
            slow=lambda: "slow",
            fast=lambda x: x,
            fail=lambda message: None,
            fail_fast=lambda: None,
        )

        proxy = profiler.wrap(Calculator, ns)

        assert proxy.slow() == "slow"
        assert proxy.fast(3) == 3
        assert len(profiler.state) == 1

    def test_unwrap(self, proxy, target):
        assert unwrap(proxy) is target
        assert unwrap(target) is target


class TestPassThrough:
    def test_unmeasured_call_returns_target_result(self, profiler, proxy, clock):
        reads = clock.reads

        assert proxy.fast(21) == 42
        assert proxy.fast(x=5) == 10

        assert clock.reads == reads
        assert len(profiler.state) == 0

    def test_unmeasured_failure_propagates_unchanged(self, profiler, proxy, target):
        with pytest.raises(CalculatorError) as direct:
            target.fail_fast()
        with pytest.raises(CalculatorError) as proxied:
            proxy.fail_fast()

        assert type(proxied.value) is type(direct.value)
        assert str(proxied.value) == str(direct.value)
        assert len(profiler.state) == 0

    def test_measured_call_returns_target_result(self, proxy):
        assert proxy.slow() == 42

    def test_undeclared_attributes_read_from_target(self, proxy, target):
        assert proxy.label == "calc"
        assert proxy.ident == 1

        proxy.label = "renamed"
        assert target.label == "renamed"

        with pytest.raises(AttributeError):
            proxy.missing_attribute

    def test_dunder_declared_by_capability(self, profiler):
        class ListBag(Bag):
            def __init__(self, items):
                self.items = items

            def __len__(self):
                return len(self.items)

        bag = profiler.wrap(Bag, ListBag([1, 2, 3]))

        assert len(bag) == 3
        assert len(profiler.state) == 1


class TestMeasuredCalls:
    def test_measured_call_records_elapsed(self, profiler, proxy):
        proxy.slow()
        proxy.slow()

        stats = profiler.state.snapshot()[_key("slow")]
        assert stats.total == timedelta(seconds=4)
        assert stats.calls == 2
        assert stats.errors == 0

    def test_measured_failure_records_once_and_reraises_original(self, profiler, proxy):
        with pytest.raises(CalculatorError) as exc_info:
            proxy.fail("boom")

        error = exc_info.value
        assert type(error) is CalculatorError
        assert str(error) == "boom"
        assert isinstance(error.__cause__, KeyError)

        stats = profiler.state.snapshot()[_key("fail", ("str",))]
        assert stats.total == timedelta(seconds=1)
        assert stats.calls == 1
        assert stats.errors == 1

    def test_key_uses_runtime_type_of_target(self, profiler, clock):
        class FasterCalculator(FakeCalculator):
            pass

        profiler.wrap(Calculator, FakeCalculator(clock)).slow()
        profiler.wrap(Calculator, FasterCalculator(clock)).slow()

        keys = {key.declaring_type for key in profiler.state.snapshot()}
        assert keys == {FakeCalculator, FasterCalculator}

    def test_proxies_share_one_state(self, profiler, clock):
        first = profiler.wrap(Calculator, FakeCalculator(clock, ident=1))
        second = profiler.wrap(Calculator, FakeCalculator(clock, ident=2))

        first.slow()
        second.slow()

        assert len(profiler.state) == 1
        assert profiler.state.total(_key("slow")) == timedelta(seconds=4)

    def test_backwards_clock_is_clamped_to_zero(self, profiler, clock):
        class Rewinding(FakeCalculator):
            def slow(self):
                self.clock.advance(timedelta(seconds=-5))
                return 0

        profiler.wrap(Calculator, Rewinding(clock)).slow()

        stats = profiler.state.snapshot()[MethodKey(Rewinding, "slow")]
        assert stats.total == timedelta(0)
        assert stats.calls == 1

    def test_capability_declared_eq_is_measured(self, profiler):
        proxy = profiler.wrap(Comparable, Point(1))

        assert proxy == Point(1)
        assert not (proxy == Point(2))
        assert profiler.state.snapshot()[MethodKey(Point, "__eq__", ("object",))].calls == 2

    def test_capability_declared_eq_also_drives_ne(self, profiler):
        a = profiler.wrap(Comparable, Point(1))
        b = profiler.wrap(Comparable, Point(1))

        assert (a == b) is not (a != b)
        assert not (a != Point(1))
        assert a != Point(2)
        assert "__ne__" not in vars(type(a))
        assert profiler.state.snapshot()[MethodKey(Point, "__eq__", ("object",))].calls == 4

    def test_concurrent_calls_accumulate_exactly(self):
        class ThreadLocalClock(Clock):
            """Each thread sees its own time advancing 1ms per read."""

            def __init__(self):
                self._local = threading.local()

            def now(self):
                ticks = getattr(self._local, "ticks", 0)
                self._local.ticks = ticks + 1
                return START + timedelta(milliseconds=ticks)

        class Instant(FakeCalculator):
            def slow(self):
                return 1

        profiler = Profiler(clock=ThreadLocalClock())
        proxy = profiler.wrap(Calculator, Instant(None))
        calls = 200

        with ThreadPoolExecutor(max_workers=8) as pool:
            results = list(pool.map(lambda _: proxy.slow(), range(calls)))

        assert results == [1] * calls
        stats = profiler.state.snapshot()[MethodKey(Instant, "slow")]
        assert stats.calls == calls
        assert stats.total == timedelta(milliseconds=calls)


class TestFailFast:
    def test_no_profiled_methods(self, profiler):
        class Runner(Unprofiled):
            def run(self):
                return 1

        with pytest.raises(ProfilerConfigError) as exc_info:
            profiler.wrap(Unprofiled, Runner())

        assert "Unprofiled" in str(exc_info.value)
        assert len(profiler.state) == 0

    def test_target_missing_methods(self, profiler):
        with pytest.raises(ProfilerConfigError) as exc_info:
            profiler.wrap(Calculator, SimpleNamespace(slow=lambda: 1))

        assert "fail" in str(exc_info.value)
        assert "fast" in str(exc_info.value)

    def test_none_target(self, profiler):
        with pytest.raises(TypeError):
            profiler.wrap(Calculator, None)

    def test_capability_must_be_class(self, profiler, target):
        with pytest.raises(TypeError):
            profiler.wrap("Calculator", target)

    def test_disabled_profiler_returns_target(self, clock, target):
        profiler = Profiler(clock=clock, enabled=False)

        assert profiler.wrap(Calculator, target) is target
        with pytest.raises(ProfilerConfigError):
            profiler.wrap(Unprofiled, target)


class TestBaselineOperations:
    def test_proxies_of_equal_targets_are_equal(self, profiler, clock):
        a = profiler.wrap(Calculator, FakeCalculator(clock, ident=7))
        b = profiler.wrap(Calculator, FakeCalculator(clock, ident=7))
        c = profiler.wrap(Calculator, FakeCalculator(clock, ident=8))

        assert a == b
        assert not (a != b)
        assert a != c
        assert hash(a) == hash(b)
        assert len({a, b, c}) == 2

    def test_proxy_equals_its_target(self, proxy, target):
        assert proxy == target
        assert hash(proxy) == hash(target)

    def test_baseline_operations_are_not_measured(self, profiler, proxy, clock):
        reads = clock.reads

        _ = proxy == proxy
        hash(proxy)
        repr(proxy)

        assert clock.reads == reads
        assert len(profiler.state) == 0

    def test_repr_and_str_come_from_target(self, proxy, target):
        assert repr(proxy) == repr(target)
        assert str(proxy) == str(target)

    def test_truthiness_comes_from_target(self, profiler):
        class Queue(ABC):
            @profiled
            @abstractmethod
            def run(self) -> None: ...

        class SizedQueue(Queue):
            def __init__(self, items):
                self.items = items

            def run(self):
                pass

            def __len__(self):
                return len(self.items)

        empty = SizedQueue([])
        full = SizedQueue([1])

        assert bool(profiler.wrap(Queue, empty)) is bool(empty) is False
        assert bool(profiler.wrap(Queue, full)) is bool(full) is True
        assert len(profiler.state) == 0

    def test_declared_len_drives_truthiness(self, profiler):
        class ListBag(Bag):
            def __init__(self, items):
                self.items = items

            def __len__(self):
                return len(self.items)

        bag = profiler.wrap(Bag, ListBag([]))

        assert not bag
        assert "__bool__" not in vars(type(bag))
        assert profiler.state.snapshot()[MethodKey(ListBag, "__len__")].calls == 1


class TestInterceptionFailure:
    def test_method_vanishing_from_target(self, profiler):
        ns = SimpleNamespace(
            slow=lambda: 1,
            fast=lambda x: x,
            fail=lambda message: None,
            fail_fast=lambda: None,
        )
        proxy = profiler.wrap(Calculator, ns)
        del ns.slow

        with pytest.raises(InterceptionError) as exc_info:
            proxy.slow()

        assert isinstance(exc_info.value.__cause__, AttributeError)
        assert exc_info.value.context["method"] == "slow"
        assert len(profiler.state) == 0
