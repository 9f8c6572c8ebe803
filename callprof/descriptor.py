"""
Capability descriptors.

A capability type is an ordinary class (typically an ABC or a Protocol). Its
descriptor lists the methods the class declares, which of them are measured
and which plain attributes a proxy has to forward. Descriptors are resolved
once per (capability, predicate) pair and cached.
"""

import abc
import builtins
import inspect
import typing
from dataclasses import dataclass
from functools import lru_cache
from typing import Any, Callable, Dict, Mapping, Optional, Tuple

from callprof.marker import is_profiled

MeasuredPredicate = Callable[[type, Callable[..., Any]], bool]

# Operations that keep the target's identity semantics unless the capability
# declares them itself.
BASELINE_OPERATIONS = frozenset(
    {"__eq__", "__ne__", "__hash__", "__repr__", "__str__", "__bool__"}
)

# Class machinery that is never forwarded.
_EXCLUDED_NAMES = frozenset(
    {
        "__init__",
        "__new__",
        "__del__",
        "__init_subclass__",
        "__subclasshook__",
        "__class_getitem__",
        "__getattribute__",
        "__getattr__",
        "__setattr__",
        "__delattr__",
        "__dir__",
        "__reduce__",
        "__reduce_ex__",
        "__getstate__",
        "__setstate__",
        "__sizeof__",
        "__format__",
        "__instancecheck__",
        "__subclasscheck__",
        "__set_name__",
        "__get__",
        "__set__",
        "__delete__",
    }
)

_SKIPPED_BASES = (object, abc.ABC, typing.Generic, typing.Protocol)


def marked_profiled(capability: type, func: Callable[..., Any]) -> bool:
    """Default predicate: a method is measured when it carries @profiled."""
    return is_profiled(func)


def _type_name(annotation: Any) -> str:
    if annotation is inspect.Parameter.empty:
        return "object"
    if isinstance(annotation, str):
        return annotation
    if isinstance(annotation, type):
        if annotation.__module__ == builtins.__name__:
            return annotation.__qualname__
        return f"{annotation.__module__}.{annotation.__qualname__}"
    return repr(annotation).replace("typing.", "")


def _parameter_types(func: Callable[..., Any], drop_first: bool) -> Tuple[str, ...]:
    try:
        try:
            signature = inspect.signature(func, eval_str=True)
        except NameError:
            signature = inspect.signature(func)
        params = list(signature.parameters.values())
    except (TypeError, ValueError):
        return ()
    if drop_first and params:
        params = params[1:]

    rendered = []
    for param in params:
        name = _type_name(param.annotation)
        if param.kind is inspect.Parameter.VAR_POSITIONAL:
            name = f"*{name}"
        elif param.kind is inspect.Parameter.VAR_KEYWORD:
            name = f"**{name}"
        rendered.append(name)
    return tuple(rendered)


@dataclass(frozen=True, slots=True)
class CapabilityMethod:
    """One method declared by a capability type."""

    name: str
    declared_by: type
    parameter_types: Tuple[str, ...]
    measured: bool
    is_coroutine: bool = False
    function: Optional[Callable[..., Any]] = None


@dataclass(frozen=True, slots=True, eq=False)
class CapabilityDescriptor:
    """Resolved view of a capability type."""

    capability: type
    methods: Mapping[str, CapabilityMethod]
    attributes: Tuple[str, ...] = ()

    @property
    def measured_methods(self) -> Tuple[CapabilityMethod, ...]:
        return tuple(m for m in self.methods.values() if m.measured)

    @property
    def baseline_operations(self) -> Tuple[str, ...]:
        """
        Baseline operations the proxy delegates to the target.

        A declared __eq__ also owns !=, and a declared __len__ also owns truthiness.
        """
        skipped = set(self.methods)
        if "__eq__" in self.methods:
            skipped.add("__ne__")
        if "__len__" in self.methods:
            skipped.add("__bool__")
        return tuple(sorted(BASELINE_OPERATIONS - skipped))

    def declares(self, name: str) -> bool:
        return name in self.methods

    def is_measured(self, name: str) -> bool:
        method = self.methods.get(name)
        return method is not None and method.measured

    def get(self, name: str) -> Optional[CapabilityMethod]:
        return self.methods.get(name)


def _iter_declared(capability: type):
    seen = set()
    for klass in capability.__mro__:
        if klass in _SKIPPED_BASES:
            continue
        for name, value in vars(klass).items():
            if name in seen:
                continue
            seen.add(name)
            yield klass, name, value


@lru_cache(maxsize=None)
def describe(
    capability: type, predicate: MeasuredPredicate = marked_profiled
) -> CapabilityDescriptor:
    """
    Resolve the descriptor of a capability type.

    Every function, staticmethod and classmethod reachable through the
    capability's MRO (excluding object and typing/abc plumbing) is a
    declared method; the first definition in MRO order wins. Properties and
    public class attributes are collected separately so the proxy can
    forward them to the target.
    """
    if not isinstance(capability, type):
        raise TypeError(f"capability must be a class, got {capability!r}")

    methods: Dict[str, CapabilityMethod] = {}
    attributes = []

    for klass, name, value in _iter_declared(capability):
        if name in _EXCLUDED_NAMES:
            continue

        if isinstance(value, (staticmethod, classmethod)):
            func = value.__func__
            drop_first = isinstance(value, classmethod)
        elif inspect.isfunction(value):
            func = value
            drop_first = True
        elif isinstance(value, property):
            attributes.append(name)
            continue
        else:
            if not name.startswith("_"):
                attributes.append(name)
            continue

        methods[name] = CapabilityMethod(
            name=name,
            declared_by=klass,
            parameter_types=_parameter_types(func, drop_first),
            measured=bool(predicate(capability, value)),
            is_coroutine=inspect.iscoroutinefunction(func),
            function=func,
        )

    return CapabilityDescriptor(
        capability=capability,
        methods=dict(methods),
        attributes=tuple(attributes),
    )
