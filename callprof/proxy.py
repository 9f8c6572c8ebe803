"""
Proxy class generation.

One proxy class is generated per capability descriptor. It subclasses the
capability (so isinstance checks hold), overrides every declared method with
a forwarder into the instance's interceptor, and forwards undeclared
attribute access to the target.
"""

import functools
import threading
from typing import Any, Callable, Dict

from loguru import logger

from callprof.descriptor import CapabilityDescriptor, CapabilityMethod
from callprof.exceptions import ProfilerConfigError
from callprof.interceptor import PROXY_INTERCEPTOR_ATTR, ProfilingMethodInterceptor

_proxy_classes: Dict[CapabilityDescriptor, type] = {}
_proxy_classes_lock = threading.Lock()


def _interceptor(proxy: Any) -> ProfilingMethodInterceptor:
    return object.__getattribute__(proxy, PROXY_INTERCEPTOR_ATTR)


def _forwarder(method: CapabilityMethod) -> Callable[..., Any]:
    if method.is_coroutine:
        async def forward(self, *args, **kwargs):
            return await _interceptor(self).ainvoke(method, args, kwargs)
    else:
        def forward(self, *args, **kwargs):
            return _interceptor(self).invoke(method, args, kwargs)

    if method.function is not None:
        functools.update_wrapper(forward, method.function)
    forward.__name__ = method.name
    forward.__isabstractmethod__ = False
    return forward


def _baseline(name: str) -> Callable[..., Any]:
    def forward(self, *args):
        return _interceptor(self).invoke_baseline(name, args)

    forward.__name__ = name
    return forward


def _forwarded_attribute(name: str) -> property:
    def fget(self):
        return getattr(_interceptor(self).target, name)

    def fset(self, value):
        setattr(_interceptor(self).target, name, value)

    def fdel(self):
        delattr(_interceptor(self).target, name)

    return property(fget, fset, fdel)


def _getattr(self, name: str) -> Any:
    if name == PROXY_INTERCEPTOR_ATTR:
        raise AttributeError(name)
    return getattr(_interceptor(self).target, name)


def _setattr(self, name: str, value: Any) -> None:
    setattr(_interceptor(self).target, name, value)


def _delattr(self, name: str) -> None:
    delattr(_interceptor(self).target, name)


def _build_proxy_class(descriptor: CapabilityDescriptor) -> type:
    capability = descriptor.capability
    namespace: Dict[str, Any] = {
        "__slots__": (PROXY_INTERCEPTOR_ATTR,),
        "__module__": __name__,
        "__qualname__": f"{capability.__qualname__}Proxy",
        "__doc__": f"Profiling proxy for {capability.__module__}.{capability.__qualname__}.",
        "__getattr__": _getattr,
        "__setattr__": _setattr,
        "__delattr__": _delattr,
        "_callprof_descriptor": descriptor,
    }

    for name in descriptor.baseline_operations:
        namespace[name] = _baseline(name)

    for name in descriptor.attributes:
        namespace[name] = _forwarded_attribute(name)

    for name, method in descriptor.methods.items():
        namespace[name] = _forwarder(method)

    proxy_class = type(capability)(f"{capability.__name__}Proxy", (capability,), namespace)
    # Every declared member is overridden above; anything left abstract is not
    # reachable through the capability's own namespace.
    proxy_class.__abstractmethods__ = frozenset()
    return proxy_class


def proxy_class_for(descriptor: CapabilityDescriptor) -> type:
    """Return the cached proxy class for descriptor, generating it on first use."""
    with _proxy_classes_lock:
        proxy_class = _proxy_classes.get(descriptor)
        if proxy_class is None:
            try:
                proxy_class = _build_proxy_class(descriptor)
            except TypeError as e:
                raise ProfilerConfigError(
                    f"Cannot derive a proxy class from capability: {e}",
                    capability=descriptor.capability,
                ) from e
            _proxy_classes[descriptor] = proxy_class
            logger.debug(
                f"Generated proxy class {proxy_class.__qualname__} "
                f"({len(descriptor.methods)} methods, {len(descriptor.measured_methods)} measured)"
            )
        return proxy_class


def new_proxy(descriptor: CapabilityDescriptor, interceptor: ProfilingMethodInterceptor) -> Any:
    """Instantiate a proxy bound to interceptor without running capability constructors."""
    proxy_class = proxy_class_for(descriptor)
    try:
        proxy = object.__new__(proxy_class)
    except TypeError as e:
        raise ProfilerConfigError(
            f"Cannot instantiate proxy for capability: {e}",
            capability=descriptor.capability,
        ) from e
    object.__setattr__(proxy, PROXY_INTERCEPTOR_ATTR, interceptor)
    return proxy
