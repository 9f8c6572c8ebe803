"""
The @profiled marker for capability methods.
"""

from typing import Any, Callable, TypeVar

F = TypeVar("F", bound=Callable[..., Any])

PROFILED_ATTR = "__callprof_profiled__"


def profiled(func: F) -> F:
    """
    Mark a capability method as measured.

    The function is returned unchanged apart from the marker attribute, so the
    decorator stacks with abstractmethod, staticmethod and classmethod in any
    order.

    Example:
        class Fetcher(ABC):
            @profiled
            @abstractmethod
            def fetch(self, url: str) -> bytes: ...
    """
    target = getattr(func, "__func__", func)
    setattr(target, PROFILED_ATTR, True)
    return func


def is_profiled(obj: Any) -> bool:
    """Return True when obj (or the function behind a static/class method) carries the marker."""
    target = getattr(obj, "__func__", obj)
    return getattr(target, PROFILED_ATTR, False) is True
