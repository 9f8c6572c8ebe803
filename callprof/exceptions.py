import time
from typing import Any, Dict, Optional


class ProfilerError(Exception):
    """
    Base exception for the profiler.

    Carries a timestamp and a context dict that is rendered into str() so the
    failing capability, method or destination shows up in logs.
    """

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.timestamp = time.time()
        self.context = context or {}

    def __str__(self) -> str:
        base_msg = self.message
        if self.context:
            context_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
            base_msg += f" [Context: {context_str}]"
        return base_msg


class ProfilerConfigError(ProfilerError):
    """
    Usage or configuration error: nothing to profile, incomplete target,
    invalid settings value.
    """

    def __init__(self, message: str, capability: Optional[type] = None,
                 field_name: Optional[str] = None,
                 field_value: Optional[Any] = None, **kwargs):
        context = kwargs.pop('context', {})
        if capability is not None:
            context['capability'] = f"{capability.__module__}.{capability.__qualname__}"
        if field_name:
            context['field'] = field_name
        if field_value is not None:
            context['value'] = str(field_value)[:100]
        super().__init__(message, context=context, **kwargs)


class ReportWriteError(ProfilerError):
    """
    The report destination could not be opened or written.
    """

    def __init__(self, message: str, destination: Optional[Any] = None, **kwargs):
        context = kwargs.pop('context', {})
        if destination is not None:
            context['destination'] = str(destination)
        super().__init__(message, context=context, **kwargs)
        self.destination = destination


class InterceptionError(ProfilerError):
    """
    The call mechanism itself failed, not the target. Not recoverable.
    """

    def __init__(self, message: str, method: Optional[str] = None, **kwargs):
        context = kwargs.pop('context', {})
        if method:
            context['method'] = method
        super().__init__(message, context=context, **kwargs)
