from dataclasses import dataclass
from typing import Tuple

from callprof.descriptor import CapabilityMethod


@dataclass(frozen=True, slots=True)
class MethodKey:
    """
    Aggregation key: declaring type, method name and parameter types.

    Calls to the same method on different instances of one type land on the
    same key; an identically named method with another signature does not.
    """

    declaring_type: type
    method_name: str
    parameter_types: Tuple[str, ...] = ()

    @classmethod
    def of(cls, declaring_type: type, method: CapabilityMethod) -> "MethodKey":
        return cls(declaring_type, method.name, tuple(method.parameter_types))

    @property
    def type_name(self) -> str:
        """Fully qualified name of the declaring type."""
        return f"{self.declaring_type.__module__}.{self.declaring_type.__qualname__}"

    @property
    def signature(self) -> str:
        return f"{self.method_name}({', '.join(self.parameter_types)})"

    def __str__(self) -> str:
        return f"{self.type_name}#{self.signature}"
