"""
FeCap Hysteresis Model
======================
Soft fault values and the exceptions raised for them in strict mode.

Every fault is "soft" by default: it is reported, and the model continues
with a degraded but defined result. With FaultPolicy.STRICT the matching
exception is raised instead.

Author: Thesis Project
Date: February 2026
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Any


class FaultPolicy(Enum):
    """What the model does after reporting a fault."""
    CONTINUE = "continue"
    STRICT = "strict"


@dataclass(frozen=True)
class Fault:
    """Base fault record."""
    message: str
    data: Dict[str, Any] = field(default_factory=dict)

    kind = "fault"

    def to_dict(self) -> Dict[str, Any]:
        return {"kind": self.kind, "message": self.message, **self.data}


@dataclass(frozen=True)
class ArithmeticFault(Fault):
    """Branch points are indistinguishable under the switching function."""
    kind = "arithmetic"


@dataclass(frozen=True)
class ConvergenceFault(Fault):
    """Newton solver exhausted its iteration budget."""
    kind = "convergence"


@dataclass(frozen=True)
class CapacityFault(Fault):
    """History stack push beyond its capacity; the point was dropped."""
    kind = "capacity"


@dataclass(frozen=True)
class StateFault(Fault):
    """Direction state held neither valid value and was reset."""
    kind = "state"


class ModelFaultError(RuntimeError):
    """Raised for a fault when the model runs with FaultPolicy.STRICT."""

    def __init__(self, fault: Fault):
        super().__init__(fault.message)
        self.fault = fault


class ArithmeticFaultError(ModelFaultError):
    pass


class ConvergenceFaultError(ModelFaultError):
    pass


class CapacityFaultError(ModelFaultError):
    pass


_ERRORS = {
    ArithmeticFault: ArithmeticFaultError,
    ConvergenceFault: ConvergenceFaultError,
    CapacityFault: CapacityFaultError,
}


def raise_for_fault(fault: Fault):
    """Raise the exception matching the fault type."""
    raise _ERRORS.get(type(fault), ModelFaultError)(fault)
