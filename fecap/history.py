"""
FeCap Hysteresis Model
======================
Turning point memory.

Two bounded stacks of BranchPoints hold the nested minor loops: the
ascending stack remembers where rising branches started, the descending
stack where falling branches started. Index 0 of each stack is the outer
saturation bound found at initialization and is never popped.

Author: Thesis Project
Date: February 2026
"""

from dataclasses import dataclass
from typing import List, Optional, Tuple

from .faults import CapacityFault


DEFAULT_CAPACITY = 1000


@dataclass(frozen=True)
class BranchPoint:
    """A remembered turning point."""
    voltage: float          # V
    polarization: float     # C/m²


class HistoryStack:
    """Growable stack with an explicit capacity and a drop-on-overflow policy."""

    def __init__(self, name: str, base: BranchPoint, capacity: int = DEFAULT_CAPACITY):
        if capacity < 1:
            raise ValueError(f"capacity must be >= 1, got {capacity}")
        self.name = name
        self.capacity = capacity
        self._points: List[BranchPoint] = [base]

    @property
    def depth(self) -> int:
        return len(self._points)

    @property
    def top(self) -> BranchPoint:
        return self._points[-1]

    @property
    def base(self) -> BranchPoint:
        return self._points[0]

    def is_full(self) -> bool:
        return len(self._points) >= self.capacity

    def push(self, point: BranchPoint) -> Optional[CapacityFault]:
        """
        Push a turning point.

        Returns:
            None on success, or a CapacityFault if the stack is full (the
            point is dropped and the stack left unchanged).
        """
        if self.is_full():
            return CapacityFault(
                f"{self.name} stack full, turning point dropped",
                {"stack": self.name, "capacity": self.capacity,
                 "voltage": point.voltage, "polarization": point.polarization})
        self._points.append(point)
        return None

    def pop(self) -> Optional[BranchPoint]:
        """Pop the top point; the base point is never removed."""
        if len(self._points) <= 1:
            return None
        return self._points.pop()

    def dump(self) -> List[Tuple[float, float]]:
        return [(p.voltage, p.polarization) for p in self._points]

    def __len__(self) -> int:
        return len(self._points)

    def __iter__(self):
        return iter(self._points)

    def __repr__(self) -> str:
        return f"HistoryStack({self.name!r}, depth={self.depth}, capacity={self.capacity})"


class HistoryStacks:
    """The ascending and descending stacks of one device instance."""

    def __init__(self, ascending_base: BranchPoint, descending_base: BranchPoint,
                 capacity: int = DEFAULT_CAPACITY):
        self.ascending = HistoryStack("ascending", ascending_base, capacity)
        self.descending = HistoryStack("descending", descending_base, capacity)

    def pop_both(self) -> bool:
        """Return to the next-outer loop. Only pops if both stacks have depth > 1."""
        if self.ascending.depth > 1 and self.descending.depth > 1:
            self.ascending.pop()
            self.descending.pop()
            return True
        return False

    def dump(self) -> dict:
        return {"ascending": self.ascending.dump(), "descending": self.descending.dump()}
