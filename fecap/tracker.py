"""
FeCap Hysteresis Model
======================
Direction state machine over the turning point stacks.

Realizes Preisach-style congruency: nested minor loops are stack entries,
reversing before a remembered turning point retraces the same branch, and
passing it collapses back to the next-outer loop.

Author: Thesis Project
Date: February 2026
"""

from dataclasses import dataclass
from enum import Enum, IntEnum
from typing import Optional, Tuple

from .config import ModelParameters
from .faults import Fault, ArithmeticFault, StateFault
from .history import BranchPoint, HistoryStacks
from .physics import SwitchingFunction, BranchScaler, BranchScaling


class Direction(IntEnum):
    """Active switching branch."""
    RISING = 1
    FALLING = -1


class Transition(Enum):
    """What an accepted voltage change did to the hysteresis state."""
    NONE = "none"                       # within voltage tolerance, nothing recorded
    CONTINUE = "continue"               # same branch, same loop
    POP_TO_OUTER = "pop_to_outer"       # passed a remembered turning point
    PUSH_ASCENDING = "push_ascending"   # reversal from falling to rising
    PUSH_DESCENDING = "push_descending" # reversal from rising to falling
    DROPPED = "dropped"                 # reversal lost to a full stack
    RESET = "reset"                     # corrupt direction reset to RISING


@dataclass(frozen=True)
class TransitionResult:
    transition: Transition
    direction: Direction
    previous_direction: Direction
    fault: Optional[Fault] = None
    loops_closed: int = 0

    @property
    def direction_changed(self) -> bool:
        return self.direction != self.previous_direction


# Saturation search
INITIAL_SEARCH_VOLTAGE = 1e-3   # V
MAX_DOUBLINGS = 64


def find_saturation_bound(switching: SwitchingFunction,
                          direction: Direction) -> Tuple[BranchPoint, Optional[ArithmeticFault]]:
    """
    Double a small voltage outward until the switching function of the
    given direction saturates.

    RISING searches downward for F <= −Qs, FALLING searches upward for
    F >= +Qs. The search stops after MAX_DOUBLINGS and reports an
    ArithmeticFault if saturation was never reached.
    """
    sign = -1.0 if direction == Direction.RISING else 1.0
    V = sign * INITIAL_SEARCH_VOLTAGE
    for _ in range(MAX_DOUBLINGS):
        F = float(switching(V, direction))
        if sign * F >= switching.Qs:
            return BranchPoint(V, F), None
        V *= 2.0
    F = float(switching(V, direction))
    fault = ArithmeticFault(
        "saturation search did not reach saturation polarization",
        {"direction": int(direction), "voltage": V, "polarization": F})
    return BranchPoint(V, F), fault


class DirectionTracker:
    """
    Owns the history stacks, the active direction and the last accepted
    voltage of one device instance.
    """

    def __init__(self, params: ModelParameters, switching: SwitchingFunction):
        self.params = params
        self.switching = switching
        self.stacks: Optional[HistoryStacks] = None
        self.direction = Direction.RISING
        self.previous_voltage = 0.0

    @property
    def initialized(self) -> bool:
        return self.stacks is not None

    def initialize(self) -> list:
        """
        Find both saturation bounds and reset the state.

        Returns:
            List of faults raised by the saturation search.
        """
        ascending, fault_a = find_saturation_bound(self.switching, Direction.RISING)
        descending, fault_b = find_saturation_bound(self.switching, Direction.FALLING)
        self.stacks = HistoryStacks(ascending, descending, self.params.stack_capacity)
        self.direction = Direction.RISING
        self.previous_voltage = 0.0
        return [f for f in (fault_a, fault_b) if f is not None]

    def update(self, V: float, scaler: BranchScaler, scaling: BranchScaling) -> TransitionResult:
        """
        Apply the transition rules to a newly solved voltage.

        Args:
            V: Newly accepted voltage (V)
            scaler: Branch scaler, used for the polarization of a new turning point
            scaling: Scaling in effect for the current direction
        """
        before = self.direction
        if abs(V - self.previous_voltage) <= self.params.voltage_tolerance:
            return TransitionResult(Transition.NONE, self.direction, before)

        if self.direction not in (Direction.RISING, Direction.FALLING):
            fault = StateFault("invalid direction state, reset to RISING",
                               {"direction": repr(self.direction)})
            self.direction = Direction.RISING
            self.previous_voltage = V
            return TransitionResult(Transition.RESET, self.direction, Direction.RISING, fault)

        V_prev = self.previous_voltage
        transition = Transition.CONTINUE
        fault = None

        closed = self.close_loops(V)
        if closed:
            transition = Transition.POP_TO_OUTER
        elif self.direction == Direction.RISING and V < V_prev:
            P_prev = float(scaler.polarization(V_prev, self.direction, scaling))
            fault = self.stacks.descending.push(BranchPoint(V_prev, P_prev))
            if fault is None:
                self.direction = Direction.FALLING
                transition = Transition.PUSH_DESCENDING
            else:
                transition = Transition.DROPPED
        elif self.direction == Direction.FALLING and V > V_prev:
            P_prev = float(scaler.polarization(V_prev, self.direction, scaling))
            fault = self.stacks.ascending.push(BranchPoint(V_prev, P_prev))
            if fault is None:
                self.direction = Direction.RISING
                transition = Transition.PUSH_ASCENDING
            else:
                transition = Transition.DROPPED

        self.previous_voltage = V
        return TransitionResult(transition, self.direction, before, fault, closed)

    def close_loops(self, V: float) -> int:
        """
        Pop every minor loop that V has left and set the direction to the
        way V is heading.

        Moving below the ascending top closes the loop it opened (moving above
        the descending top likewise). On the active branch that pops one level
        of both stacks. If the active branch was heading the other way, V_prev
        is an unrecorded reversal whose turning point would be pushed and
        popped again in the same call, so only the passed stack is popped.
        This keeps the stack depths paired: equal while RISING, one deeper
        descending stack while FALLING.

        A stack top at its base (the saturation bound) is never popped; V
        beyond it is left to the reversal rules.

        Returns:
            Number of loops closed.
        """
        closed = 0
        while True:
            if V < self.stacks.ascending.top.voltage:
                heading = Direction.FALLING
                passed, partner = self.stacks.ascending, self.stacks.descending
            elif V > self.stacks.descending.top.voltage:
                heading = Direction.RISING
                passed, partner = self.stacks.descending, self.stacks.ascending
            else:
                return closed

            if passed.depth == 1:
                return closed
            if self.direction != heading or not self.stacks.pop_both():
                passed.pop()
            self.direction = heading
            closed += 1
