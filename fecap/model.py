"""
FeCap Hysteresis Model
======================
Charge-controlled ferroelectric capacitor.

The host circuit solver calls evaluate() once per nonlinear iteration or
timestep with the input signal (a charge density in µC/cm²). Each call:

    1. recomputes the branch scaling from the stack tops and direction
    2. converts the signal to a target charge density (C/m²)
    3. inverts Q(V, dir) = target with the damped Newton solver
    4. updates the turning point memory from the solved voltage
    5. adds the relaxation term  k_delay · t_fe · dQ/dt

Hysteresis state is mutated immediately on every accepted voltage change.
A host that rolls back timesteps can use snapshot()/restore().

Author: Thesis Project
Date: February 2026
"""

import copy
from dataclasses import dataclass, field
from typing import List, Optional

from .config import ModelParameters, CHARGE_SCALE
from .diagnostics import (
    DiagnosticEvent,
    DiagnosticsSink,
    LoggingSink,
    FAULT_EVENTS,
    INITIALIZATION,
    DIRECTION_CHANGE,
    STACK_DUMP,
)
from .faults import Fault, FaultPolicy, raise_for_fault
from .history import HistoryStacks
from .physics import SwitchingFunction, BranchScaler, BranchScaling
from .solver import ChargeVoltageSolver, SolveResult
from .tracker import Direction, DirectionTracker, Transition, TransitionResult


@dataclass
class EvaluationResult:
    """Outcome of one model call."""
    voltage: float              # Terminal voltage incl. relaxation term (V)
    core_voltage: float         # Voltage from the hysteresis model alone (V)
    charge: float               # Charge density (C/m²)
    polarization: float         # Scaled polarization at core_voltage (C/m²)
    current_density: float      # dQ/dt (A/m²), 0 when time is unavailable
    direction: Direction
    iterations: int = 0
    transition: Transition = Transition.NONE
    faults: List[Fault] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.faults


@dataclass
class ModelState:
    """Deep copy of the mutable state of one device instance."""
    stacks: Optional[HistoryStacks]
    direction: Direction
    previous_voltage: float
    damping_state: dict
    last_time: Optional[float]
    last_charge: Optional[float]


class FerroelectricCapacitor:
    """
    One device instance. Owns its history stacks and solver state
    exclusively; nothing is shared between instances.
    """

    def __init__(self, params: Optional[ModelParameters] = None,
                 sink: Optional[DiagnosticsSink] = None,
                 damping=None,
                 policy: FaultPolicy = FaultPolicy.CONTINUE,
                 name: str = "fecap",
                 dump_stacks: bool = False):
        """
        Args:
            params: Model parameters (validated on construction)
            sink: Diagnostics sink (default: LoggingSink)
            damping: Newton damping source (default: RandomDamping(params.seed))
            policy: CONTINUE reports faults in results, STRICT raises them
            name: Instance name used in diagnostics
            dump_stacks: Emit a history stack dump after every turning point
        """
        self.params = params or ModelParameters()
        self.name = name
        self.sink = sink if sink is not None else LoggingSink(name=name)
        self.policy = policy
        self.dump_stacks = dump_stacks

        self.switching = SwitchingFunction.from_parameters(self.params)
        self.scaler = BranchScaler(self.switching, self.params.linear_capacitance)
        self.solver = ChargeVoltageSolver(self.params, self.scaler, damping)
        self.tracker = DirectionTracker(self.params, self.switching)

        self._last_time: Optional[float] = None
        self._last_charge: Optional[float] = None

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    @property
    def initialized(self) -> bool:
        return self.tracker.initialized

    @property
    def stacks(self) -> HistoryStacks:
        return self.tracker.stacks

    @property
    def direction(self) -> Direction:
        return self.tracker.direction

    @property
    def previous_voltage(self) -> float:
        return self.tracker.previous_voltage

    def initialize(self):
        """Find the saturation bounds and reset the hysteresis state."""
        faults = self.tracker.initialize()
        self._last_time = None
        self._last_charge = None
        stacks = self.tracker.stacks
        self._emit(INITIALIZATION, "model initialized", {
            "Vc": self.params.coercive_voltage,
            "Ps": self.params.saturation_polarization,
            "V_ascending_bound": stacks.ascending.base.voltage,
            "V_descending_bound": stacks.descending.base.voltage,
            "capacity": self.params.stack_capacity,
        })
        self._handle_faults(faults)

    def reset(self):
        """Re-run initialization and rewind the damping generator."""
        self.solver.damping.reset()
        self.initialize()

    def snapshot(self) -> ModelState:
        if not self.initialized:
            self.initialize()
        return ModelState(
            stacks=copy.deepcopy(self.tracker.stacks),
            direction=self.tracker.direction,
            previous_voltage=self.tracker.previous_voltage,
            damping_state=copy.deepcopy(self.solver.damping.get_state()),
            last_time=self._last_time,
            last_charge=self._last_charge,
        )

    def restore(self, state: ModelState):
        self.tracker.stacks = copy.deepcopy(state.stacks)
        self.tracker.direction = state.direction
        self.tracker.previous_voltage = state.previous_voltage
        self.solver.damping.set_state(copy.deepcopy(state.damping_state))
        self._last_time = state.last_time
        self._last_charge = state.last_charge

    # -------------------------------------------------------------------------
    # Evaluation
    # -------------------------------------------------------------------------

    def current_scaling(self):
        """(scaling, fault) for the current stack tops and direction."""
        if not self.initialized:
            self.initialize()
        stacks = self.tracker.stacks
        return self.scaler.compute(stacks.ascending.top, stacks.descending.top,
                                   self.tracker.direction)

    def evaluate(self, signal: float, time: Optional[float] = None) -> EvaluationResult:
        """
        Charge-controlled evaluation.

        Args:
            signal: Input charge density (µC/cm²)
            time: Simulation time (s), used for the relaxation term

        Returns:
            EvaluationResult with the terminal voltage and any faults
        """
        scaling, scale_fault = self.current_scaling()
        faults = [scale_fault] if scale_fault is not None else []

        target = CHARGE_SCALE * signal
        direction = self.tracker.direction
        solved: SolveResult = self.solver.solve(
            target, self.tracker.previous_voltage, direction, scaling)

        V = solved.voltage
        polarization = float(self.scaler.polarization(V, direction, scaling))
        if solved.converged:
            transition = self._track(V, scaling)
            if transition.fault is not None:
                faults.append(transition.fault)
            charge = target
        else:
            # target was never reached: report the charge actually held at V
            faults.append(solved.fault)
            transition = TransitionResult(Transition.NONE, direction, direction)
            charge = polarization + self.params.linear_capacitance * V
        return self._compose(V, charge, polarization, time, solved.iterations,
                             transition.transition, faults, accepted=solved.converged)

    def apply_voltage(self, V: float, time: Optional[float] = None) -> EvaluationResult:
        """
        Voltage-controlled evaluation: skip the solver and evaluate Q(V, dir)
        directly, then update the turning point memory.
        """
        scaling, scale_fault = self.current_scaling()
        faults = [scale_fault] if scale_fault is not None else []

        direction = self.tracker.direction
        polarization = float(self.scaler.polarization(V, direction, scaling))
        charge = polarization + self.params.linear_capacitance * V

        transition = self._track(V, scaling)
        if transition.fault is not None:
            faults.append(transition.fault)

        return self._compose(V, charge, polarization, time, 0,
                             transition.transition, faults)

    def charge_at(self, V: float) -> float:
        """Q(V) on the active branch without touching the hysteresis state."""
        scaling, _ = self.current_scaling()
        return float(self.scaler.charge(V, self.tracker.direction, scaling))

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    def _track(self, V: float, scaling: BranchScaling) -> TransitionResult:
        result = self.tracker.update(V, self.scaler, scaling)
        if result.direction_changed:
            self._emit(DIRECTION_CHANGE, "direction changed", {
                "from": result.previous_direction.name,
                "to": result.direction.name,
                "voltage": V,
                "transition": result.transition.value,
                "loops_closed": result.loops_closed,
            })
            if self.dump_stacks:
                self.dump()
        return result

    def _compose(self, V, charge, polarization, time, iterations, transition,
                 faults, accepted: bool = True) -> EvaluationResult:
        # a rejected call neither contributes nor consumes a dQ/dt sample
        dq_dt = 0.0
        if time is not None and accepted:
            if self._last_time is not None and time > self._last_time:
                dq_dt = (charge - self._last_charge) / (time - self._last_time)
            self._last_time = time
            self._last_charge = charge

        relaxation = self.params.delay_coefficient * self.params.thickness * dq_dt
        result = EvaluationResult(
            voltage=V + relaxation,
            core_voltage=V,
            charge=charge,
            polarization=polarization,
            current_density=dq_dt,
            direction=self.tracker.direction,
            iterations=iterations,
            transition=transition,
            faults=faults,
        )
        self._handle_faults(faults)
        return result

    def dump(self):
        """Emit the full contents of both history stacks."""
        self._emit(STACK_DUMP, "history stacks", self.tracker.stacks.dump())

    def _handle_faults(self, faults: List[Fault]):
        for fault in faults:
            self._emit(FAULT_EVENTS.get(fault.kind, fault.kind), fault.message, fault.data)
        if faults and self.policy == FaultPolicy.STRICT:
            raise_for_fault(faults[0])

    def _emit(self, kind: str, message: str, data: dict):
        self.sink.emit(DiagnosticEvent(kind, message, data))

    def __repr__(self) -> str:
        return (f"FerroelectricCapacitor(name={self.name!r}, "
                f"direction={self.tracker.direction.name}, "
                f"previous_voltage={self.tracker.previous_voltage:.4g})")
