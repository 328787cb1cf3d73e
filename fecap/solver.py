"""
FeCap Hysteresis Model
======================
Damped Newton-Raphson inversion of the branch-scaled charge relation.

Each iteration divides the Newton step by an integer drawn from [1, 10].
This is an empirical heuristic that stabilizes the sharply nonlinear
Jacobian near the coercive voltage; it is not a derived line search.
The damping source is injectable so tests can fix its sequence.

Author: Thesis Project
Date: February 2026
"""

import numpy as np
from dataclasses import dataclass
from typing import Optional

from .config import ModelParameters
from .faults import ConvergenceFault
from .physics import BranchScaler, BranchScaling


# =============================================================================
# DAMPING HEURISTIC
# =============================================================================

DAMPING_MIN = 1
DAMPING_MAX = 10


class RandomDamping:
    """
    Seeded integer damping factors in [DAMPING_MIN, DAMPING_MAX].
    Deterministic given the seed and the number of draws.
    """

    def __init__(self, seed: int = 0, low: int = DAMPING_MIN, high: int = DAMPING_MAX):
        self.seed = seed
        self.low = low
        self.high = high
        self.draws = 0
        self._rng = np.random.default_rng(seed)

    def next(self) -> int:
        self.draws += 1
        return int(self._rng.integers(self.low, self.high + 1))

    def reset(self):
        self.draws = 0
        self._rng = np.random.default_rng(self.seed)

    def get_state(self) -> dict:
        return {"draws": self.draws, "bit_generator": self._rng.bit_generator.state}

    def set_state(self, state: dict):
        self.draws = state["draws"]
        self._rng.bit_generator.state = state["bit_generator"]


class FixedDamping:
    """Constant damping factor (1 = plain Newton)."""

    def __init__(self, factor: int = 1):
        if factor < 1:
            raise ValueError(f"damping factor must be >= 1, got {factor}")
        self.factor = factor
        self.draws = 0

    def next(self) -> int:
        self.draws += 1
        return self.factor

    def reset(self):
        self.draws = 0

    def get_state(self) -> dict:
        return {"draws": self.draws}

    def set_state(self, state: dict):
        self.draws = state["draws"]


# =============================================================================
# SOLVER
# =============================================================================

@dataclass(frozen=True)
class SolveResult:
    voltage: float
    iterations: int
    converged: bool
    residual: float
    fault: Optional[ConvergenceFault] = None


class ChargeVoltageSolver:
    """Find V such that Q(V, dir) equals a target charge density."""

    def __init__(self, params: ModelParameters, scaler: BranchScaler, damping=None):
        self.params = params
        self.scaler = scaler
        self.damping = damping if damping is not None else RandomDamping(params.seed)

    def solve(self, target: float, V_start: float, direction: int,
              scaling: BranchScaling) -> SolveResult:
        """
        Args:
            target: Target charge density (C/m²)
            V_start: Last accepted voltage, used as the initial guess (V)
            direction: Active branch (+1 / −1)
            scaling: Branch scaling for the active direction

        Returns:
            SolveResult. If the iteration budget runs out, converged is False,
            voltage is V_start (last valid voltage) and fault is set.
        """
        q_tol = self.params.charge_tolerance
        v_tol = self.params.voltage_tolerance
        remaining = self.params.max_iterations

        V = V_start
        V_last = 2.0 * V_start
        iterations = 0

        while True:
            residual = float(self.scaler.charge(V, direction, scaling)) - target
            if abs(residual) < q_tol and abs(V - V_last) < v_tol:
                return SolveResult(V, iterations, True, residual)

            remaining -= 1
            if remaining <= 0:
                fault = ConvergenceFault(
                    "Newton solver exhausted its iteration budget",
                    {"target": target, "voltage": V, "residual": residual,
                     "iterations": iterations})
                return SolveResult(V_start, iterations, False, residual, fault)

            slope = float(self.scaler.charge_derivative(V, direction, scaling))
            damped_slope = slope * self.damping.next()
            V_last = V
            V = V - residual / damped_slope
            iterations += 1
