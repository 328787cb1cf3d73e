"""
FeCap Hysteresis Model
======================
Switching function and branch scaling.

The idealized major loop is a pair of tanh branches shifted by the
coercive voltage. Minor loops reuse the same branch, affinely scaled so it
passes through the two innermost remembered turning points.

Author: Thesis Project
Date: February 2026
"""

import numpy as np
from dataclasses import dataclass
from typing import Optional, Tuple, Union

from .config import ModelParameters
from .faults import ArithmeticFault
from .history import BranchPoint

ArrayLike = Union[float, np.ndarray]

# |Fa − Fb| at or below this fraction of Qs makes the branch fit ill-conditioned
DEGENERATE_FRACTION = 1e-6


# =============================================================================
# SWITCHING FUNCTION
# =============================================================================

class SwitchingFunction:
    """
    Idealized saturating polarization curve:

        F(V, dir) = Qs · tanh(a · (V − dir·Vc))

    dir = +1 for the rising branch (switches at +Vc),
    dir = −1 for the falling branch (switches at −Vc).
    """

    def __init__(self, Qs: float, a: float, Vc: float):
        """
        Args:
            Qs: Saturation polarization (C/m²)
            a: Slope factor (1/V)
            Vc: Coercive voltage (V)
        """
        self.Qs = Qs
        self.a = a
        self.Vc = Vc

    @classmethod
    def from_parameters(cls, params: ModelParameters) -> 'SwitchingFunction':
        return cls(params.saturation_polarization, params.slope_factor,
                   params.coercive_voltage)

    def __call__(self, V: ArrayLike, direction: int) -> ArrayLike:
        return self.Qs * np.tanh(self.a * (V - direction * self.Vc))

    def derivative(self, V: ArrayLike, direction: int) -> ArrayLike:
        """dF/dV = Qs · a · sech²(a · (V − dir·Vc))"""
        # sech² written as 1 − tanh² so large |x| cannot overflow cosh
        t = np.tanh(self.a * (V - direction * self.Vc))
        return self.Qs * self.a * (1.0 - t * t)


# =============================================================================
# BRANCH SCALING
# =============================================================================

@dataclass(frozen=True)
class BranchScaling:
    """Affine map P = F·slope + intercept."""
    slope: float = 1.0
    intercept: float = 0.0


NEUTRAL_SCALING = BranchScaling(1.0, 0.0)


class BranchScaler:
    """
    Fits the switching function of the active direction through the
    ascending-top and descending-top turning points.
    """

    def __init__(self, switching: SwitchingFunction, linear_capacitance: float):
        self.switching = switching
        self.linear_capacitance = linear_capacitance

    def compute(self, top_ascending: BranchPoint, top_descending: BranchPoint,
                direction: int) -> Tuple[BranchScaling, Optional[ArithmeticFault]]:
        """
        Returns:
            (scaling, fault). When the two points are indistinguishable under
            the switching function (|Fa − Fb| <= DEGENERATE_FRACTION · Qs, e.g.
            both deep in saturation) the scaling is NEUTRAL_SCALING and fault
            is an ArithmeticFault.
        """
        Pa, Pb = top_ascending.polarization, top_descending.polarization
        Fa = float(self.switching(top_ascending.voltage, direction))
        Fb = float(self.switching(top_descending.voltage, direction))

        denominator = Fa - Fb
        if abs(denominator) <= DEGENERATE_FRACTION * self.switching.Qs:
            fault = ArithmeticFault(
                "branch points indistinguishable under the switching function",
                {"Va": top_ascending.voltage, "Vb": top_descending.voltage,
                 "Fa": Fa, "Fb": Fb, "direction": direction})
            return NEUTRAL_SCALING, fault

        slope = (Pa - Pb) / denominator
        intercept = (Pb * Fa - Pa * Fb) / denominator
        return BranchScaling(slope, intercept), None

    def polarization(self, V: ArrayLike, direction: int, scaling: BranchScaling) -> ArrayLike:
        return self.switching(V, direction) * scaling.slope + scaling.intercept

    def charge(self, V: ArrayLike, direction: int, scaling: BranchScaling) -> ArrayLike:
        """Total charge density D = P + εr·ε0·V/t (C/m²)."""
        return self.polarization(V, direction, scaling) + self.linear_capacitance * V

    def charge_derivative(self, V: ArrayLike, direction: int, scaling: BranchScaling) -> ArrayLike:
        return self.switching.derivative(V, direction) * scaling.slope + self.linear_capacitance
