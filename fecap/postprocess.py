"""
FeCap Hysteresis Model
======================
Post-processing and metric extraction utilities for Q-V loops.

Author: Thesis Project
Date: February 2026
"""

import numpy as np
import pandas as pd
from typing import Dict
from dataclasses import dataclass


@dataclass
class LoopMetrics:
    """Container for extracted hysteresis loop metrics."""
    # Remanent polarization (P at V = 0)
    Pr_forward: float
    Pr_reverse: float

    # Coercive voltages (P = 0 crossings)
    Vc_forward: float
    Vc_reverse: float

    # Loop shape
    loop_area: float            # ∮ Q dV (J/m²), > 0 for a counter-clockwise loop
    Q_max: float                # Charge at the most positive voltage (C/m²)
    Q_min: float                # Charge at the most negative voltage (C/m²)
    closure_error: float        # Distance between first and last (V, Q) point

    @property
    def memory_window(self) -> float:
        """Coercive voltage split between the two branches (V)."""
        return abs(self.Vc_forward - self.Vc_reverse)

    def to_dict(self) -> Dict:
        """Convert to dictionary."""
        return {
            "Pr_forward_C_m2": self.Pr_forward,
            "Pr_reverse_C_m2": self.Pr_reverse,
            "Vc_forward_V": self.Vc_forward,
            "Vc_reverse_V": self.Vc_reverse,
            "Memory_Window_V": self.memory_window,
            "Loop_Area_J_m2": self.loop_area,
            "Q_max_C_m2": self.Q_max,
            "Q_min_C_m2": self.Q_min,
            "Closure_Error": self.closure_error,
        }


def loop_area(V: np.ndarray, Q: np.ndarray) -> float:
    """
    Signed area enclosed by the (V, Q) trace, closed back to its first point.
    Shoelace formula.
    """
    V = np.asarray(V, dtype=float)
    Q = np.asarray(Q, dtype=float)
    return 0.5 * float(np.sum(V * np.roll(Q, -1) - np.roll(V, -1) * Q))


def _branch(df: pd.DataFrame, direction: str, V_col: str) -> pd.DataFrame:
    if "direction" in df.columns:
        subset = df[df["direction"] == direction]
    else:
        subset = df
    return subset.sort_values(by=V_col)


def extract_remanent_polarization(df: pd.DataFrame, direction: str = "forward",
                                  V_col: str = "V", P_col: str = "P") -> float:
    """P at V = 0 on one branch, linearly interpolated."""
    subset = _branch(df, direction, V_col)
    if len(subset) < 2:
        return np.nan
    V = subset[V_col].values
    if V.min() > 0 or V.max() < 0:
        return np.nan
    return float(np.interp(0.0, V, subset[P_col].values))


def extract_coercive_voltage(df: pd.DataFrame, direction: str = "forward",
                             V_col: str = "V", P_col: str = "P") -> float:
    """Voltage where P crosses zero on one branch."""
    subset = _branch(df, direction, V_col)
    if len(subset) < 2:
        return np.nan
    V = subset[V_col].values
    P = subset[P_col].values
    crossings = np.nonzero(np.diff(np.sign(P)) != 0)[0]
    if len(crossings) == 0:
        return np.nan
    i = crossings[0]
    if P[i + 1] == P[i]:
        return float(V[i])
    return float(V[i] - P[i] * (V[i + 1] - V[i]) / (P[i + 1] - P[i]))


def extract_loop_metrics(df: pd.DataFrame, V_col: str = "V", Q_col: str = "Q",
                         P_col: str = "P") -> LoopMetrics:
    """
    Extract all loop metrics from one sweep cycle.

    Args:
        df: DataFrame with V, Q, P and direction columns (run_voltage_sweep output)

    Returns:
        LoopMetrics object with all extracted values
    """
    V = df[V_col].values
    Q = df[Q_col].values

    return LoopMetrics(
        Pr_forward=extract_remanent_polarization(df, "forward", V_col, P_col),
        Pr_reverse=extract_remanent_polarization(df, "reverse", V_col, P_col),
        Vc_forward=extract_coercive_voltage(df, "forward", V_col, P_col),
        Vc_reverse=extract_coercive_voltage(df, "reverse", V_col, P_col),
        loop_area=loop_area(V, Q),
        Q_max=float(Q[np.argmax(V)]),
        Q_min=float(Q[np.argmin(V)]),
        closure_error=float(np.hypot(V[-1] - V[0], Q[-1] - Q[0])),
    )


def convergence_summary(df: pd.DataFrame) -> Dict:
    """Converged fraction and iteration statistics of a charge sweep."""
    failed = df["fault"].str.contains("convergence")
    n = len(df)
    return {
        "n_points": n,
        "n_failed": int(failed.sum()),
        "converged_fraction": float(1.0 - failed.sum() / n) if n else np.nan,
        "mean_iterations": float(df["iterations"].mean()) if n else np.nan,
        "max_iterations": int(df["iterations"].max()) if n else 0,
    }
