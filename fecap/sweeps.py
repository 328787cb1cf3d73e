"""
FeCap Hysteresis Model
======================
Voltage and charge sweeps over a single capacitor instance.

Author: Thesis Project
Date: February 2026
"""

import numpy as np
import pandas as pd
from typing import Optional

from .model import FerroelectricCapacitor, EvaluationResult


# =============================================================================
# SWEEP WAVEFORMS
# =============================================================================

def triangular_sweep(v_start: float = -5.0, v_peak: float = 5.0,
                     n_per_segment: int = 200) -> np.ndarray:
    """
    Triangular sweep: v_start → v_peak → v_start.

    The peak appears once; both endpoints equal v_start exactly.
    """
    up = np.linspace(v_start, v_peak, n_per_segment)
    down = np.linspace(v_peak, v_start, n_per_segment)
    return np.concatenate([up, down[1:]])


def generate_voltage_sweep(V_max: float = 3.0, n_per_segment: int = 50) -> np.ndarray:
    """
    Generate standard hysteresis voltage sweep: 0 → +V → -V → +V → 0

    Args:
        V_max: Maximum voltage (V)
        n_per_segment: Points per segment

    Returns:
        Voltage array
    """
    return np.concatenate([
        np.linspace(0, V_max, n_per_segment),
        np.linspace(V_max, -V_max, n_per_segment * 2),
        np.linspace(-V_max, V_max, n_per_segment * 2),
        np.linspace(V_max, 0, n_per_segment)
    ])


def nested_minor_sweep(V_max: float = 5.0, amplitudes=(3.0, 2.0, 1.0),
                       n_per_segment: int = 100) -> np.ndarray:
    """
    Major-loop excursion followed by shrinking reversals:
    −V_max → +V_max → −a₁ → +a₂ → −a₃ ... → −V_max
    """
    points = [-V_max, V_max]
    sign = -1.0
    for a in amplitudes:
        points.append(sign * a)
        sign = -sign
    points.append(-V_max)

    segments = [np.linspace(points[0], points[1], n_per_segment)]
    for a, b in zip(points[1:-1], points[2:]):
        segments.append(np.linspace(a, b, n_per_segment)[1:])
    return np.concatenate(segments)


# =============================================================================
# SWEEP RUNNERS
# =============================================================================

def _label_direction(values: np.ndarray) -> list:
    """'forward' where the swept quantity increases, 'reverse' where it falls."""
    labels = []
    current = "forward"
    for i in range(len(values)):
        if i > 0 and values[i] != values[i - 1]:
            current = "forward" if values[i] > values[i - 1] else "reverse"
        labels.append(current)
    if len(values) > 1:
        labels[0] = labels[1]
    return labels


def _row(result: EvaluationResult) -> dict:
    return {
        "V": result.core_voltage,
        "V_terminal": result.voltage,
        "Q": result.charge,
        "P": result.polarization,
        "branch": result.direction.name,
        "iterations": result.iterations,
        "transition": result.transition.value,
        "fault": ";".join(f.kind for f in result.faults),
    }


def precondition(capacitor: FerroelectricCapacitor, V_max: float = 5.0,
                 n_per_segment: int = 100):
    """Drive 0 → +V_max → −V_max so the device sits on the major loop."""
    for V in np.concatenate([np.linspace(0, V_max, n_per_segment),
                             np.linspace(V_max, -V_max, 2 * n_per_segment)[1:]]):
        capacitor.apply_voltage(float(V))


def run_voltage_sweep(capacitor: FerroelectricCapacitor, V_sweep: np.ndarray,
                      times: Optional[np.ndarray] = None) -> pd.DataFrame:
    """
    Apply each voltage in turn and record the resulting charge.

    Returns:
        DataFrame with V, V_terminal, Q, P, branch, iterations, transition,
        fault and direction columns
    """
    rows = []
    for i, V in enumerate(V_sweep):
        t = None if times is None else float(times[i])
        rows.append(_row(capacitor.apply_voltage(float(V), time=t)))
    df = pd.DataFrame(rows)
    df["direction"] = _label_direction(np.asarray(V_sweep, dtype=float))
    return df


def run_charge_sweep(capacitor: FerroelectricCapacitor, signal_sweep: np.ndarray,
                     times: Optional[np.ndarray] = None) -> pd.DataFrame:
    """
    Evaluate the model for each input signal (µC/cm²) in turn.

    Returns:
        DataFrame with the same columns as run_voltage_sweep plus the input
        signal
    """
    rows = []
    for i, s in enumerate(signal_sweep):
        t = None if times is None else float(times[i])
        row = _row(capacitor.evaluate(float(s), time=t))
        row["signal"] = float(s)
        rows.append(row)
    df = pd.DataFrame(rows)
    df["direction"] = _label_direction(np.asarray(signal_sweep, dtype=float))
    return df
