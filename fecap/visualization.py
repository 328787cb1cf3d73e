"""
FeCap Hysteresis Model
======================
Visualization and plotting utilities for Q-V loops and solver statistics.

Author: Thesis Project
Date: February 2026
"""

import numpy as np
import pandas as pd
import matplotlib.pyplot as plt
from typing import List, Optional

from .postprocess import LoopMetrics


# C/m² → µC/cm²
PLOT_CHARGE_SCALE = 1e2

LOOP_RC = {
    'font.family': 'serif',
    'font.size': 11,
    'axes.labelsize': 13,
    'axes.titlesize': 14,
    'legend.fontsize': 10,
    'lines.linewidth': 1.8,
    'figure.figsize': (7, 5.5),
    'figure.dpi': 150,
    'savefig.dpi': 300,
    'savefig.bbox': 'tight',
}


# =============================================================================
# PLOT STYLE CONFIGURATION
# =============================================================================

def setup_thesis_style():
    """Paper style sheet plus the loop plot rcParams."""
    plt.style.use('seaborn-v0_8-paper')
    plt.rcParams.update(LOOP_RC)


def _finish(fig: plt.Figure, ax, title: str, save_path: Optional[str],
            legend_loc: str = 'best') -> plt.Figure:
    ax.set_title(title)
    if ax.get_legend_handles_labels()[0]:
        ax.legend(loc=legend_loc)
    ax.grid(True, linestyle=':', alpha=0.6)
    fig.tight_layout()
    if save_path:
        fig.savefig(save_path)
        print(f"  Figure saved: {save_path}")
    return fig


# =============================================================================
# HYSTERESIS LOOP PLOTS
# =============================================================================

def plot_qv_loop(df: pd.DataFrame,
                 quantity: str = "Q",
                 label: str = "FeCap",
                 title: str = "Charge-Voltage Hysteresis Loop",
                 metrics: Optional[LoopMetrics] = None,
                 save_path: Optional[str] = None) -> plt.Figure:
    """
    Plot a Q-V (or P-V) loop with forward/reverse branches styled separately.

    Args:
        df: DataFrame from run_voltage_sweep / run_charge_sweep
        quantity: "Q" (total charge) or "P" (polarization)
        label: Legend label
        title: Plot title
        metrics: Optional LoopMetrics; coercive voltages are marked and the
                 memory window and loop area annotated
        save_path: Path to save figure (if provided)

    Returns:
        matplotlib Figure object
    """
    setup_thesis_style()
    fig, ax = plt.subplots()

    y = df[quantity] * PLOT_CHARGE_SCALE
    if "direction" in df.columns:
        for branch, style in (("forward", 'b.'), ("reverse", 'r.')):
            mask = df["direction"] == branch
            ax.plot(df.loc[mask, "V"], y[mask], style, markersize=3,
                    label=f"{label} ({branch})")
    else:
        ax.plot(df["V"], y, 'b-', label=label)

    ax.axhline(0.0, color='k', linewidth=0.7)
    ax.axvline(0.0, color='k', linewidth=0.7)

    if metrics is not None:
        for Vc in (metrics.Vc_forward, metrics.Vc_reverse):
            if not np.isnan(Vc):
                ax.axvline(Vc, color='gray', linestyle='--', linewidth=1.2)
        ax.text(0.04, 0.94,
                f"MW = {metrics.memory_window:.2f} V\n"
                f"Area = {metrics.loop_area:.3g} J/m²",
                transform=ax.transAxes, va='top',
                bbox=dict(boxstyle='round', facecolor='white', alpha=0.8))

    ax.set_xlabel("Voltage $V$ (V)")
    ax.set_ylabel(("Charge $Q$" if quantity == "Q" else "Polarization $P$") + " (μC/cm²)")
    return _finish(fig, ax, title, save_path, legend_loc='lower right')


def plot_multiple_loops(dfs: List[pd.DataFrame],
                        labels: List[str],
                        quantity: str = "Q",
                        title: str = "Hysteresis Loop Comparison",
                        save_path: Optional[str] = None) -> plt.Figure:
    """Overlay several loops, e.g. the segments of a nested minor loop sweep."""
    setup_thesis_style()
    fig, ax = plt.subplots()

    colors = plt.cm.viridis(np.linspace(0, 0.9, max(len(dfs), 1)))
    for df, label, color in zip(dfs, labels, colors):
        ax.plot(df["V"], df[quantity] * PLOT_CHARGE_SCALE, '-', color=color, label=label)

    ax.set_xlabel("Voltage $V$ (V)")
    ax.set_ylabel("Charge $Q$ (μC/cm²)")
    return _finish(fig, ax, title, save_path)


# =============================================================================
# SOLVER STATISTICS
# =============================================================================

def plot_iteration_histogram(df: pd.DataFrame,
                             title: str = "Newton Iterations per Call",
                             save_path: Optional[str] = None) -> plt.Figure:
    """Histogram of solver iteration counts, one bin per integer count."""
    setup_thesis_style()
    fig, ax = plt.subplots()

    iterations = df["iterations"].to_numpy()
    edges = np.arange(int(iterations.max()) + 2) - 0.5
    ax.hist(iterations, bins=edges, color='steelblue', edgecolor='black')
    ax.set_xlabel("Iterations")
    ax.set_ylabel("Calls")
    return _finish(fig, ax, title, save_path)
