"""
FeCap Simulation - Nested Minor Loops
=====================================
Shrinking reversals inside the major loop. Shows turning point memory:
each reversal opens a minor loop, and passing a remembered turning point
rejoins the enclosing loop.

Author: Thesis Project
Date: February 2026
"""

from pathlib import Path

import matplotlib.pyplot as plt

from fecap.config import get_hzo_parameters, get_fast_simulation_config
from fecap.diagnostics import RecordingSink, DIRECTION_CHANGE
from fecap.model import FerroelectricCapacitor
from fecap.sweeps import nested_minor_sweep, precondition, run_voltage_sweep
from fecap.visualization import plot_multiple_loops


def run_minor_loops(sim_config=None, amplitudes=(3.0, 2.0, 1.0), output_dir: str = "."):
    """
    Returns:
        DataFrame of the full sweep, with a 'segment' column per reversal
    """
    print("\n[Nested Minor Loop Simulation]")
    print("="*50)

    sim_config = sim_config or get_fast_simulation_config()
    sink = RecordingSink()
    capacitor = FerroelectricCapacitor(get_hzo_parameters(), sink=sink, name="minor_loops")
    capacitor.initialize()
    precondition(capacitor, sim_config.V_max, sim_config.n_per_segment)
    sink.clear()

    V_sweep = nested_minor_sweep(sim_config.V_max, amplitudes, sim_config.n_per_segment)
    results = run_voltage_sweep(capacitor, V_sweep)
    results["segment"] = (results["direction"] != results["direction"].shift()).cumsum() - 1

    changes = sink.of_kind(DIRECTION_CHANGE)
    print(f"  Reversal amplitudes: {list(amplitudes)}")
    print(f"  Direction changes:   {len(changes)}")
    print(f"  Final stack depth:   ascending={capacitor.stacks.ascending.depth}, "
          f"descending={capacitor.stacks.descending.depth}")

    raw_dir = Path(output_dir) / "data" / "raw"
    plot_dir = Path(output_dir) / "plots"
    raw_dir.mkdir(parents=True, exist_ok=True)
    plot_dir.mkdir(parents=True, exist_ok=True)

    csv_path = raw_dir / "minor_loops.csv"
    results.to_csv(csv_path, index=False)
    print(f"  Raw data saved: {csv_path}")

    segments = [seg for _, seg in results.groupby("segment")]
    labels = [f"segment {i}" for i in range(len(segments))]
    fig = plot_multiple_loops(segments, labels, title="Nested Minor Loops",
                              save_path=str(plot_dir / "minor_loops.png"))
    plt.close(fig)

    return results


if __name__ == "__main__":
    run_minor_loops()
