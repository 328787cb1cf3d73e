"""
FeCap Simulation - Solver Convergence Study
===========================================
Charge-controlled sweeps over ±1.5·Ps for a spread of damping seeds.
Reports the fraction of calls that converge within max_iterations.

Author: Thesis Project
Date: February 2026
"""

from dataclasses import replace
from pathlib import Path

import numpy as np
import pandas as pd
import matplotlib.pyplot as plt

from fecap.config import CHARGE_SCALE, get_hzo_parameters, get_fast_simulation_config
from fecap.diagnostics import NullSink
from fecap.model import FerroelectricCapacitor
from fecap.parallel import ParallelConfig, ParallelSweepRunner
from fecap.postprocess import convergence_summary
from fecap.sweeps import triangular_sweep, run_charge_sweep
from fecap.visualization import plot_iteration_histogram


def charge_signal_sweep(saturation_polarization: float, span: float = 1.5,
                        n_points: int = 101) -> np.ndarray:
    """Triangular input signal (µC/cm²) covering ±span·Ps."""
    q_max = span * saturation_polarization / CHARGE_SCALE
    return triangular_sweep(-q_max, q_max, n_points)


def convergence_for_seed(seed: int, n_points: int = 101, span: float = 1.5) -> dict:
    """One seed: fresh capacitor, triangular charge sweep, convergence summary."""
    params = replace(get_hzo_parameters(), seed=seed)
    capacitor = FerroelectricCapacitor(params, sink=NullSink(), name=f"seed{seed}")
    capacitor.initialize()
    df = run_charge_sweep(capacitor, charge_signal_sweep(params.saturation_polarization,
                                                         span, n_points))
    summary = convergence_summary(df)
    summary["seed"] = seed
    summary["iterations"] = df["iterations"].tolist()
    return summary


def run_convergence_study(sim_config=None, output_dir: str = "."):
    """
    Returns:
        DataFrame with one row per seed
    """
    print("\n[Solver Convergence Study]")
    print("="*50)

    sim_config = sim_config or get_fast_simulation_config()
    n_workers = sim_config.n_workers if sim_config.enable_parallel else 1
    runner = ParallelSweepRunner(ParallelConfig(n_workers=n_workers))
    results = runner.run_sweep(convergence_for_seed, sim_config.seeds,
                               n_points=sim_config.n_charge_points,
                               span=sim_config.charge_span)

    ok = [r for r in results if r.get("success", True)]
    iterations = pd.DataFrame({"iterations": [i for r in ok for i in r.pop("iterations")]})
    summary = pd.DataFrame(ok)

    if len(summary) > 0:
        total = summary["n_points"].sum()
        failed = summary["n_failed"].sum()
        print(f"  Seeds:               {len(summary)}")
        print(f"  Calls:               {total}")
        print(f"  Converged fraction:  {1.0 - failed / total:.4f}")
        print(f"  Mean iterations:     {iterations['iterations'].mean():.1f}")

    processed_dir = Path(output_dir) / "data" / "processed"
    plot_dir = Path(output_dir) / "plots"
    processed_dir.mkdir(parents=True, exist_ok=True)
    plot_dir.mkdir(parents=True, exist_ok=True)

    csv_path = processed_dir / "convergence_study.csv"
    summary.to_csv(csv_path, index=False)
    print(f"  Summary saved: {csv_path}")

    if len(iterations) > 0:
        fig = plot_iteration_histogram(iterations,
                                       save_path=str(plot_dir / "convergence_iterations.png"))
        plt.close(fig)

    return summary


if __name__ == "__main__":
    run_convergence_study()
