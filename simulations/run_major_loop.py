"""
FeCap Simulation - Major Loop
=============================
Triangular ±5 V sweep of the reference 20 nm HZO-like capacitor.

Author: Thesis Project
Date: February 2026
"""

from pathlib import Path

import matplotlib.pyplot as plt

from fecap.config import get_hzo_parameters, get_fast_simulation_config, summarize_parameters
from fecap.model import FerroelectricCapacitor
from fecap.sweeps import triangular_sweep, precondition, run_voltage_sweep
from fecap.postprocess import extract_loop_metrics
from fecap.visualization import plot_qv_loop


def run_major_loop(sim_config=None, output_dir: str = "."):
    """
    Run the major loop study.

    Outputs:
    - data/raw/major_loop.csv
    - plots/major_loop.png

    Returns:
        (DataFrame, LoopMetrics)
    """
    print("\n[Major Loop Simulation]")
    print("="*50)

    sim_config = sim_config or get_fast_simulation_config()
    params = get_hzo_parameters()
    for key, value in summarize_parameters(params).items():
        print(f"  {key:>18s}: {value:.4g}")

    capacitor = FerroelectricCapacitor(params, name="major_loop")
    capacitor.initialize()

    print(f"\n  Preconditioning to ±{sim_config.V_max} V...")
    precondition(capacitor, sim_config.V_max, sim_config.n_per_segment)

    print("  Running triangular sweep...")
    V_sweep = triangular_sweep(-sim_config.V_max, sim_config.V_max, sim_config.n_per_segment)
    results = run_voltage_sweep(capacitor, V_sweep)

    metrics = extract_loop_metrics(results)
    print("\n  Extracting metrics...")
    for key, value in metrics.to_dict().items():
        print(f"    {key:>18s}: {value:.4g}")

    raw_dir = Path(output_dir) / "data" / "raw"
    plot_dir = Path(output_dir) / "plots"
    raw_dir.mkdir(parents=True, exist_ok=True)
    plot_dir.mkdir(parents=True, exist_ok=True)

    csv_path = raw_dir / "major_loop.csv"
    results.to_csv(csv_path, index=False)
    print(f"  Raw data saved: {csv_path}")

    fig = plot_qv_loop(results, label="HZO 20 nm", metrics=metrics,
                       save_path=str(plot_dir / "major_loop.png"))
    plt.close(fig)

    return results, metrics


if __name__ == "__main__":
    run_major_loop()
