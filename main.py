#!/usr/bin/env python3
"""
FeCap Hysteresis Model
======================
Study driver.

Runs the major loop, nested minor loop and solver convergence studies,
removing stale outputs of the selected studies first and writing a short
run log.

Author: Thesis Project
Date: February 2026
"""

import argparse
import shutil
import sys
import time
from datetime import datetime
from pathlib import Path

PROJECT_ROOT = Path(__file__).parent
sys.path.insert(0, str(PROJECT_ROOT))

DATA_DIRS = ("data/raw", "data/processed", "plots", "logs")

# study name -> output file stem shared by its CSV and plot files
STUDIES = {
    'major': ("Major Loop", "major_loop"),
    'minor': ("Nested Minor Loops", "minor_loops"),
    'convergence': ("Solver Convergence", "convergence"),
}


def remove_outputs(stem: str, root: Path = PROJECT_ROOT) -> int:
    """Delete every output whose name contains stem. Returns the count."""
    removed = 0
    for sub in DATA_DIRS:
        folder = root / sub
        if not folder.is_dir():
            continue
        for entry in folder.glob(f"*{stem}*"):
            if entry.is_dir():
                shutil.rmtree(entry)
            else:
                entry.unlink()
            removed += 1
    return removed


def _runner(study: str, sim_config, out: str):
    if study == 'major':
        from simulations.run_major_loop import run_major_loop
        return lambda: run_major_loop(sim_config, out)
    if study == 'minor':
        from simulations.run_minor_loops import run_minor_loops
        return lambda: run_minor_loops(sim_config, output_dir=out)
    from simulations.run_convergence_study import run_convergence_study
    return lambda: run_convergence_study(sim_config, out)


def timed(title: str, func):
    """Run one study; a failure is reported and does not stop the others."""
    print(f"\n{'#' * 60}\n#  {title}\n{'#' * 60}")
    t0 = time.time()
    try:
        result = func()
    except Exception as e:
        print(f"  [FAILED] {title}: {e}")
        import traceback
        traceback.print_exc()
        return None, time.time() - t0
    return result, time.time() - t0


def write_run_log(path: Path, speed_mode: str, outcome: dict, total: float):
    lines = [
        f"FeCap run {datetime.now():%Y-%m-%d %H:%M:%S}",
        f"mode={speed_mode} total={total:.1f}s",
    ]
    for study, (ok, elapsed) in outcome.items():
        lines.append(f"{study:<12s} {'ok' if ok else 'failed':<7s} {elapsed:7.1f}s")
    path.write_text("\n".join(lines) + "\n")


def main(studies=None, clean: bool = True, speed_mode: str = 'fast') -> dict:
    """
    Args:
        studies: Study names to run (default: all of STUDIES)
        clean: Remove previous outputs of the selected studies first
        speed_mode: 'fast' or 'accurate'

    Returns:
        Mapping study name -> runner return value (None on failure)
    """
    from fecap.config import get_fast_simulation_config, get_accurate_config

    studies = list(studies or STUDIES)
    sim_config = get_accurate_config() if speed_mode == 'accurate' else get_fast_simulation_config()

    print("FeCap hysteresis model: tanh branches, turning point memory, damped Newton")
    print(f"mode: {speed_mode}   studies: {', '.join(studies)}")

    for sub in DATA_DIRS:
        (PROJECT_ROOT / sub).mkdir(parents=True, exist_ok=True)
    if clean:
        for study in studies:
            n = remove_outputs(STUDIES[study][1])
            print(f"  cleaned {n} file(s) of '{study}'")

    start = time.time()
    results, outcome = {}, {}
    for study in studies:
        title = STUDIES[study][0]
        results[study], elapsed = timed(title, _runner(study, sim_config, str(PROJECT_ROOT)))
        outcome[study] = (results[study] is not None, elapsed)

    total = time.time() - start
    print(f"\nFinished in {total:.1f}s")
    for study, (ok, elapsed) in outcome.items():
        print(f"  {study:<12s} {'ok' if ok else 'FAILED'} ({elapsed:.1f}s)")

    log_path = PROJECT_ROOT / "logs" / "simulation_log.txt"
    write_run_log(log_path, speed_mode, outcome, total)
    print(f"Run log: {log_path}")
    return results


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Run FeCap hysteresis studies")
    parser.add_argument('studies', nargs='*', metavar='study',
                        help=f"One or more of {', '.join(STUDIES)}, all (default: all)")
    parser.add_argument('--accurate', action='store_true',
                        help='Fine sweeps and 50 damping seeds')
    parser.add_argument('--no-clean', action='store_true',
                        help='Keep outputs from previous runs')
    parser.add_argument('--debug', action='store_true',
                        help='Log direction changes and history stack dumps')
    args = parser.parse_args(argv)
    unknown = set(args.studies) - set(STUDIES) - {'all'}
    if unknown:
        parser.error(f"unknown study: {', '.join(sorted(unknown))}")
    return args


if __name__ == "__main__":
    args = parse_args()
    if args.debug:
        from fecap.logging import enable_debug_logging
        enable_debug_logging()
    selected = None if not args.studies or 'all' in args.studies else args.studies
    main(selected, clean=not args.no_clean,
         speed_mode='accurate' if args.accurate else 'fast')
