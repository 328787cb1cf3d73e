"""
FeCap Hysteresis Model
======================
Parallel execution of independent studies (one capacitor instance per task).

Each task builds its own FerroelectricCapacitor inside the worker process,
so no hysteresis state is ever shared between tasks.

Author: Thesis Project
Date: February 2026
"""

import time
from concurrent.futures import ProcessPoolExecutor, as_completed
from concurrent.futures import TimeoutError as FuturesTimeoutError
from typing import Callable, List, Dict, Any, Optional
from dataclasses import dataclass
import multiprocessing as mp


@dataclass
class ParallelConfig:
    """Configuration for parallel execution."""
    n_workers: Optional[int] = None  # None = auto-detect (n_cpus - 1)
    show_progress: bool = True
    timeout_per_task: Optional[float] = None  # seconds per wave of tasks (pool only)

    def __post_init__(self):
        """Set default number of workers if not specified."""
        if self.n_workers is None:
            self.n_workers = get_optimal_worker_count()
        else:
            self.n_workers = max(1, self.n_workers)


class ParallelSweepRunner:
    """
    Run a study function over a list of parameter values (e.g. seeds).

    Example usage:
        runner = ParallelSweepRunner(ParallelConfig(n_workers=4))
        results = runner.run_sweep(
            sweep_func=convergence_for_seed,
            parameter_list=[0, 1, 2, 3],
            n_points=101,
        )
    """

    def __init__(self, config: Optional[ParallelConfig] = None):
        self.config = config or ParallelConfig()

    def run_sweep(self, sweep_func: Callable, parameter_list: List[Any],
                  **sweep_kwargs) -> List[Dict[str, Any]]:
        """
        Args:
            sweep_func: Module-level function, func(param_value, **kwargs) -> Dict
            parameter_list: Parameter values to sweep over
            **sweep_kwargs: Additional keyword arguments passed to sweep_func

        Returns:
            Result dictionaries in the same order as parameter_list. A failed
            task yields {"error": ..., "param_value": ..., "success": False}.
        """
        n_params = len(parameter_list)
        if self.config.show_progress:
            print(f"  Running {n_params} tasks ({self.config.n_workers} workers)...")

        start_time = time.time()
        if self.config.n_workers == 1:
            results = [_run_single_task(sweep_func, p, sweep_kwargs) for p in parameter_list]
        else:
            results = self._run_pool(sweep_func, parameter_list, sweep_kwargs)

        if self.config.show_progress:
            n_failed = sum(1 for r in results if not r.get("success", True))
            print(f"  Completed in {time.time() - start_time:.1f}s "
                  f"(failed: {n_failed}/{n_params})")
        return results

    def _run_pool(self, sweep_func: Callable, parameter_list: List[Any],
                  sweep_kwargs: Dict[str, Any]) -> List[Dict[str, Any]]:
        """
        Fan tasks out over a process pool. With timeout_per_task set, the
        whole sweep gets timeout_per_task per wave of n_workers tasks; tasks
        still unfinished at the deadline are reported as failed.
        """
        n_params = len(parameter_list)
        deadline = None
        if self.config.timeout_per_task is not None:
            waves = -(-n_params // self.config.n_workers)
            deadline = self.config.timeout_per_task * waves

        results = [None] * n_params
        finished = set()
        executor = ProcessPoolExecutor(max_workers=self.config.n_workers)
        try:
            future_to_idx = {
                executor.submit(_run_single_task, sweep_func, p, sweep_kwargs): idx
                for idx, p in enumerate(parameter_list)
            }
            try:
                for future in as_completed(future_to_idx, timeout=deadline):
                    idx = future_to_idx[future]
                    results[idx] = future.result()
                    finished.add(idx)
            except FuturesTimeoutError:
                for idx in range(n_params):
                    if idx not in finished:
                        results[idx] = {
                            "error": f"timed out after {deadline:.1f}s",
                            "param_value": parameter_list[idx],
                            "success": False,
                        }
        finally:
            executor.shutdown(wait=len(finished) == n_params, cancel_futures=True)
        return results


def _run_single_task(sweep_func: Callable, param_value: Any,
                     sweep_kwargs: Dict[str, Any]) -> Dict[str, Any]:
    """
    Worker function. Returns error information instead of raising so the
    main process can report it alongside the successful tasks.
    """
    try:
        return sweep_func(param_value, **sweep_kwargs)
    except Exception as e:
        return {
            "error": str(e),
            "param_value": param_value,
            "success": False,
        }


def get_optimal_worker_count() -> int:
    """
    Recommended number of workers (n_cpus - 1, all cores on 1-2 core systems).
    """
    n_cpus = mp.cpu_count()
    if n_cpus <= 2:
        return n_cpus
    return max(1, n_cpus - 1)
