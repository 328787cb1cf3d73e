"""
FeCap Simulation - Simulations Package
======================================

Runners for all study phases:
- Phase 1: Major loop (triangular ±5 V)
- Phase 2: Nested minor loops
- Phase 3: Solver convergence across damping seeds
"""

from .run_major_loop import run_major_loop
from .run_minor_loops import run_minor_loops
from .run_convergence_study import run_convergence_study, convergence_for_seed

__all__ = [
    "run_major_loop",
    "run_minor_loops",
    "run_convergence_study",
    "convergence_for_seed",
]
