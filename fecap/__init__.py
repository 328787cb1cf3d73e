"""
FeCap Hysteresis Model - Core Module
====================================

Charge-controlled ferroelectric capacitor model with turning point memory
(nested minor loops) and a damped Newton charge-to-voltage solver.

Version: 1.0.0
Author: Thesis Project
Date: February 2026
"""

# Configuration
from .config import (
    ModelParameters,
    SimulationConfig,
    EPS0,
    CHARGE_SCALE,
    load_parameters,
    get_default_parameters,
    get_hzo_parameters,
    get_fast_simulation_config,
    get_accurate_config,
    summarize_parameters,
)

# Faults
from .faults import (
    Fault,
    ArithmeticFault,
    ConvergenceFault,
    CapacityFault,
    StateFault,
    FaultPolicy,
    ModelFaultError,
    ArithmeticFaultError,
    ConvergenceFaultError,
    CapacityFaultError,
)

# Diagnostics
from .diagnostics import (
    DiagnosticEvent,
    DiagnosticsSink,
    NullSink,
    LoggingSink,
    RecordingSink,
)
from .logging import logger, enable_debug_logging, set_log_level

# Physics, memory and solver
from .physics import (
    SwitchingFunction,
    BranchScaler,
    BranchScaling,
    NEUTRAL_SCALING,
)
from .history import BranchPoint, HistoryStack, HistoryStacks, DEFAULT_CAPACITY
from .tracker import Direction, Transition, TransitionResult, DirectionTracker
from .solver import ChargeVoltageSolver, SolveResult, RandomDamping, FixedDamping

# Device model
from .model import FerroelectricCapacitor, EvaluationResult, ModelState

# Sweeps and post-processing
from .sweeps import (
    triangular_sweep,
    generate_voltage_sweep,
    nested_minor_sweep,
    precondition,
    run_voltage_sweep,
    run_charge_sweep,
)
from .postprocess import (
    LoopMetrics,
    loop_area,
    extract_loop_metrics,
    extract_remanent_polarization,
    extract_coercive_voltage,
    convergence_summary,
)

__version__ = "1.0.0"
