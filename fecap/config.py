"""
FeCap Hysteresis Model
======================
Core configuration classes for device and simulation parameters.

Author: Thesis Project
Date: February 2026
"""

from dataclasses import dataclass, field, asdict
from typing import Dict, Optional, List
import json


EPS0 = 8.854e-12      # Vacuum permittivity (F/m)

# Input signal is a charge density in µC/cm²; 0.01 converts it to C/m²
CHARGE_SCALE = 0.01


@dataclass(frozen=True)
class ModelParameters:
    """
    Ferroelectric capacitor model parameters.
    All values in SI units. Fixed for the lifetime of a device instance.
    """
    # Ferroelectric layer
    thickness: float = 20e-9                  # Layer thickness (m)
    coercive_field: float = 65e6              # Coercive field (V/m)
    relative_permittivity: float = 20.0       # Background relative permittivity
    saturation_polarization: float = 0.25     # Saturation polarization (C/m²)
    slope_factor: float = 1.0                 # tanh slope adjustment (1/V)

    # Solver settings
    charge_error_fraction: float = 1e-4       # Charge tolerance relative to Ps
    voltage_tolerance: float = 1e-4           # Absolute voltage tolerance (V)
    max_iterations: int = 1000                # Newton iteration cap
    seed: int = 0                             # Damping generator seed

    # Relaxation
    delay_coefficient: float = 0.0            # Interlayer delay coefficient

    # Turning point memory
    stack_capacity: int = 1000                # Max depth of each history stack

    def __post_init__(self):
        """Validate every parameter against its declared range."""
        if not self.thickness > 0:
            raise ValueError(f"thickness must be > 0, got {self.thickness}")
        if not self.coercive_field >= 0:
            raise ValueError(f"coercive_field must be >= 0, got {self.coercive_field}")
        if not self.relative_permittivity > 0:
            raise ValueError(
                f"relative_permittivity must be > 0, got {self.relative_permittivity}")
        if not self.saturation_polarization >= 0:
            raise ValueError(
                f"saturation_polarization must be >= 0, got {self.saturation_polarization}")
        if not self.slope_factor >= 0:
            raise ValueError(f"slope_factor must be >= 0, got {self.slope_factor}")
        if not 1e-6 <= self.charge_error_fraction <= 1e-1:
            raise ValueError(
                f"charge_error_fraction must be in [1e-6, 1e-1], got {self.charge_error_fraction}")
        if not 1e-6 <= self.voltage_tolerance <= 1e-1:
            raise ValueError(
                f"voltage_tolerance must be in [1e-6, 1e-1], got {self.voltage_tolerance}")
        if not 1000 <= self.max_iterations <= 1e6:
            raise ValueError(
                f"max_iterations must be in [1000, 1e6], got {self.max_iterations}")
        if not self.seed >= 0:
            raise ValueError(f"seed must be >= 0, got {self.seed}")
        if not self.delay_coefficient >= 0:
            raise ValueError(f"delay_coefficient must be >= 0, got {self.delay_coefficient}")
        if not self.stack_capacity >= 1:
            raise ValueError(f"stack_capacity must be >= 1, got {self.stack_capacity}")

    @property
    def coercive_voltage(self) -> float:
        """Coercive voltage Vc = Ec × t_fe (V)."""
        return self.coercive_field * self.thickness

    @property
    def charge_tolerance(self) -> float:
        """Absolute charge tolerance for the Newton solver (C/m²)."""
        return self.saturation_polarization * self.charge_error_fraction

    @property
    def linear_capacitance(self) -> float:
        """Background dielectric capacitance per area εr·ε0/t (F/m²)."""
        return self.relative_permittivity * EPS0 / self.thickness

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return asdict(self)

    def save(self, filepath: str):
        """Save parameters to JSON file."""
        with open(filepath, 'w') as f:
            json.dump(self.to_dict(), f, indent=2)


def load_parameters(filepath: str) -> ModelParameters:
    """Load and validate parameters from a JSON file written by ModelParameters.save()."""
    with open(filepath, 'r') as f:
        params = json.load(f)
    return ModelParameters(**params)


@dataclass
class SimulationConfig:
    """
    Sweep and study settings.

    DEFAULT VALUES give a smooth loop in a few seconds.
    """
    # Voltage sweep
    V_max: float = 5.0                # Sweep amplitude (V)
    n_per_segment: int = 200          # Points per monotonic segment

    # Charge sweep / convergence study
    n_charge_points: int = 101        # Target charges over ±1.5·Ps
    charge_span: float = 1.5          # Span in units of Ps
    seeds: List[int] = field(default_factory=lambda: list(range(10)))

    # Parallel execution settings (for seed studies)
    enable_parallel: bool = True
    n_workers: Optional[int] = None   # None = auto-detect


# Preset configurations
def get_default_parameters() -> ModelParameters:
    """Default model parameters (no relaxation term)."""
    return ModelParameters()


def get_hzo_parameters() -> ModelParameters:
    """Reference 20 nm HZO-like capacitor used for the major loop study."""
    return ModelParameters(
        thickness=20e-9,
        coercive_field=65e6,
        relative_permittivity=20.0,
        saturation_polarization=0.25,
        slope_factor=1.0,
        delay_coefficient=0.09,
    )


def get_fast_simulation_config() -> SimulationConfig:
    """
    Coarse sweeps and few seeds for quick testing.
    """
    return SimulationConfig(
        V_max=5.0,
        n_per_segment=50,
        n_charge_points=31,
        seeds=list(range(4)),
        enable_parallel=False,
    )


def get_accurate_config() -> SimulationConfig:
    """
    Fine sweeps and a wide seed spread for final results.
    """
    return SimulationConfig(
        V_max=5.0,
        n_per_segment=1000,
        n_charge_points=301,
        seeds=list(range(50)),
        enable_parallel=True,
        n_workers=None,
    )


def summarize_parameters(params: ModelParameters) -> Dict[str, float]:
    """Human-scale view of the parameters (nm, MV/m, V)."""
    return {
        "t_fe_nm": params.thickness * 1e9,
        "Ec_MV_per_m": params.coercive_field * 1e-6,
        "Vc_V": params.coercive_voltage,
        "eps_r": params.relative_permittivity,
        "Ps_C_per_m2": params.saturation_polarization,
        "slope_factor": params.slope_factor,
        "delay_coefficient": params.delay_coefficient,
    }
