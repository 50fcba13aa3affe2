"""
config.py
---------
Centralised configuration for simulation and NPSML estimation.
Sizing knobs can be overridden from environment variables so the same
script runs as a quick smoke test or a full estimation.
"""

import os
from dataclasses import dataclass, field
from typing import Dict, Optional, Tuple

import numpy as np

from npsml.models.kernel import bandwidth_fraction
from npsml.models.parameters import ModelParameters, PARAMETER_NAMES


def _require_positive_int(name: str, value) -> None:
    if isinstance(value, bool) or int(value) != value or value < 1:
        raise ValueError(f"{name} must be a positive integer, got {value}")


def _require_positive(name: str, value: float) -> None:
    if not np.isfinite(value) or value <= 0:
        raise ValueError(f"{name} must be positive, got {value}")


@dataclass
class SimulationConfig:
    """
    Sizing of the synthetic observed series.

    Attributes:
        dt: Time between observations in years
        n_obs: Number of observations, including the initial condition
        m_obs: Euler sub-steps per observation interval
        p0: Initial log-price
        v0: Initial log-variance
        seed: Seed of the default random source
    """
    dt: float = 1.0 / 252
    n_obs: int = int(os.getenv("NPSML_N_OBS", "50"))
    m_obs: int = 10
    p0: float = 0.0
    v0: float = float(np.log(0.04))
    seed: int = int(os.getenv("NPSML_SEED", "42"))

    def __post_init__(self):
        _require_positive("dt", self.dt)
        _require_positive_int("n_obs", self.n_obs)
        _require_positive_int("m_obs", self.m_obs)


@dataclass
class EstimationConfig:
    """
    Sizing of the simulated likelihood.

    Attributes:
        dt: Time between observations in years
        n_obs: Length of the observed series the likelihood is built for
        n_sim: Monte Carlo sub-paths per transition
        m_sim: Euler sub-steps per transition
        under_smooth: Undersmoothing exponent of the bandwidth rule
        sentinel: Objective value returned for degenerate parameter regions
        n_workers: Threads used to evaluate observation steps
        seed: Seed of the common random numbers
    """
    dt: float = 1.0 / 252
    n_obs: int = int(os.getenv("NPSML_N_OBS", "50"))
    n_sim: int = int(os.getenv("NPSML_N_SIM", "500"))
    m_sim: int = int(os.getenv("NPSML_M_SIM", "10"))
    under_smooth: float = 0.5
    sentinel: float = float(np.finfo(float).max)
    n_workers: int = int(os.getenv("NPSML_WORKERS", "1"))
    seed: int = 1234

    def __post_init__(self):
        _require_positive("dt", self.dt)
        _require_positive_int("n_obs", self.n_obs)
        _require_positive_int("n_sim", self.n_sim)
        _require_positive_int("m_sim", self.m_sim)
        _require_positive_int("n_workers", self.n_workers)
        if self.under_smooth < 0:
            raise ValueError(f"under_smooth must be non-negative, got {self.under_smooth}")
        if not np.isfinite(self.sentinel):
            raise ValueError("sentinel must be a finite number")

    @property
    def delta(self) -> float:
        """Euler sub-step size dt / m_sim."""
        return self.dt / self.m_sim

    @property
    def h_frac(self) -> float:
        """Bandwidth fraction shared by both kernel dimensions."""
        return bandwidth_fraction(self.n_obs, under_smooth=self.under_smooth)


def _default_bounds() -> Dict[str, Tuple[float, float]]:
    return {
        "mu":     (-2.0, 2.0),
        "alpha0": (-5.0, 5.0),
        "alpha1": (1e-4, 20.0),
        "alpha2": (1e-3, 5.0),
        "rho":    (-0.999, 0.999),
    }


@dataclass
class OptimizerConfig:
    """Derivative-free optimizer settings (scipy.optimize.minimize)."""
    method: str = "Nelder-Mead"         # Nelder-Mead | Powell
    max_iter: int = 2000
    xatol: float = 1e-6
    fatol: float = 1e-6
    n_restarts: int = 0
    restart_scale: float = 0.1          # relative perturbation of the initial guess
    seed: int = 7
    bounds: Dict[str, Tuple[float, float]] = field(default_factory=_default_bounds)

    def __post_init__(self):
        if self.method not in ("Nelder-Mead", "Powell"):
            raise ValueError(f"method must be 'Nelder-Mead' or 'Powell', got {self.method!r}")
        _require_positive_int("max_iter", self.max_iter)
        if self.n_restarts < 0:
            raise ValueError(f"n_restarts must be non-negative, got {self.n_restarts}")
        missing = set(PARAMETER_NAMES) - set(self.bounds)
        if missing:
            raise ValueError(f"bounds missing for {sorted(missing)}")
        for name, (lo, hi) in self.bounds.items():
            if lo >= hi:
                raise ValueError(f"empty bounds for {name}: ({lo}, {hi})")

    def bounds_list(self):
        """Bounds in parameter-vector order."""
        return [self.bounds[name] for name in PARAMETER_NAMES]


@dataclass
class RunConfig:
    """Master configuration of an estimation run."""
    simulation:     SimulationConfig = field(default_factory=SimulationConfig)
    estimation:     EstimationConfig = field(default_factory=EstimationConfig)
    optimizer:      OptimizerConfig  = field(default_factory=OptimizerConfig)

    true_parameters: ModelParameters = field(default_factory=lambda: ModelParameters(
        mu=0.05, alpha0=0.0, alpha1=0.5, alpha2=0.3, rho=-0.5))
    initial_guess:  Optional[ModelParameters] = None

    output_dir:     str = os.getenv(
        "NPSML_OUTPUT_DIR", os.path.join(os.path.dirname(__file__), "..", "..", "outputs"))
    log_level:      str = os.getenv("LOG_LEVEL", "INFO")

    def __post_init__(self):
        if self.estimation.n_obs != self.simulation.n_obs:
            raise ValueError(
                f"estimation.n_obs ({self.estimation.n_obs}) must match "
                f"simulation.n_obs ({self.simulation.n_obs})")
        if self.estimation.dt != self.simulation.dt:
            raise ValueError("estimation.dt must match simulation.dt")
