"""
Model Parameters and Observed Series
=====================================

Stochastic volatility model with mean-reverting log-variance:

    dp = (mu - 0.5 * exp(v)) * dt + exp(v / 2) * dW_p
    dv = (alpha0 - alpha1 * v) * dt + alpha2 * dW_v
    corr(dW_p, dW_v) = rho

p is the log-price and v the log-variance. alpha1 is the speed of mean
reversion of v and should be positive for a stationary variance, but it
is left to the optimizer to discover unstable regions through the
likelihood value.
"""

import numpy as np
from dataclasses import dataclass
from typing import Sequence

PARAMETER_NAMES = ("mu", "alpha0", "alpha1", "alpha2", "rho")


@dataclass(frozen=True)
class ModelParameters:
    """
    Container for the SV model parameters.

    Attributes:
        mu: Drift of the log-price
        alpha0: Intercept of the log-variance drift
        alpha1: Mean-reversion speed of the log-variance
        alpha2: Volatility of the log-variance
        rho: Correlation between price and variance shocks, in (-1, 1)

    Example:
        >>> params = ModelParameters(mu=0.05, alpha0=0.0, alpha1=0.5,
        ...                          alpha2=0.3, rho=-0.5)
    """
    mu: float
    alpha0: float
    alpha1: float
    alpha2: float
    rho: float

    def __post_init__(self):
        """Validate input parameters after initialization."""
        for name in PARAMETER_NAMES:
            if not np.isfinite(getattr(self, name)):
                raise ValueError(f"{name} must be finite, got {getattr(self, name)}")
        if not -1.0 < self.rho < 1.0:
            raise ValueError(f"rho must lie in (-1, 1), got {self.rho}")

    @classmethod
    def from_vector(cls, x: Sequence[float]) -> "ModelParameters":
        """Build from a vector ordered (mu, alpha0, alpha1, alpha2, rho)."""
        x = np.asarray(x, dtype=float)
        if x.shape != (len(PARAMETER_NAMES),):
            raise ValueError(
                f"expected a parameter vector of length {len(PARAMETER_NAMES)}, "
                f"got shape {x.shape}")
        return cls(*(float(v) for v in x))

    def to_vector(self) -> np.ndarray:
        return np.array([getattr(self, name) for name in PARAMETER_NAMES])

    def replace(self, **changes) -> "ModelParameters":
        """Copy with some fields changed (re-validated)."""
        values = {name: getattr(self, name) for name in PARAMETER_NAMES}
        values.update(changes)
        return ModelParameters(**values)

    @property
    def stationary_mean(self) -> float:
        """Long-run mean of the log-variance, alpha0 / alpha1."""
        return self.alpha0 / self.alpha1 if self.alpha1 != 0 else np.nan


@dataclass(frozen=True)
class ObservedSeries:
    """
    Discretely observed (log-price, log-variance) path.

    Index 0 is the initial condition; consecutive entries are spaced by dt.
    The arrays are frozen so evaluators can share one series safely.
    """
    price: np.ndarray
    volatility: np.ndarray
    dt: float

    def __post_init__(self):
        price = np.array(self.price, dtype=float)
        volatility = np.array(self.volatility, dtype=float)
        if price.ndim != 1 or volatility.ndim != 1:
            raise ValueError("price and volatility must be one-dimensional")
        if price.shape != volatility.shape:
            raise ValueError(
                f"price and volatility lengths differ: {price.size} vs {volatility.size}")
        if self.dt <= 0:
            raise ValueError(f"dt must be positive, got {self.dt}")
        price.flags.writeable = False
        volatility.flags.writeable = False
        object.__setattr__(self, "price", price)
        object.__setattr__(self, "volatility", volatility)

    def __len__(self) -> int:
        return self.price.size

    @property
    def n_obs(self) -> int:
        return self.price.size

    @property
    def times(self) -> np.ndarray:
        return np.arange(self.n_obs) * self.dt
