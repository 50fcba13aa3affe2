"""
Path Simulator
===============

Euler-Maruyama simulation of one observed (log-price, log-variance) path.
Each observation interval dt is split into m_obs sub-steps of size
delta = dt / m_obs; per sub-step:

    W_v = z_v
    W_p = sqrt(1 - rho^2) * z_p + rho * z_v
    p  += (mu - 0.5 * exp(v)) * delta + exp(v / 2) * W_p * sqrt(delta)
    v  += (alpha0 - alpha1 * v) * delta + alpha2 * W_v * sqrt(delta)

The price update uses the variance from the start of the sub-step.
Normals are drawn z_v first, then z_p.
"""

import logging

import numpy as np

from npsml.models.parameters import ModelParameters, ObservedSeries
from npsml.models.random_source import RandomSource, make_random_source

logger = logging.getLogger(__name__)


def correlate(z_indep: np.ndarray, w_v: np.ndarray, rho: float) -> np.ndarray:
    """Cholesky construction of the price shock correlated with w_v."""
    return np.sqrt(1.0 - rho * rho) * z_indep + rho * w_v


def euler_step(price, volatility, w_p, w_v, params: ModelParameters,
               delta: float, sqrt_delta: float):
    """One Euler sub-step; works on scalars and on arrays of sub-paths."""
    new_price = (price + (params.mu - 0.5 * np.exp(volatility)) * delta
                 + np.exp(0.5 * volatility) * w_p * sqrt_delta)
    new_volatility = (volatility + (params.alpha0 - params.alpha1 * volatility) * delta
                      + params.alpha2 * w_v * sqrt_delta)
    return new_price, new_volatility


def simulate(parameters: ModelParameters, dt: float, n_obs: int, m_obs: int,
             p0: float, v0: float, random_source: RandomSource = None) -> ObservedSeries:
    """
    Simulate a synthetic observed series under the SV model.

    Parameters
    ----------
    parameters : ModelParameters
        True model parameters.
    dt : float
        Time between observations (years).
    n_obs : int
        Number of observations, index 0 being (p0, v0).
    m_obs : int
        Euler sub-steps per observation interval.
    p0, v0 : float
        Initial log-price and log-variance.
    random_source : RandomSource, optional
        Source of standard normals; defaults to a fixed-seed numpy source.

    Returns
    -------
    ObservedSeries
        Path of length n_obs.
    """
    if dt <= 0:
        raise ValueError(f"dt must be positive, got {dt}")
    if n_obs < 1:
        raise ValueError(f"n_obs must be at least 1, got {n_obs}")
    if m_obs < 1:
        raise ValueError(f"m_obs must be at least 1, got {m_obs}")

    source = make_random_source(random_source)
    delta = dt / m_obs
    sqrt_delta = np.sqrt(delta)
    rho = parameters.rho

    price = np.zeros(n_obs)
    volatility = np.zeros(n_obs)
    price[0] = p0
    volatility[0] = v0

    for i in range(1, n_obs):
        p, v = price[i - 1], volatility[i - 1]
        # (m_obs, 2) block: column 0 is z_v, column 1 is z_p
        Z = np.asarray(source.standard_normal((m_obs, 2)))
        for j in range(m_obs):
            w_v = Z[j, 0]
            w_p = correlate(Z[j, 1], w_v, rho)
            p, v = euler_step(p, v, w_p, w_v, parameters, delta, sqrt_delta)
        price[i] = p
        volatility[i] = v

    logger.debug("Simulated %d observations (%d sub-steps each), final p=%.4f v=%.4f",
                 n_obs, m_obs, price[-1], volatility[-1])
    return ObservedSeries(price=price, volatility=volatility, dt=dt)


class PathSimulator:
    """
    Convenience wrapper binding a random source to the simulator.

    Usage:
        >>> sim = PathSimulator(seed=42)
        >>> series = sim.simulate(params, dt=1/252, n_obs=50, m_obs=10,
        ...                       p0=0.0, v0=np.log(0.04))
    """

    def __init__(self, seed=None):
        self.random_source = make_random_source(seed)

    def simulate(self, parameters: ModelParameters, dt: float, n_obs: int,
                 m_obs: int, p0: float, v0: float) -> ObservedSeries:
        return simulate(parameters, dt, n_obs, m_obs, p0, v0,
                        random_source=self.random_source)

    @classmethod
    def from_config(cls, config) -> "PathSimulator":
        """Build from a SimulationConfig (uses its seed)."""
        return cls(seed=config.seed)
