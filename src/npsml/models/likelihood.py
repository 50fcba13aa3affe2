"""
Nonparametric Simulated Likelihood
===================================

For a candidate parameter vector, the transition density of each observed
step (p[i-1], v[i-1]) -> (p[i], v[i]) is approximated by:

    1. simulating n_sim forward sub-paths from (p[i-1], v[i-1]) with m_sim
       Euler sub-steps each,
    2. smoothing the terminal cloud with a Gaussian product kernel whose
       bandwidths are h_frac times the cloud's standard deviations,
    3. evaluating that kernel density at (p[i], v[i]).

The objective is minus the summed log-densities.

The underlying normals (RandomContext) are drawn once and reused on every
evaluation (common random numbers); only their correlation with rho is
recombined per call. This keeps the objective a smooth deterministic
function of the parameters, which derivative-free optimizers rely on.

Degenerate regions (collapsed bandwidth, observation outside the cloud's
support, overflowing paths) make the log-likelihood non-finite; the
evaluator then returns a large finite sentinel instead.

References:
    Kristensen, D. & Shin, Y. (2012). Estimation of dynamic models with
    nonparametric simulated maximum likelihood. Journal of Econometrics.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass

import numpy as np

from npsml.config import EstimationConfig
from npsml.models.kernel import bandwidth_fraction, product_kernel_density, sample_std
from npsml.models.parameters import ModelParameters, ObservedSeries, PARAMETER_NAMES
from npsml.models.random_source import RandomSource, make_random_source
from npsml.models.simulator import correlate, euler_step

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RandomContext:
    """
    Common random numbers for one optimization run.

    Attributes:
        independent_draws: Price shocks before correlation, length n_sim * m_sim
        volatility_draws: Variance shocks W_v, length n_sim * m_sim
        n_sim: Number of forward sub-paths
        m_sim: Euler sub-steps per sub-path

    Slot j * m_sim + k belongs to sub-path j, sub-step k. The same slots
    are reused for every observation transition.
    """
    independent_draws: np.ndarray
    volatility_draws: np.ndarray
    n_sim: int
    m_sim: int

    def __post_init__(self):
        if self.n_sim < 1 or self.m_sim < 1:
            raise ValueError(f"n_sim and m_sim must be positive, got {self.n_sim}, {self.m_sim}")
        size = self.n_sim * self.m_sim
        frozen = []
        for name in ("independent_draws", "volatility_draws"):
            arr = np.array(getattr(self, name), dtype=float).ravel()
            if arr.size != size:
                raise ValueError(f"{name} has {arr.size} draws, expected n_sim * m_sim = {size}")
            arr.flags.writeable = False
            frozen.append(arr)
        object.__setattr__(self, "independent_draws", frozen[0])
        object.__setattr__(self, "volatility_draws", frozen[1])

    @classmethod
    def generate(cls, n_sim: int, m_sim: int,
                 random_source: RandomSource = None) -> "RandomContext":
        """Draw both buffers from a random source (fixed seed by default)."""
        source = make_random_source(random_source)
        size = n_sim * m_sim
        independent = np.asarray(source.standard_normal(size), dtype=float)
        volatility = np.asarray(source.standard_normal(size), dtype=float)
        return cls(independent, volatility, n_sim, m_sim)

    @classmethod
    def from_config(cls, config: EstimationConfig,
                    random_source: RandomSource = None) -> "RandomContext":
        source = random_source if random_source is not None else config.seed
        return cls.generate(config.n_sim, config.m_sim, source)

    @property
    def size(self) -> int:
        return self.n_sim * self.m_sim


class SimulationWorkspace:
    """
    Scratch buffers owned by one evaluation path.

    simulated_price / simulated_volatility hold the current state of each
    sub-path; price_increments holds the rho-correlated price shocks.
    Buffers are overwritten in place on every evaluation.
    """

    def __init__(self, n_sim: int, m_sim: int):
        if n_sim < 1 or m_sim < 1:
            raise ValueError(f"n_sim and m_sim must be positive, got {n_sim}, {m_sim}")
        self.n_sim = n_sim
        self.m_sim = m_sim
        self.simulated_price = np.empty(n_sim)
        self.simulated_volatility = np.empty(n_sim)
        self.price_increments = np.empty(n_sim * m_sim)

    def check_compatible(self, context: RandomContext) -> None:
        if (self.n_sim, self.m_sim) != (context.n_sim, context.m_sim):
            raise ValueError(
                f"workspace sized for n_sim={self.n_sim}, m_sim={self.m_sim} "
                f"but context has n_sim={context.n_sim}, m_sim={context.m_sim}")


def correlate_increments(context: RandomContext, rho: float,
                         out: np.ndarray = None) -> np.ndarray:
    """
    W_p[t] = sqrt(1 - rho^2) * independent_draws[t] + rho * W_v[t].

    Written into out (typically workspace.price_increments) when given.
    """
    w_p = correlate(context.independent_draws, context.volatility_draws, rho)
    if out is None:
        return w_p
    out[:] = w_p
    return out


def _check_inputs(observed: ObservedSeries, context: RandomContext,
                  workspace: SimulationWorkspace, config: EstimationConfig) -> None:
    if (context.n_sim, context.m_sim) != (config.n_sim, config.m_sim):
        raise ValueError(
            f"context sized n_sim={context.n_sim}, m_sim={context.m_sim} "
            f"but config asks for n_sim={config.n_sim}, m_sim={config.m_sim}")
    workspace.check_compatible(context)
    if observed.n_obs != config.n_obs:
        raise ValueError(f"observed series has {observed.n_obs} points, config.n_obs={config.n_obs}")
    if not np.isclose(observed.dt, config.dt):
        raise ValueError(f"observed dt={observed.dt} differs from config dt={config.dt}")


def _transition_log_density(i: int, parameters: ModelParameters, observed: ObservedSeries,
                            context: RandomContext, workspace: SimulationWorkspace,
                            h_frac: float, delta: float, sqrt_delta: float) -> float:
    """log of the kernel density of observation i given observation i - 1."""
    n_sim, m_sim = workspace.n_sim, workspace.m_sim
    w_p = workspace.price_increments.reshape(n_sim, m_sim)
    w_v = context.volatility_draws.reshape(n_sim, m_sim)
    sim_p = workspace.simulated_price
    sim_v = workspace.simulated_volatility

    sim_p.fill(observed.price[i - 1])
    sim_v.fill(observed.volatility[i - 1])
    for k in range(m_sim):
        sim_p[:], sim_v[:] = euler_step(sim_p, sim_v, w_p[:, k], w_v[:, k],
                                        parameters, delta, sqrt_delta)

    h_price = h_frac * sample_std(sim_p)
    h_volatility = h_frac * sample_std(sim_v)

    density = product_kernel_density(sim_p, sim_v, observed.price[i],
                                     observed.volatility[i], h_price, h_volatility)
    return np.log(density)


def _accumulate(parameters: ModelParameters, observed: ObservedSeries,
                context: RandomContext, workspace: SimulationWorkspace,
                config: EstimationConfig, indices) -> float:
    """
    Sum of transition log-densities over the given observation indices.

    Stops at the first non-finite partial sum and returns it.
    Assumes workspace.price_increments is already correlated for rho.
    """
    h_frac = bandwidth_fraction(config.n_obs, under_smooth=config.under_smooth)
    delta = config.delta
    sqrt_delta = np.sqrt(delta)

    ll = 0.0
    with np.errstate(all="ignore"):
        for i in indices:
            ll += _transition_log_density(i, parameters, observed, context,
                                          workspace, h_frac, delta, sqrt_delta)
            if not np.isfinite(ll):
                logger.debug("Log-likelihood degenerate at observation %d (%s)", i, ll)
                return ll
    return ll


def evaluate(parameters: ModelParameters, observed: ObservedSeries,
             context: RandomContext, workspace: SimulationWorkspace,
             config: EstimationConfig) -> float:
    """
    Negative simulated log-likelihood (lower is better).

    Parameters
    ----------
    parameters : ModelParameters
        Candidate parameters.
    observed : ObservedSeries
        Observed path, read only.
    context : RandomContext
        Common random numbers, read only.
    workspace : SimulationWorkspace
        Scratch buffers, overwritten.
    config : EstimationConfig
        dt, n_obs, n_sim, m_sim, under_smooth and sentinel.

    Returns
    -------
    float
        -log-likelihood, or config.sentinel when it is not finite.
    """
    _check_inputs(observed, context, workspace, config)
    correlate_increments(context, parameters.rho, out=workspace.price_increments)
    ll = _accumulate(parameters, observed, context, workspace, config,
                     range(1, observed.n_obs))
    if not np.isfinite(ll):
        return config.sentinel
    return -ll


class SimulatedLikelihood:
    """
    Simulated likelihood bound to one observed series and random context.

    Owns one workspace per worker. With config.n_workers > 1 the
    observation steps are split into contiguous chunks, evaluated on a
    thread pool and reduced from per-chunk partial sums; the result is
    deterministic for a given worker count.

    Usage:
        >>> lik = SimulatedLikelihood(observed, EstimationConfig(n_obs=50))
        >>> lik.evaluate(params)          # ModelParameters -> float
        >>> lik.objective(x, grad)        # optimizer calling convention
    """

    def __init__(self, observed: ObservedSeries, config: EstimationConfig,
                 context: RandomContext = None):
        if observed.n_obs < 2:
            raise ValueError("observed series needs at least 2 points")
        self.observed = observed
        self.config = config
        self.context = context if context is not None else RandomContext.from_config(config)
        self.workspaces = [SimulationWorkspace(config.n_sim, config.m_sim)
                           for _ in range(config.n_workers)]
        _check_inputs(observed, self.context, self.workspaces[0], config)

        n_chunks = min(config.n_workers, observed.n_obs - 1)
        self._chunks = [c for c in np.array_split(np.arange(1, observed.n_obs), n_chunks)
                        if c.size]
        self.n_evaluations = 0
        self.n_degenerate = 0

    @property
    def sentinel(self) -> float:
        return self.config.sentinel

    def _partial(self, parameters: ModelParameters, chunk, workspace) -> float:
        correlate_increments(self.context, parameters.rho, out=workspace.price_increments)
        return _accumulate(parameters, self.observed, self.context, workspace,
                           self.config, chunk)

    def evaluate(self, parameters: ModelParameters) -> float:
        """Negative log-likelihood at parameters, or the sentinel."""
        self.n_evaluations += 1
        if len(self._chunks) == 1:
            value = evaluate(parameters, self.observed, self.context,
                             self.workspaces[0], self.config)
        else:
            with ThreadPoolExecutor(max_workers=len(self._chunks)) as ex:
                futures = [ex.submit(self._partial, parameters, chunk, ws)
                           for chunk, ws in zip(self._chunks, self.workspaces)]
                partials = [f.result() for f in futures]
            ll = float(np.sum(partials))
            value = -ll if np.isfinite(ll) else self.config.sentinel

        if value == self.config.sentinel:
            self.n_degenerate += 1
        return value

    def objective(self, x, grad=None) -> float:
        """
        Optimizer-facing objective f(x, grad).

        x is ordered (mu, alpha0, alpha1, alpha2, rho). grad is accepted
        for optimizers that pass a gradient slot and is never written.
        Vectors with |rho| >= 1 or non-finite entries score the sentinel.
        """
        x = np.asarray(x, dtype=float)
        if x.shape != (len(PARAMETER_NAMES),):
            raise ValueError(f"expected {len(PARAMETER_NAMES)} parameters, got shape {x.shape}")
        if not np.all(np.isfinite(x)) or not -1.0 < x[-1] < 1.0:
            self.n_evaluations += 1
            self.n_degenerate += 1
            return self.config.sentinel
        return self.evaluate(ModelParameters.from_vector(x))

    __call__ = objective

    def fork(self) -> "SimulatedLikelihood":
        """New evaluator sharing observed data and context, with fresh workspaces."""
        return SimulatedLikelihood(self.observed, self.config, self.context)
