"""
NPSML Estimation Driver
========================

Minimizes the simulated negative log-likelihood with a derivative-free
optimizer (scipy.optimize.minimize, Nelder-Mead or Powell, with bounds).

Random restarts perturb the initial guess and share the same random
context, so every start optimizes the same deterministic objective; each
start gets its own workspaces.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

import numpy as np
from scipy.optimize import minimize

from npsml.config import EstimationConfig, OptimizerConfig
from npsml.models.likelihood import RandomContext, SimulatedLikelihood
from npsml.models.parameters import ModelParameters, ObservedSeries, PARAMETER_NAMES
from npsml.utils import format_parameters, timeit

logger = logging.getLogger(__name__)


@dataclass
class EstimationResult:
    """
    Attributes:
        parameters: Best parameters found
        neg_log_likelihood: Objective value at parameters
        n_evaluations: Objective calls over all starts
        converged: Optimizer success flag of the best start
        message: Optimizer message of the best start
        restarts: Final objective value of every start, in order
    """
    parameters: ModelParameters
    neg_log_likelihood: float
    n_evaluations: int
    converged: bool
    message: str
    restarts: List[float] = field(default_factory=list)

    def to_dict(self) -> Dict:
        out = {name: getattr(self.parameters, name) for name in PARAMETER_NAMES}
        out.update({
            "neg_log_likelihood": self.neg_log_likelihood,
            "n_evaluations": self.n_evaluations,
            "converged": self.converged,
        })
        return out


def _starting_points(x0: np.ndarray, opt: OptimizerConfig) -> List[np.ndarray]:
    bounds = np.array(opt.bounds_list())
    lo, hi = bounds[:, 0], bounds[:, 1]
    starts = [np.clip(x0, lo, hi)]
    rng = np.random.default_rng(opt.seed)
    for _ in range(opt.n_restarts):
        scale = opt.restart_scale * np.maximum(np.abs(x0), 0.1)
        starts.append(np.clip(x0 + scale * rng.standard_normal(x0.size), lo, hi))
    return starts


@timeit
def estimate(observed: ObservedSeries, config: EstimationConfig,
             initial_guess: ModelParameters,
             optimizer: Optional[OptimizerConfig] = None,
             context: Optional[RandomContext] = None) -> EstimationResult:
    """
    Nonparametric simulated maximum likelihood estimate.

    Parameters
    ----------
    observed : ObservedSeries
        Observed (log-price, log-variance) path.
    config : EstimationConfig
        Likelihood sizing (n_sim, m_sim, ...).
    initial_guess : ModelParameters
        Starting point of the first optimizer run.
    optimizer : OptimizerConfig, optional
        Method, tolerances, bounds and restarts.
    context : RandomContext, optional
        Common random numbers; drawn from config.seed when omitted.

    Returns
    -------
    EstimationResult
    """
    opt = optimizer if optimizer is not None else OptimizerConfig()
    base = SimulatedLikelihood(observed, config, context)
    x0 = initial_guess.to_vector()

    options = {"maxiter": opt.max_iter}
    if opt.method == "Nelder-Mead":
        options.update({"xatol": opt.xatol, "fatol": opt.fatol})
    else:
        options.update({"xtol": opt.xatol, "ftol": opt.fatol})

    best, best_value, restarts, n_evals = None, np.inf, [], 0
    for k, start in enumerate(_starting_points(x0, opt)):
        likelihood = base if k == 0 else base.fork()
        logger.info("Start %d/%d from %s", k + 1, opt.n_restarts + 1,
                    format_parameters(start, PARAMETER_NAMES))
        res = minimize(likelihood.objective, start, method=opt.method,
                       bounds=opt.bounds_list(), options=options)
        n_evals += likelihood.n_evaluations
        restarts.append(float(res.fun))
        logger.info("Start %d: -logL=%.4f after %d evaluations (%d degenerate), %s",
                    k + 1, res.fun, likelihood.n_evaluations,
                    likelihood.n_degenerate, res.message)
        if res.fun < best_value:
            best, best_value = res, float(res.fun)

    if best_value >= config.sentinel:
        raise RuntimeError("every optimizer start ended in a degenerate parameter region")
    if not best.success:
        logger.warning("Optimizer did not report convergence: %s", best.message)

    params = ModelParameters.from_vector(best.x)
    logger.info("Estimate: %s (-logL=%.4f)",
                format_parameters(params.to_vector(), PARAMETER_NAMES), best_value)
    return EstimationResult(
        parameters=params,
        neg_log_likelihood=best_value,
        n_evaluations=n_evals,
        converged=bool(best.success),
        message=str(best.message),
        restarts=restarts,
    )


def likelihood_profile(likelihood: SimulatedLikelihood, base: ModelParameters,
                       name: str, grid: Sequence[float]) -> np.ndarray:
    """
    Objective along one parameter with the others fixed at base.

    Grid points that make the parameters invalid (e.g. |rho| >= 1) score
    the sentinel.
    """
    if name not in PARAMETER_NAMES:
        raise ValueError(f"unknown parameter {name!r}; expected one of {PARAMETER_NAMES}")
    idx = PARAMETER_NAMES.index(name)
    x = base.to_vector()
    values = np.empty(len(grid))
    for k, g in enumerate(grid):
        x[idx] = g
        values[k] = likelihood.objective(x)
    return values
