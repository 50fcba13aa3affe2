"""
Nonparametric Simulated Maximum Likelihood for Stochastic Volatility
=====================================================================

Estimation of a log-price / log-variance diffusion pair by simulating
short forward paths from every observed state and scoring the next
observation with a Gaussian kernel density of the simulated cloud.

Modules:
    config             - Simulation, likelihood and optimizer settings
    models.parameters  - Model parameters and observed series
    models.simulator   - Euler-Maruyama path simulator
    models.likelihood  - Common random numbers and the simulated likelihood
    estimation         - Derivative-free optimizer driver and profiles
"""

from npsml.config import EstimationConfig, OptimizerConfig, RunConfig, SimulationConfig
from npsml.models.parameters import ModelParameters, ObservedSeries
from npsml.models.simulator import PathSimulator, simulate
from npsml.models.likelihood import (
    RandomContext, SimulationWorkspace, SimulatedLikelihood, evaluate)
from npsml.estimation import EstimationResult, estimate, likelihood_profile

__version__ = "1.0.0"
