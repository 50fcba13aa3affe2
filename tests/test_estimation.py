"""
Unit Tests -- Estimation Driver, Configuration and Figures
===========================================================
Tests the derivative-free optimizer driver, likelihood profiles,
configuration validation, logging helpers and figure generation.
"""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

import logging
import math

import numpy as np
import pytest

from npsml.config import EstimationConfig, OptimizerConfig, RunConfig, SimulationConfig
from npsml.estimation import EstimationResult, estimate, likelihood_profile
from npsml.models.likelihood import RandomContext, SimulatedLikelihood
from npsml.models.parameters import ModelParameters, ObservedSeries, PARAMETER_NAMES
from npsml.models.simulator import PathSimulator
from npsml.utils import format_parameters, get_logger, timeit


DT = 1 / 252
N_OBS = 30


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------
@pytest.fixture(scope="module")
def truth():
    return ModelParameters(mu=0.05, alpha0=0.0, alpha1=0.5, alpha2=0.3, rho=-0.5)


@pytest.fixture(scope="module")
def observed(truth):
    return PathSimulator(seed=3).simulate(
        truth, dt=DT, n_obs=N_OBS, m_obs=10, p0=0.0, v0=math.log(0.04))


@pytest.fixture(scope="module")
def config():
    return EstimationConfig(dt=DT, n_obs=N_OBS, n_sim=100, m_sim=5)


@pytest.fixture(scope="module")
def guess(truth):
    return truth.replace(mu=0.0, alpha1=1.0, alpha2=0.4, rho=-0.2)


# ---------------------------------------------------------------------------
# Estimation Tests
# ---------------------------------------------------------------------------
class TestEstimate:

    def test_improves_on_initial_guess(self, observed, config, guess):
        context = RandomContext.from_config(config)
        start_value = SimulatedLikelihood(observed, config, context).evaluate(guess)
        result = estimate(observed, config, guess, OptimizerConfig(max_iter=150), context=context)
        assert isinstance(result, EstimationResult)
        assert np.isfinite(result.neg_log_likelihood)
        assert result.neg_log_likelihood <= start_value
        assert result.n_evaluations > 0

    def test_estimate_within_bounds(self, observed, config, guess):
        opt = OptimizerConfig(max_iter=100)
        result = estimate(observed, config, guess, opt)
        for name, (lo, hi) in opt.bounds.items():
            assert lo <= getattr(result.parameters, name) <= hi

    def test_restarts_recorded(self, observed, config, guess):
        opt = OptimizerConfig(max_iter=40, n_restarts=2)
        result = estimate(observed, config, guess, opt)
        assert len(result.restarts) == 3
        assert result.neg_log_likelihood == min(result.restarts)

    def test_deterministic(self, observed, config, guess):
        opt = OptimizerConfig(max_iter=60)
        a = estimate(observed, config, guess, opt)
        b = estimate(observed, config, guess, opt)
        np.testing.assert_array_equal(a.parameters.to_vector(), b.parameters.to_vector())

    def test_powell(self, observed, config, guess):
        result = estimate(observed, config, guess, OptimizerConfig(method="Powell", max_iter=3))
        assert np.isfinite(result.neg_log_likelihood)

    def test_all_degenerate_raises(self, observed, config, guess):
        price = observed.price.copy()
        price[1] = 1e6
        broken = ObservedSeries(price=price, volatility=observed.volatility, dt=DT)
        with pytest.raises(RuntimeError):
            estimate(broken, config, guess, OptimizerConfig(max_iter=20))

    def test_result_to_dict(self, observed, config, guess):
        result = estimate(observed, config, guess, OptimizerConfig(max_iter=10))
        d = result.to_dict()
        assert set(PARAMETER_NAMES) <= set(d)
        assert d["neg_log_likelihood"] == result.neg_log_likelihood


class TestLikelihoodProfile:

    def test_profile_passes_through_base(self, observed, config, truth):
        lik = SimulatedLikelihood(observed, config)
        values = likelihood_profile(lik, truth, "alpha2", [0.2, truth.alpha2, 0.4])
        assert values.shape == (3,)
        assert values[1] == lik.evaluate(truth)

    def test_invalid_rho_scores_sentinel(self, observed, config, truth):
        lik = SimulatedLikelihood(observed, config)
        values = likelihood_profile(lik, truth, "rho", [0.0, 1.0])
        assert values[1] == config.sentinel
        assert values[0] < config.sentinel

    def test_unknown_parameter(self, observed, config, truth):
        lik = SimulatedLikelihood(observed, config)
        with pytest.raises(ValueError):
            likelihood_profile(lik, truth, "sigma", [0.1])


# ---------------------------------------------------------------------------
# Configuration Tests
# ---------------------------------------------------------------------------
class TestConfig:

    def test_defaults_valid(self):
        cfg = RunConfig(simulation=SimulationConfig(n_obs=50),
                        estimation=EstimationConfig(n_obs=50))
        assert cfg.true_parameters.rho == -0.5
        assert cfg.estimation.delta == pytest.approx(cfg.estimation.dt / cfg.estimation.m_sim)

    def test_mismatched_n_obs(self):
        with pytest.raises(ValueError):
            RunConfig(simulation=SimulationConfig(n_obs=40),
                      estimation=EstimationConfig(n_obs=50))

    @pytest.mark.parametrize("kwargs", [{"dt": 0.0}, {"n_obs": 0}, {"m_obs": 0}, {"m_obs": 2.5}])
    def test_invalid_simulation_config(self, kwargs):
        with pytest.raises(ValueError):
            SimulationConfig(**kwargs)

    def test_non_finite_sentinel(self):
        with pytest.raises(ValueError):
            EstimationConfig(sentinel=np.inf)

    def test_optimizer_method(self):
        with pytest.raises(ValueError):
            OptimizerConfig(method="BFGS")

    def test_optimizer_bounds(self):
        with pytest.raises(ValueError):
            OptimizerConfig(bounds={"mu": (0.0, 1.0)})
        bounds = OptimizerConfig().bounds_list()
        assert len(bounds) == len(PARAMETER_NAMES)
        assert bounds[-1] == (-0.999, 0.999)


# ---------------------------------------------------------------------------
# Utility Tests
# ---------------------------------------------------------------------------
class TestUtils:

    def test_logger_handlers_not_duplicated(self, tmp_path):
        a = get_logger("npsml.test_utils", log_dir=str(tmp_path), level="DEBUG")
        b = get_logger("npsml.test_utils", log_dir=str(tmp_path), level="DEBUG")
        assert a is b
        assert len(a.handlers) == 2
        assert a.level == logging.DEBUG
        assert any(p.name.startswith("npsml_") for p in tmp_path.iterdir())
        for h in list(a.handlers):
            h.close()
            a.removeHandler(h)

    def test_timeit_returns_result(self):
        @timeit
        def add(x, y):
            return x + y
        assert add(2, 3) == 5
        assert add.__name__ == "add"

    def test_format_parameters(self):
        assert format_parameters([0.5, -1.0], ["mu", "rho"]) == "mu=+0.5000, rho=-1.0000"


# ---------------------------------------------------------------------------
# Figure Tests
# ---------------------------------------------------------------------------
class TestFigures:

    def test_figures_written(self, tmp_path, observed, config, truth):
        from npsml.visualization.estimation_plots import (
            plot_likelihood_profiles, plot_simulated_series, plot_transition_cloud)
        lik = SimulatedLikelihood(observed, config)
        files = [
            plot_simulated_series(observed, str(tmp_path)),
            plot_likelihood_profiles(lik, truth, truth, str(tmp_path), n_points=5),
            plot_transition_cloud(lik, truth, 5, str(tmp_path)),
        ]
        for f in files:
            assert os.path.isfile(f)
            assert os.path.getsize(f) > 0


if __name__ == "__main__":
    pytest.main([__file__, "-v", "--tb=short"])
