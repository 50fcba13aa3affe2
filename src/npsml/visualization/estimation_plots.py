"""
Visualizations for NPSML estimation.

Figures generated:
    01_simulated_series.png     - Observed log-price and log-variance paths
    02_likelihood_profiles.png  - Objective along each parameter, truth and estimate marked
    03_transition_cloud.png     - Simulated cloud and kernel density for one transition
"""
import os
import matplotlib
matplotlib.use("Agg")
import matplotlib.pyplot as plt
import numpy as np

from npsml.estimation import likelihood_profile
from npsml.models.kernel import gaussian_kernel, sample_std
from npsml.models.likelihood import correlate_increments
from npsml.models.parameters import PARAMETER_NAMES
from npsml.models.simulator import euler_step

NAVY = "#1a1a2e"; TEAL = "#16697a"; CORAL = "#db6400"
GOLD = "#c5a880"; SLATE = "#4a4e69"
COLORS = [NAVY, TEAL, CORAL, GOLD, SLATE, "#2d6a4f", "#e07a5f"]

plt.rcParams.update({
    "figure.facecolor": "white", "axes.facecolor": "white",
    "axes.grid": True, "grid.alpha": 0.3, "grid.linestyle": "--",
    "savefig.facecolor": "white",
})


def _sv(fig, out_dir, name):
    fig_dir = os.path.join(out_dir, "figures")
    os.makedirs(fig_dir, exist_ok=True)
    path = os.path.join(fig_dir, name)
    fig.savefig(path, dpi=120, bbox_inches="tight"); plt.close(fig); return path


def plot_simulated_series(observed, out_dir):
    fig, (ax1, ax2) = plt.subplots(2, 1, figsize=(11, 7), sharex=True)
    t = observed.times
    ax1.plot(t, observed.price, color=NAVY, lw=1.5, marker="o", ms=3)
    ax1.set_ylabel("Log-price p")
    ax1.set_title("Observed Log-Price")
    ax2.plot(t, observed.volatility, color=CORAL, lw=1.5, marker="o", ms=3)
    ax2.plot(t, np.exp(0.5 * observed.volatility), color=TEAL, lw=1, ls="--",
             label=r"$\sqrt{e^{v}}$ (instantaneous vol)")
    ax2.set_xlabel("Time (years)"); ax2.set_ylabel("Log-variance v")
    ax2.set_title("Observed Log-Variance")
    ax2.legend(fontsize=8)
    fig.tight_layout()
    return _sv(fig, out_dir, "01_simulated_series.png")


def plot_likelihood_profiles(likelihood, truth, estimate, out_dir,
                             n_points: int = 25, width: float = 0.5):
    """
    One panel per parameter: objective on a grid of +/- width * max(|truth|, 0.2)
    around the truth, others held at the truth. Sentinel values are masked.
    """
    fig, axes = plt.subplots(1, len(PARAMETER_NAMES), figsize=(4 * len(PARAMETER_NAMES), 4))
    for ax, name, color in zip(axes, PARAMETER_NAMES, COLORS):
        center = getattr(truth, name)
        half = width * max(abs(center), 0.2)
        grid = np.linspace(center - half, center + half, n_points)
        if name == "rho":
            grid = np.clip(grid, -0.99, 0.99)
        values = likelihood_profile(likelihood, truth, name, grid)
        values = np.where(values >= likelihood.sentinel, np.nan, values)
        ax.plot(grid, values, color=color, lw=2)
        ax.axvline(center, color="black", ls="--", lw=1, label="True")
        if estimate is not None:
            ax.axvline(getattr(estimate, name), color=CORAL, ls=":", lw=1.5, label="Estimate")
        ax.set_xlabel(name); ax.set_title(f"Profile: {name}")
    axes[0].set_ylabel("-log L (simulated)")
    axes[0].legend(fontsize=8)
    fig.tight_layout()
    return _sv(fig, out_dir, "02_likelihood_profiles.png")


def plot_transition_cloud(likelihood, parameters, index, out_dir):
    """Simulated cloud for transition index-1 -> index with the observed target."""
    observed, ctx, cfg = likelihood.observed, likelihood.context, likelihood.config
    w_p = correlate_increments(ctx, parameters.rho).reshape(cfg.n_sim, cfg.m_sim)
    w_v = ctx.volatility_draws.reshape(cfg.n_sim, cfg.m_sim)
    p = np.full(cfg.n_sim, observed.price[index - 1])
    v = np.full(cfg.n_sim, observed.volatility[index - 1])
    for k in range(cfg.m_sim):
        p, v = euler_step(p, v, w_p[:, k], w_v[:, k], parameters, cfg.delta, np.sqrt(cfg.delta))

    h_p = cfg.h_frac * sample_std(p)
    fig, (ax1, ax2) = plt.subplots(1, 2, figsize=(14, 6))
    ax1.scatter(p, v, s=6, alpha=0.4, color=TEAL, label="Simulated")
    ax1.scatter([observed.price[index]], [observed.volatility[index]], s=80,
                color=CORAL, marker="*", label="Observed")
    ax1.set_xlabel("p"); ax1.set_ylabel("v")
    ax1.set_title(f"Transition {index - 1} -> {index}")
    ax1.legend()

    x = np.linspace(p.min(), p.max(), 200)
    dens = np.mean(gaussian_kernel(x[:, None] - p[None, :], h_p), axis=1)
    ax2.hist(p, bins=40, density=True, alpha=0.5, color=TEAL, edgecolor="white")
    ax2.plot(x, dens, color=NAVY, lw=2, label=f"KDE (h={h_p:.2e})")
    ax2.axvline(observed.price[index], color=CORAL, ls="--", lw=2, label="Observed")
    ax2.set_xlabel("p"); ax2.set_title("Marginal Price Density")
    ax2.legend()
    fig.tight_layout()
    return _sv(fig, out_dir, "03_transition_cloud.png")
