"""
Kernel density helpers for the simulated likelihood.

Bandwidth rule (Silverman-type, undersmoothed):

    h_frac = (4 / (d + 2))^(1 / (d + 4)) * n^(-(1 + u) / (d + 4))

with d the kernel dimension and u the undersmoothing exponent. Each
dimension then uses h = h_frac * sample standard deviation of the cloud.
"""

import numpy as np

SQRT_2PI = np.sqrt(2.0 * np.pi)
KERNEL_DIM = 1
UNDER_SMOOTH = 0.5


def bandwidth_fraction(n: int, dim: int = KERNEL_DIM,
                       under_smooth: float = UNDER_SMOOTH) -> float:
    """Scale-free bandwidth factor for a sample size n."""
    if n < 1:
        raise ValueError(f"n must be positive, got {n}")
    return ((4.0 / (dim + 2.0)) ** (1.0 / (dim + 4.0))
            * float(n) ** (-(1.0 + under_smooth) / (dim + 4.0)))


def sample_std(x: np.ndarray) -> float:
    """Sample standard deviation (n - 1 denominator); nan for n < 2."""
    x = np.asarray(x)
    if x.size < 2:
        return np.nan
    return float(np.std(x, ddof=1))


def gaussian_kernel(u: np.ndarray, h: float) -> np.ndarray:
    """K_h(u) = exp(-u^2 / (2 h^2)) / (h * sqrt(2 pi))."""
    return np.exp(-(u * u) / (2.0 * h * h)) / (h * SQRT_2PI)


def product_kernel_density(x_cloud: np.ndarray, y_cloud: np.ndarray,
                           x: float, y: float, h_x: float, h_y: float) -> float:
    """
    Bivariate density at (x, y) from a simulated cloud.

    Product of two univariate Gaussian kernels, averaged over the cloud.
    The two coordinates are smoothed independently of each other.
    """
    k = gaussian_kernel(x_cloud - x, h_x) * gaussian_kernel(y_cloud - y, h_y)
    return float(np.mean(k))
