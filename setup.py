from setuptools import setup, find_packages

setup(
    name="npsml-stochastic-volatility",
    version="1.0.0",
    description=(
        "Nonparametric simulated maximum likelihood estimation of a "
        "log-variance stochastic volatility model"
    ),
    packages=find_packages(where="src"),
    package_dir={"": "src"},
    python_requires=">=3.9",
    install_requires=[
        "numpy>=1.24.0",
        "scipy>=1.11.0",
        "matplotlib>=3.7.0",
    ],
    extras_require={
        "dev": ["pytest>=7.4.0"],
    },
    keywords=[
        "stochastic-volatility", "simulated-maximum-likelihood",
        "kernel-density", "monte-carlo", "euler-maruyama",
    ],
)
