"""
SV Model Components
===================
Parameters, random sources, kernel helpers and the path simulator.
The simulated likelihood lives in npsml.models.likelihood.
"""

from npsml.models.parameters import ModelParameters, ObservedSeries
from npsml.models.random_source import (
    RandomSource, NumpyRandomSource, DeterministicRandomSource, FixedSeed, EntropySeed)
from npsml.models.simulator import PathSimulator, simulate

__all__ = ["ModelParameters", "ObservedSeries", "RandomSource", "NumpyRandomSource",
           "DeterministicRandomSource", "FixedSeed", "EntropySeed", "PathSimulator",
           "simulate"]
