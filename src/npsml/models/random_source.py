"""
Pluggable Random Sources
=========================

Simulators draw their standard normals through a small RandomSource
interface instead of owning a generator, so the engine and its seeding
policy are chosen by configuration:

    - NumpyRandomSource: numpy Generator over any bit generator
      (PCG64 by default, MT19937 to mirror a Mersenne-Twister setup)
    - DeterministicRandomSource: replays a fixed stream, for tests

Seed policies decide where the seed comes from:

    - FixedSeed: always the same seed (default, reproducible runs)
    - EntropySeed: fresh OS entropy on every seeding
"""

import numpy as np
from abc import ABC, abstractmethod
from typing import Optional, Sequence, Union

DEFAULT_SEED = 42


class SeedPolicy(ABC):
    """Produces the integer seed used by a random source."""

    @abstractmethod
    def __call__(self) -> int:
        pass


class FixedSeed(SeedPolicy):
    def __init__(self, value: int = DEFAULT_SEED):
        self.value = int(value)

    def __call__(self) -> int:
        return self.value

    def __repr__(self):
        return f"FixedSeed({self.value})"


class EntropySeed(SeedPolicy):
    def __call__(self) -> int:
        return int(np.random.SeedSequence().entropy)

    def __repr__(self):
        return "EntropySeed()"


class RandomSource(ABC):
    """Capability interface: seed() and standard_normal()."""

    @abstractmethod
    def seed(self, value: Optional[int] = None) -> None:
        """Reset the stream; None defers to the source's seed policy."""
        pass

    @abstractmethod
    def standard_normal(self, size: Union[int, tuple, None] = None):
        """Next standard normal draw(s), in stream order."""
        pass


class NumpyRandomSource(RandomSource):
    """
    numpy Generator-backed source.

    Parameters
    ----------
    seed_policy : SeedPolicy or int
        Seed policy, or an integer shorthand for FixedSeed(value).
    bit_generator : type
        numpy BitGenerator class, e.g. np.random.PCG64 or np.random.MT19937.
    """

    def __init__(self, seed_policy: Union[SeedPolicy, int, None] = None,
                 bit_generator=np.random.PCG64):
        if seed_policy is None:
            seed_policy = FixedSeed()
        elif not isinstance(seed_policy, SeedPolicy):
            seed_policy = FixedSeed(seed_policy)
        self.seed_policy = seed_policy
        self.bit_generator = bit_generator
        self._rng = None
        self.seed()

    def seed(self, value: Optional[int] = None) -> None:
        if value is None:
            value = self.seed_policy()
        self._rng = np.random.Generator(self.bit_generator(value))

    def standard_normal(self, size=None):
        return self._rng.standard_normal(size)


class DeterministicRandomSource(RandomSource):
    """
    Replays a fixed sequence of "normal" draws in order.

    Raises RuntimeError when the stream is exhausted unless cycle=True.
    seed() rewinds to the start of the stream.
    """

    def __init__(self, values: Sequence[float], cycle: bool = False):
        self.values = np.asarray(values, dtype=float).ravel()
        if self.values.size == 0:
            raise ValueError("values must not be empty")
        self.cycle = cycle
        self._pos = 0

    def seed(self, value: Optional[int] = None) -> None:
        self._pos = 0

    def standard_normal(self, size=None):
        n = 1 if size is None else int(np.prod(size))
        if self.cycle:
            idx = (self._pos + np.arange(n)) % self.values.size
        else:
            if self._pos + n > self.values.size:
                raise RuntimeError(
                    f"deterministic stream exhausted: requested {n} draws, "
                    f"{self.values.size - self._pos} left")
            idx = self._pos + np.arange(n)
        self._pos += n
        out = self.values[idx]
        if size is None:
            return float(out[0])
        return out.reshape(size)


def make_random_source(seed: Union[int, SeedPolicy, RandomSource, None] = None) -> RandomSource:
    """Coerce a seed, seed policy or ready-made source into a RandomSource."""
    if isinstance(seed, RandomSource):
        return seed
    return NumpyRandomSource(seed)
