"""Injectable randomness for the generator.

Every generator function takes the random source as an argument instead
of reaching for module-level state, so a seeded ``random.Random`` makes a
whole backfill reproducible.
"""

import random
from typing import Protocol, runtime_checkable


@runtime_checkable
class RandomSource(Protocol):
    """Uniform random generator. ``random.Random`` satisfies this protocol."""

    def random(self) -> float:
        """Return a float in [0.0, 1.0)."""
        ...

    def randrange(self, start: int, stop: int) -> int:
        """Return an int in [start, stop)."""
        ...


def create_random_source(seed: int | None = None) -> RandomSource:
    """Create a random source, seeded when ``seed`` is given."""
    return random.Random(seed)


def uniform(rng: RandomSource, low: float, high: float) -> float:
    """Draw a float from [low, high)."""
    return low + rng.random() * (high - low)


def centered(rng: RandomSource, amplitude: float) -> float:
    """Draw a float from [-amplitude/2, amplitude/2)."""
    return (rng.random() - 0.5) * amplitude
