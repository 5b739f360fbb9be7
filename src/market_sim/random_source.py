"""Injectable randomness for the synthesizer, regime and gap repair.

Every random draw in the generator goes through a RandomSource so a test
can replace it with a scripted subclass and assert exact prices.
"""

import math
import random


class RandomSource:
    """Uniform and standard-normal draws over a private ``random.Random``."""

    def __init__(self, seed: int | None = None) -> None:
        self._random = random.Random(seed)

    def random(self) -> float:
        """Uniform draw in [0, 1)."""
        return self._random.random()

    def uniform(self, low: float, high: float) -> float:
        """Uniform draw in [low, high)."""
        return low + (high - low) * self.random()

    def randrange(self, start: int, stop: int) -> int:
        """Integer draw in [start, stop)."""
        return start + math.floor(self.random() * (stop - start))

    def chance(self, probability: float) -> bool:
        return self.random() < probability

    def normal(self) -> float:
        """Standard normal variate via the Box-Muller transform.

        Uniform draws of exactly 0 are discarded so log(u) stays finite.
        """
        u = 0.0
        while u == 0.0:
            u = self.random()
        v = 0.0
        while v == 0.0:
            v = self.random()
        return math.sqrt(-2.0 * math.log(u)) * math.cos(2.0 * math.pi * v)
