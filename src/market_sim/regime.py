"""Trend/strength/duration regime that biases synthetic price movement.

The regime is process-local mutable state. It is consumed once per candle
creation and once per candle update; each consumption decrements the
remaining duration and a fresh regime is drawn when it runs out.

Resampling distribution:
- 20%: UP, strength in [1, 3), duration in [5, 15) ticks
- 20%: DOWN, same distributions
- 60%: SIDEWAYS, strength in [0.1, 0.6), duration in [10, 30) ticks
"""

import math
from dataclasses import dataclass

from market_sim.exceptions import InvalidRegimeState
from market_sim.models import RegimeRecord, Trend
from market_sim.random_source import RandomSource

_UP_PROBABILITY = 0.2
_DOWN_PROBABILITY = 0.2


@dataclass
class Regime:
    """Current market regime. Zero-state is SIDEWAYS with nothing remaining."""

    trend: Trend = Trend.SIDEWAYS
    strength: float = 0.0
    duration: int = 0

    def resample(self, rng: RandomSource) -> None:
        """Draw a fresh trend, strength and duration."""
        r = rng.random()
        if r < _UP_PROBABILITY:
            self.trend = Trend.UP
        elif r < _UP_PROBABILITY + _DOWN_PROBABILITY:
            self.trend = Trend.DOWN
        else:
            self.trend = Trend.SIDEWAYS

        if self.trend is Trend.SIDEWAYS:
            self.strength = rng.uniform(0.1, 0.6)
            self.duration = rng.randrange(10, 30)
        else:
            self.strength = rng.uniform(1.0, 3.0)
            self.duration = rng.randrange(5, 15)

    def consume(self, rng: RandomSource) -> float:
        """Use the regime for one tick and return its signed pull on price.

        Resamples first when the duration is exhausted, then decrements it.
        """
        if self.duration <= 0:
            self.resample(rng)
        pull = int(self.trend) * self.strength
        self.duration = max(0, self.duration - 1)
        return pull

    def to_record(self) -> RegimeRecord:
        return RegimeRecord(
            trend=int(self.trend),
            strength=self.strength,
            duration=self.duration,
        )

    def snapshot(self) -> RegimeRecord:
        """Copy of the current state, for rolling back a failed tick."""
        return self.to_record()

    def restore(self, record: RegimeRecord) -> None:
        self.trend = Trend(record.trend)
        self.strength = record.strength
        self.duration = record.duration

    @classmethod
    def from_record(cls, record: RegimeRecord) -> "Regime":
        """Build a Regime from a persisted checkpoint.

        Raises:
            InvalidRegimeState: If the record holds an unknown trend, a
                non-finite or negative strength, or a negative duration.
        """
        try:
            trend = Trend(int(record.trend))
            strength = float(record.strength)
            duration = int(record.duration)
        except (TypeError, ValueError) as e:
            raise InvalidRegimeState(f"unreadable regime record: {record!r}") from e

        if not math.isfinite(strength) or strength < 0:
            raise InvalidRegimeState(f"invalid regime strength: {record.strength!r}")
        if duration < 0:
            raise InvalidRegimeState(f"negative regime duration: {record.duration!r}")
        return cls(trend=trend, strength=strength, duration=duration)
