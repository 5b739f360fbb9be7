"""Candle synthesis: new-interval candles and intra-interval updates.

Prices follow a bounded random walk biased by the current Regime. Values
that leave the configured band are reflected back inside rather than
clipped, so the series does not pile up at the boundary.

All randomness comes from the injected RandomSource.
"""

import math
from dataclasses import dataclass

from market_sim.config import GeneratorSettings
from market_sim.models import Candle
from market_sim.random_source import RandomSource
from market_sim.regime import Regime


@dataclass(frozen=True)
class VolatilityProfile:
    """Numeric constants of the noise model.

    Sigmas scale standard-normal draws; ``*_trend_range`` bounds the uniform
    factor applied to the regime pull.
    """

    gap_probability: float
    gap_sigma: float
    open_trend_range: tuple[float, float]
    open_sigma: float
    wick_sigma: float
    close_sigma: float
    volume_sigma: float
    update_sigma: float
    update_trend_range: tuple[float, float]
    pump_probability: float
    pump_sigma: float
    update_wick_probability: float
    update_wick_sigma: float
    update_volume_sigma: float


VOLATILITY_PROFILES: dict[str, VolatilityProfile] = {
    # Rare small gaps, subtle trend, light wicks
    "calm": VolatilityProfile(
        gap_probability=0.002,
        gap_sigma=3.0,
        open_trend_range=(0.5, 1.0),
        open_sigma=0.7,
        wick_sigma=1.5,
        close_sigma=1.2,
        volume_sigma=5.0,
        update_sigma=0.7,
        update_trend_range=(0.2, 0.5),
        pump_probability=0.01,
        pump_sigma=8.0,
        update_wick_probability=0.1,
        update_wick_sigma=3.0,
        update_volume_sigma=3.0,
    ),
    # Frequent shocks and spiky wicks
    "wild": VolatilityProfile(
        gap_probability=0.05,
        gap_sigma=12.0,
        open_trend_range=(0.0, 2.0),
        open_sigma=1.0,
        wick_sigma=2.5,
        close_sigma=2.0,
        volume_sigma=8.0,
        update_sigma=1.0,
        update_trend_range=(0.3, 1.0),
        pump_probability=0.03,
        pump_sigma=10.0,
        update_wick_probability=0.2,
        update_wick_sigma=5.0,
        update_volume_sigma=5.0,
    ),
}

#: Volume never drops below this on a freshly created candle.
MIN_VOLUME = 1.0


def reflect(value: float, low: float, high: float) -> float:
    """Bound ``value`` to [low, high] by mirroring overshoot back into range.

    ``high + d`` maps to ``high - d`` and ``low - d`` to ``low + d``.
    Overshoots wider than the band keep bouncing until they land inside.
    """
    if low > high:
        raise ValueError(f"empty band [{low}, {high}]")
    if low == high:
        return low
    while value > high or value < low:
        if value > high:
            value = high - (value - high)
        else:
            value = low + (low - value)
    return value


def bucket_time(now: float, interval: int) -> int:
    """Truncate a Unix timestamp to the start of its interval bucket."""
    return int(now // interval) * interval


class CandleSynthesizer:
    """Produces candles from a prior close and the current regime.

    Args:
        settings: Generator settings (price band and seed price).
        rng: Randomness source shared with the rest of the generator.
        profile: Noise constants; defaults to settings.volatility_profile.
    """

    def __init__(
        self,
        settings: GeneratorSettings,
        rng: RandomSource,
        profile: VolatilityProfile | None = None,
    ) -> None:
        self._settings = settings
        self._rng = rng
        self._profile = profile or VOLATILITY_PROFILES[settings.volatility_profile]

    @property
    def profile(self) -> VolatilityProfile:
        return self._profile

    def _reflect(self, value: float) -> float:
        return reflect(value, self._settings.min_price, self._settings.max_price)

    def new_candle(self, last_close: float | None, regime: Regime, time: int) -> Candle:
        """Synthesize the opening state of a new interval.

        Consumes one regime tick. ``last_close`` of None starts from the
        configured seed price.
        """
        rng = self._rng
        p = self._profile

        base = last_close if last_close is not None else self._settings.seed_price
        if rng.chance(p.gap_probability):
            base += rng.normal() * p.gap_sigma
        base = self._reflect(base)

        pull = regime.consume(rng)
        open_ = base + pull * rng.uniform(*p.open_trend_range)
        open_ += rng.normal() * p.open_sigma
        open_ = round(self._reflect(open_), 2)

        high = open_ + abs(rng.normal() * p.wick_sigma)
        low = open_ - abs(rng.normal() * p.wick_sigma)
        close = open_ + rng.normal() * p.close_sigma

        high = round(max(open_, self._reflect(high)), 2)
        low = round(min(open_, self._reflect(low)), 2)
        close = round(max(low, min(high, close)), 2)

        raw_volume = (
            abs(close - open_) * 8
            + abs(high - low) * 2
            + rng.normal() * p.volume_sigma
            + 20
        )
        volume = float(math.floor(max(MIN_VOLUME, raw_volume)))

        return Candle(
            time=time,
            open=open_,
            high=high,
            low=low,
            close=close,
            volume=volume,
        )

    def update(self, current: Candle, regime: Regime) -> Candle:
        """Synthesize the next state of a still-open candle.

        Consumes one regime tick. Returns a new Candle for the same bucket;
        ``current`` is not modified. Volume never decreases.
        """
        rng = self._rng
        p = self._profile

        pull = regime.consume(rng)
        change = rng.normal() * p.update_sigma
        change += pull * rng.uniform(*p.update_trend_range)
        if rng.chance(p.pump_probability):
            change += rng.normal() * p.pump_sigma

        close = round(self._reflect(current.close + change), 2)

        wick_up = 0.0
        if rng.chance(p.update_wick_probability):
            wick_up = abs(rng.normal() * p.update_wick_sigma)
        wick_down = 0.0
        if rng.chance(p.update_wick_probability):
            wick_down = abs(rng.normal() * p.update_wick_sigma)

        extended_high = round(self._reflect(close + wick_up), 2)
        extended_low = round(self._reflect(close - wick_down), 2)
        high = max(current.high, close, extended_high)
        low = min(current.low, close, extended_low)

        boost = abs(change) * 8 + (high - low) * 2 + rng.normal() * p.update_volume_sigma
        volume = current.volume + max(0, math.floor(boost))

        return Candle(
            time=current.time,
            open=current.open,
            high=high,
            low=low,
            close=close,
            volume=float(volume),
        )
