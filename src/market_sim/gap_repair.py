"""Backfill of candle buckets missed while the generator was down.

Runs at the start of every creation tick. Missed buckets are filled in
chronological order with a lightweight random walk: each backfilled
close seeds the next bucket, so the repaired stretch reads as one
continuous series rather than independent noise. The walk is confined
to the tighter backfill band.

Backfill writes are best-effort. A bucket that already exists (another
writer got there first) is skipped and the walk carries on.
"""

from market_sim.config import GeneratorSettings
from market_sim.data.gateway import CandleGateway
from market_sim.exceptions import DuplicateCandleError
from market_sim.logging import get_logger
from market_sim.models import Candle
from market_sim.random_source import RandomSource
from market_sim.synthesizer import reflect

logger = get_logger(__name__)


def missed_buckets(last_time: int, bucket: int, interval: int) -> list[int]:
    """Bucket times strictly between ``last_time`` and ``bucket``.

    Empty unless the gap spans at least two intervals. The final bucket
    itself is left to the normal creation path.
    """
    gap = bucket - last_time
    if gap < 2 * interval:
        return []
    missed = gap // interval
    return [last_time + i * interval for i in range(1, missed)]


def backfill_candle(
    previous_close: float,
    time: int,
    rng: RandomSource,
    low_bound: float,
    high_bound: float,
) -> Candle:
    """One lower-fidelity candle stepping from ``previous_close``."""
    open_ = round(reflect(previous_close + rng.uniform(-1.0, 1.0), low_bound, high_bound), 2)
    high = round(max(open_, reflect(open_ + rng.uniform(0.0, 2.0), low_bound, high_bound)), 2)
    low = round(min(open_, reflect(open_ - rng.uniform(0.0, 2.0), low_bound, high_bound)), 2)
    close = open_ + rng.uniform(-1.0, 1.0)
    close = round(max(low, min(high, close)), 2)
    volume = float(rng.randrange(10, 60))
    return Candle(time=time, open=open_, high=high, low=low, close=close, volume=volume)


class GapRepairer:
    """Detects and backfills missed buckets before a new candle is created.

    Args:
        store: Persistence gateway.
        settings: Generator settings (interval and backfill band).
        rng: Randomness source shared with the generator.
    """

    def __init__(
        self,
        store: CandleGateway,
        settings: GeneratorSettings,
        rng: RandomSource,
    ) -> None:
        self._store = store
        self._settings = settings
        self._rng = rng

    async def repair(self, last: Candle | None, bucket: int) -> list[Candle]:
        """Backfill every bucket missed since ``last``.

        Returns the synthesized candles in chronological order, including
        any whose bucket turned out to be filled already.
        """
        if last is None:
            return []

        times = missed_buckets(last.time, bucket, self._settings.candle_interval)
        if not times:
            return []

        logger.info(
            "gap_detected",
            last_time=last.time,
            bucket=bucket,
            missed=len(times),
        )

        filled: list[Candle] = []
        previous_close = last.close
        skipped = 0
        for fill_time in times:
            candle = backfill_candle(
                previous_close,
                fill_time,
                self._rng,
                self._settings.backfill_min_price,
                self._settings.backfill_max_price,
            )
            try:
                await self._store.save_candle(candle)
            except DuplicateCandleError:
                skipped += 1
                logger.debug("backfill_bucket_exists", time=fill_time)
            filled.append(candle)
            previous_close = candle.close

        logger.info("gap_repaired", inserted=len(filled) - skipped, skipped=skipped)
        return filled

