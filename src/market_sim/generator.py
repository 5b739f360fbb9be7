"""Market generator -- owns the regime and the live candle handle.

One MarketGenerator is one independent synthetic market. It holds the
state shared between the periodic tasks:

- the Regime, consumed by every creation and update tick
- the current-candle handle, replaced by the creation tick and mutated
  in place by the update tick

Creation and update ticks run under a single asyncio.Lock because each
reads the handle, awaits the store, then writes the handle back. A tick
that fails leaves both the regime and the handle as they were before it
started.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Callable

from market_sim.config import GeneratorSettings
from market_sim.data.gateway import CandleGateway
from market_sim.exceptions import DuplicateCandleError, InvalidRegimeState
from market_sim.gap_repair import GapRepairer
from market_sim.logging import get_logger
from market_sim.models import Candle
from market_sim.random_source import RandomSource
from market_sim.regime import Regime
from market_sim.retention import RetentionEnforcer
from market_sim.synthesizer import CandleSynthesizer, VolatilityProfile, bucket_time

logger = get_logger(__name__)


class MarketGenerator:
    """Stateful candle generator for a single synthetic instrument.

    Args:
        store: Persistence gateway for candles and the regime checkpoint.
        settings: Generator settings.
        rng: Randomness source; defaults to one seeded from settings.random_seed.
        clock: Returns the current Unix time in seconds.
        profile: Noise constants; defaults to settings.volatility_profile.
    """

    def __init__(
        self,
        store: CandleGateway,
        settings: GeneratorSettings,
        rng: RandomSource | None = None,
        clock: Callable[[], float] = time.time,
        profile: VolatilityProfile | None = None,
    ) -> None:
        self._store = store
        self._settings = settings
        self._rng = rng or RandomSource(settings.random_seed)
        self._clock = clock
        self._synthesizer = CandleSynthesizer(settings, self._rng, profile)
        self._gap_repairer = GapRepairer(store, settings, self._rng)
        self._retention = RetentionEnforcer(store, settings.retention_cap)
        self._regime = Regime()
        self._current: Candle | None = None
        self._lock = asyncio.Lock()

    @property
    def regime(self) -> Regime:
        return self._regime

    @property
    def current_candle(self) -> Candle | None:
        return self._current

    def current_bucket(self) -> int:
        return bucket_time(self._clock(), self._settings.candle_interval)

    def seconds_until_next_bucket(self) -> float:
        """Time left until the current bucket closes, by the injected clock."""
        interval = self._settings.candle_interval
        return interval - (self._clock() % interval)

    # ──────────────────────────────────────────────
    # Regime checkpoint
    # ──────────────────────────────────────────────

    async def load_state(self) -> None:
        """Restore the regime from its checkpoint.

        A missing or unreadable checkpoint is replaced by the zero-state,
        which is persisted immediately.
        """
        record = await self._store.load_regime_state()
        if record is not None:
            try:
                self._regime = Regime.from_record(record)
                logger.info(
                    "regime_state_loaded",
                    trend=self._regime.trend.name,
                    strength=round(self._regime.strength, 3),
                    duration=self._regime.duration,
                )
                return
            except InvalidRegimeState as e:
                logger.warning("regime_state_invalid", error=str(e))

        self._regime = Regime()
        await self._store.upsert_regime_state(self._regime.to_record())
        logger.info("regime_state_initialized")

    async def checkpoint(self) -> None:
        """Persist the current regime (upsert)."""
        record = self._regime.to_record()
        await self._store.upsert_regime_state(record)
        logger.debug(
            "regime_checkpointed",
            trend=record.trend,
            duration=record.duration,
        )

    # ──────────────────────────────────────────────
    # Candle ticks
    # ──────────────────────────────────────────────

    async def create_candle(self) -> Candle:
        """Open the candle for the current bucket.

        Backfills missed buckets first, then saves the new candle and
        makes it the current handle. If the bucket already has a candle
        (another writer, or a restart inside the interval) the stored one
        is adopted instead. Retention runs after a successful save.
        """
        async with self._lock:
            bucket = self.current_bucket()
            snapshot = self._regime.snapshot()
            try:
                last = await self._store.find_latest_candle()
                backfilled = await self._gap_repairer.repair(last, bucket)
                if backfilled:
                    last_close: float | None = backfilled[-1].close
                else:
                    last_close = last.close if last is not None else None

                candle = self._synthesizer.new_candle(last_close, self._regime, bucket)
                try:
                    await self._store.save_candle(candle)
                except DuplicateCandleError:
                    existing = await self._store.find_candle_by_time(bucket)
                    if existing is None:
                        raise
                    self._current = existing
                    logger.info("candle_exists_adopted", time=bucket, close=existing.close)
                    return existing
            except Exception:
                self._regime.restore(snapshot)
                raise

            self._current = candle
            logger.info(
                "candle_created",
                time=candle.time,
                open=candle.open,
                close=candle.close,
                trend=self._regime.trend.name,
            )

        await self._retention.enforce()
        return candle

    async def update_candle(self) -> Candle | None:
        """Advance the live candle by one update step.

        No-op (returns None) when there is no current candle or when its
        interval has already closed.
        """
        async with self._lock:
            current = self._current
            if current is None:
                return None
            if current.time != self.current_bucket():
                logger.debug("current_candle_closed", time=current.time)
                return None

            snapshot = self._regime.snapshot()
            try:
                updated = self._synthesizer.update(current, self._regime)
                stored = await self._store.update_candle_fields(
                    current.time, updated.live_fields()
                )
            except Exception:
                self._regime.restore(snapshot)
                raise

            if stored is None:
                logger.warning("current_candle_missing", time=current.time)
                self._current = None
                return None

            current.apply(stored.live_fields())
            logger.debug(
                "candle_updated",
                time=current.time,
                close=current.close,
                volume=current.volume,
            )
            return current

    def status(self) -> dict:
        """Regime and live-candle summary for the read API."""
        current = self._current
        return {
            "regime": {
                "trend": self._regime.trend.name.lower(),
                "strength": round(self._regime.strength, 4),
                "duration": self._regime.duration,
            },
            "current_candle": current.to_dict() if current is not None else None,
            "candle_interval": self._settings.candle_interval,
            "update_interval": self._settings.update_interval,
            "retention_cap": self._settings.retention_cap,
            "price_band": [self._settings.min_price, self._settings.max_price],
        }
