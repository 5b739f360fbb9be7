"""Tests for MarketGenerator.

Tests verify:
- Creation persists a candle for the current bucket and makes it current
- Gap repair + retention scenario with cap=5
- Duplicate creation for the same bucket adopts the stored candle
- Update ticks mutate the live handle in place and persist it
- Failed ticks leave the regime and the handle untouched
- Regime checkpoint load/initialize/save
"""

from unittest.mock import AsyncMock

import pytest

from market_sim.config import GeneratorSettings
from market_sim.data.store import SQLiteCandleStore
from market_sim.generator import MarketGenerator
from market_sim.models import Candle, RegimeRecord, Trend
from market_sim.random_source import RandomSource
from market_sim.regime import Regime


@pytest.fixture
def small_cap_settings() -> GeneratorSettings:
    """60s buckets with a retention cap of 5."""
    return GeneratorSettings(
        candle_interval=60,
        update_interval=10,
        checkpoint_interval=10,
        retention_cap=5,
        random_seed=21,
    )


@pytest.fixture
def generator(
    store: SQLiteCandleStore, generator_settings: GeneratorSettings, clock
) -> MarketGenerator:
    return MarketGenerator(store, generator_settings, rng=RandomSource(seed=8), clock=clock)


class TestCreateCandle:
    @pytest.mark.asyncio
    async def test_first_candle_uses_current_bucket(
        self, generator: MarketGenerator, store: SQLiteCandleStore, clock
    ) -> None:
        clock.now = 1000.0

        candle = await generator.create_candle()

        assert candle.time == 960
        assert generator.current_candle is candle
        assert await store.find_candle_by_time(960) == candle

    @pytest.mark.asyncio
    async def test_continues_from_last_close(
        self,
        store: SQLiteCandleStore,
        generator_settings: GeneratorSettings,
        clock,
        scripted_rng,
        candle_factory,
    ) -> None:
        """Zero noise and a sideways regime open the next candle at the last close."""
        await store.save_candle(candle_factory(0, close=512.34))
        clock.now = 60.0
        generator = MarketGenerator(store, generator_settings, rng=scripted_rng(), clock=clock)

        candle = await generator.create_candle()

        assert candle.time == 60
        assert candle.open == 512.34

    @pytest.mark.asyncio
    async def test_gap_repair_and_retention_scenario(
        self,
        store: SQLiteCandleStore,
        small_cap_settings: GeneratorSettings,
        clock,
        candle_factory,
    ) -> None:
        """Seed 0/60/120, create 180, then create 420 after downtime.

        The second tick backfills 240, 300 and 360, creates 420 and trims
        the store to the 5 most recent candles.
        """
        for t, close in ((0, 500.0), (60, 501.0), (120, 499.0)):
            await store.save_candle(candle_factory(t, close=close))
        generator = MarketGenerator(
            store, small_cap_settings, rng=RandomSource(seed=3), clock=clock
        )

        clock.now = 180.0
        await generator.create_candle()
        assert await store.count_candles() == 4
        assert await store.find_candle_by_time(0) is not None

        clock.now = 420.0
        created = await generator.create_candle()

        remaining = await store.find_recent_candles(100)
        assert [c.time for c in remaining] == [180, 240, 300, 360, 420]
        assert await store.count_candles() == 5
        assert remaining[-1] == created
        assert generator.current_candle is created
        # backfilled walk continues from the t=180 close
        assert abs(remaining[1].open - remaining[0].close) <= 1.0 + 1e-9

    @pytest.mark.asyncio
    async def test_count_never_exceeds_cap(
        self, store: SQLiteCandleStore, small_cap_settings: GeneratorSettings, clock
    ) -> None:
        generator = MarketGenerator(
            store, small_cap_settings, rng=RandomSource(seed=4), clock=clock
        )
        for i in range(12):
            clock.now = float(i * 60)
            await generator.create_candle()
            assert await store.count_candles() <= small_cap_settings.retention_cap

        remaining = await store.find_recent_candles(100)
        assert [c.time for c in remaining] == [420, 480, 540, 600, 660]

    @pytest.mark.asyncio
    async def test_duplicate_creation_adopts_existing(
        self, store: SQLiteCandleStore, generator_settings: GeneratorSettings, clock
    ) -> None:
        """Two generators on one store create a single candle per bucket."""
        clock.now = 600.0
        first = MarketGenerator(store, generator_settings, rng=RandomSource(seed=1), clock=clock)
        second = MarketGenerator(store, generator_settings, rng=RandomSource(seed=2), clock=clock)

        created = await first.create_candle()
        adopted = await second.create_candle()

        assert await store.count_candles() == 1
        assert adopted == created
        assert second.current_candle == await store.find_candle_by_time(600)

    @pytest.mark.asyncio
    async def test_repeat_in_same_bucket_adopts(
        self, generator: MarketGenerator, store: SQLiteCandleStore, clock
    ) -> None:
        clock.now = 600.0
        created = await generator.create_candle()
        clock.now = 630.0

        again = await generator.create_candle()

        assert again == created
        assert await store.count_candles() == 1

    @pytest.mark.asyncio
    async def test_failed_save_leaves_state_untouched(
        self, store: SQLiteCandleStore, generator_settings: GeneratorSettings, clock
    ) -> None:
        """A store outage aborts the tick without touching the regime or handle."""
        clock.now = 600.0
        generator = MarketGenerator(store, generator_settings, rng=RandomSource(seed=5), clock=clock)
        previous = await generator.create_candle()
        regime_before = generator.regime.snapshot()

        clock.now = 660.0
        store.save_candle = AsyncMock(side_effect=RuntimeError("disk I/O error"))  # type: ignore[method-assign]
        with pytest.raises(RuntimeError):
            await generator.create_candle()

        assert generator.regime.snapshot() == regime_before
        assert generator.current_candle is previous


class TestUpdateCandle:
    @pytest.mark.asyncio
    async def test_no_current_candle_is_noop(
        self, generator: MarketGenerator, store: SQLiteCandleStore
    ) -> None:
        assert await generator.update_candle() is None
        assert await store.count_candles() == 0

    @pytest.mark.asyncio
    async def test_update_mutates_handle_and_persists(
        self, generator: MarketGenerator, store: SQLiteCandleStore, clock
    ) -> None:
        clock.now = 600.0
        current = await generator.create_candle()
        volume_before = current.volume

        for offset in (10, 20, 30, 40, 50):
            clock.now = 600.0 + offset
            updated = await generator.update_candle()
            assert updated is current
            assert current.low <= min(current.open, current.close)
            assert current.high >= max(current.open, current.close)

        assert current.volume >= volume_before
        assert await store.find_candle_by_time(600) == current

    @pytest.mark.asyncio
    async def test_zero_noise_update_stays_in_range(
        self,
        store: SQLiteCandleStore,
        generator_settings: GeneratorSettings,
        clock,
        scripted_rng,
    ) -> None:
        current = Candle(time=0, open=500.0, high=500.5, low=499.5, close=500.0, volume=10.0)
        await store.save_candle(current)
        clock.now = 0.0
        generator = MarketGenerator(store, generator_settings, rng=scripted_rng(), clock=clock)
        await generator.create_candle()  # adopts the stored candle

        updated = await generator.update_candle()

        assert updated is not None
        assert updated.close == 500.0
        assert updated.low <= updated.close <= updated.high
        assert generator_settings.min_price <= updated.low
        assert updated.high <= generator_settings.max_price

    @pytest.mark.asyncio
    async def test_closed_interval_is_not_updated(
        self, generator: MarketGenerator, store: SQLiteCandleStore, clock
    ) -> None:
        clock.now = 600.0
        created = await generator.create_candle()
        snapshot = Candle(**created.to_dict())

        clock.now = 660.0
        assert await generator.update_candle() is None
        assert await store.find_candle_by_time(600) == snapshot

    @pytest.mark.asyncio
    async def test_vanished_candle_drops_handle(
        self, generator: MarketGenerator, store: SQLiteCandleStore, clock
    ) -> None:
        clock.now = 600.0
        await generator.create_candle()
        await store.delete_all_candles()

        assert await generator.update_candle() is None
        assert generator.current_candle is None

    @pytest.mark.asyncio
    async def test_failed_update_leaves_state_untouched(
        self, generator: MarketGenerator, store: SQLiteCandleStore, clock
    ) -> None:
        clock.now = 600.0
        current = await generator.create_candle()
        before = Candle(**current.to_dict())
        regime_before = generator.regime.snapshot()

        store.update_candle_fields = AsyncMock(side_effect=RuntimeError("database is locked"))  # type: ignore[method-assign]
        clock.now = 610.0
        with pytest.raises(RuntimeError):
            await generator.update_candle()

        assert generator.current_candle == before
        assert generator.regime.snapshot() == regime_before


class TestBucketTiming:
    def test_seconds_until_next_bucket(self, generator: MarketGenerator, clock) -> None:
        clock.now = 650.0
        assert generator.seconds_until_next_bucket() == 10.0

    def test_on_boundary_waits_full_interval(self, generator: MarketGenerator, clock) -> None:
        clock.now = 660.0
        assert generator.seconds_until_next_bucket() == 60.0
        assert generator.current_bucket() == 660

class TestRegimeCheckpoint:
    @pytest.mark.asyncio
    async def test_missing_state_initialized_and_persisted(
        self, generator: MarketGenerator, store: SQLiteCandleStore
    ) -> None:
        await generator.load_state()

        assert generator.regime == Regime()
        assert await store.load_regime_state() == RegimeRecord(
            trend=0, strength=0.0, duration=0
        )

    @pytest.mark.asyncio
    async def test_existing_state_loaded(
        self, generator: MarketGenerator, store: SQLiteCandleStore
    ) -> None:
        await store.upsert_regime_state(RegimeRecord(trend=-1, strength=2.2, duration=6))

        await generator.load_state()

        assert generator.regime == Regime(trend=Trend.DOWN, strength=2.2, duration=6)

    @pytest.mark.asyncio
    async def test_malformed_state_reset(
        self, generator: MarketGenerator, store: SQLiteCandleStore
    ) -> None:
        """An unreadable checkpoint is replaced by the zero-state, not fatal."""
        await store.upsert_regime_state(RegimeRecord(trend=7, strength=1.0, duration=3))

        await generator.load_state()

        assert generator.regime == Regime()
        assert await store.load_regime_state() == RegimeRecord(
            trend=0, strength=0.0, duration=0
        )

    @pytest.mark.asyncio
    async def test_checkpoint_saves_current_regime(
        self, generator: MarketGenerator, store: SQLiteCandleStore, clock
    ) -> None:
        await generator.load_state()
        clock.now = 600.0
        await generator.create_candle()

        await generator.checkpoint()

        assert await store.load_regime_state() == generator.regime.to_record()

    @pytest.mark.asyncio
    async def test_status_shape(self, generator: MarketGenerator) -> None:
        status = generator.status()
        assert status["regime"] == {"trend": "sideways", "strength": 0.0, "duration": 0}
        assert status["current_candle"] is None
        assert status["price_band"] == [475.0, 525.0]
