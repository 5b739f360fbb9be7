"""Shared test fixtures for the market simulator."""

import itertools
from collections.abc import Iterable

import pytest
import pytest_asyncio

from market_sim.config import GeneratorSettings
from market_sim.data.database import MarketDatabase
from market_sim.data.store import SQLiteCandleStore
from market_sim.models import Candle
from market_sim.random_source import RandomSource


class ScriptedRandom(RandomSource):
    """RandomSource whose uniform and normal draws cycle through fixed values."""

    def __init__(
        self,
        uniforms: Iterable[float] = (0.5,),
        normals: Iterable[float] = (0.0,),
    ) -> None:
        super().__init__(seed=0)
        self._uniforms = itertools.cycle(list(uniforms))
        self._normals = itertools.cycle(list(normals))

    def random(self) -> float:
        return next(self._uniforms)

    def normal(self) -> float:
        return next(self._normals)


class FakeClock:
    """Settable replacement for time.time."""

    def __init__(self, now: float = 0.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def scripted_rng() -> type[ScriptedRandom]:
    """Factory for scripted random sources."""
    return ScriptedRandom


@pytest.fixture
def clock() -> FakeClock:
    """Clock starting at t=0."""
    return FakeClock()


@pytest.fixture
def generator_settings() -> GeneratorSettings:
    """GeneratorSettings with 60s buckets and the default price band."""
    return GeneratorSettings(
        candle_interval=60,
        update_interval=10,
        checkpoint_interval=10,
        retention_cap=2000,
        random_seed=7,
    )


@pytest_asyncio.fixture
async def database():
    """Connected in-memory MarketDatabase."""
    async with MarketDatabase(":memory:") as db:
        yield db


@pytest_asyncio.fixture
async def store(database: MarketDatabase) -> SQLiteCandleStore:
    """SQLiteCandleStore over the in-memory database."""
    return SQLiteCandleStore(database)


def make_candle(time: int, close: float = 500.0, volume: float = 50.0) -> Candle:
    """Flat-ish candle around ``close``."""
    return Candle(
        time=time,
        open=close,
        high=round(close + 0.5, 2),
        low=round(close - 0.5, 2),
        close=close,
        volume=volume,
    )


@pytest.fixture
def candle_factory():
    """Factory for simple test candles."""
    return make_candle
