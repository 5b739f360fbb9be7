"""Seed the store with a synthetic price history.

Writes ``count`` consecutive candles ending at the bucket before the
current one, using the same random walk as gap repair. The generator's
first creation tick then continues from the last seeded close.

Usage:
    market-sim-seed --count 2000 --replace
"""

import argparse
import asyncio
import time

from market_sim.config import AppSettings, GeneratorSettings
from market_sim.data.database import MarketDatabase
from market_sim.data.gateway import CandleGateway
from market_sim.data.store import SQLiteCandleStore
from market_sim.gap_repair import backfill_candle
from market_sim.logging import get_logger, setup_logging
from market_sim.models import Candle
from market_sim.random_source import RandomSource
from market_sim.synthesizer import bucket_time

logger = get_logger(__name__)


def build_history(
    settings: GeneratorSettings,
    count: int,
    end_bucket: int,
    rng: RandomSource,
    start_price: float | None = None,
) -> list[Candle]:
    """Generate ``count`` chained candles whose last bucket is ``end_bucket``."""
    interval = settings.candle_interval
    first = end_bucket - (count - 1) * interval
    close = start_price if start_price is not None else settings.seed_price
    candles = []
    for i in range(count):
        candle = backfill_candle(
            close,
            first + i * interval,
            rng,
            settings.backfill_min_price,
            settings.backfill_max_price,
        )
        candles.append(candle)
        close = candle.close
    return candles


async def seed_store(
    store: CandleGateway,
    settings: GeneratorSettings,
    count: int,
    replace: bool = False,
    now: float | None = None,
    rng: RandomSource | None = None,
) -> int:
    """Seed ``store`` with history. Returns the number of candles inserted.

    With ``replace`` the existing candles are deleted first; otherwise
    buckets that already exist are left untouched.
    """
    if count <= 0:
        return 0
    rng = rng or RandomSource(settings.random_seed)
    now = time.time() if now is None else now
    end_bucket = bucket_time(now, settings.candle_interval) - settings.candle_interval

    if replace:
        deleted = await store.delete_all_candles()
        logger.info("candles_cleared", deleted=deleted)

    candles = build_history(settings, count, end_bucket, rng)
    inserted = await store.insert_candles(candles)
    logger.info(
        "history_seeded",
        requested=count,
        inserted=inserted,
        first_time=candles[0].time,
        last_time=candles[-1].time,
    )
    return inserted


async def _run(count: int, replace: bool) -> None:
    settings = AppSettings()
    setup_logging(settings.log_level)
    async with MarketDatabase(settings.storage.db_path) as database:
        store = SQLiteCandleStore(database)
        await seed_store(store, settings.generator, count, replace=replace)


def main() -> None:
    parser = argparse.ArgumentParser(description="Seed synthetic candle history")
    parser.add_argument("--count", type=int, default=2000, help="Number of candles to write")
    parser.add_argument(
        "--replace",
        action="store_true",
        help="Delete existing candles before seeding",
    )
    args = parser.parse_args()
    asyncio.run(_run(args.count, args.replace))


if __name__ == "__main__":
    main()
