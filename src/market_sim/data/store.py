"""Typed SQLite read/write implementation of the candle gateway.

All SQL is isolated behind SQLiteCandleStore. A unique-constraint
violation on candle time surfaces as DuplicateCandleError; every other
database error propagates unchanged so the calling tick can abort.
"""

import sqlite3
import time as _time

from market_sim.data.database import MarketDatabase
from market_sim.data.gateway import CandleGateway
from market_sim.exceptions import DuplicateCandleError
from market_sim.logging import get_logger
from market_sim.models import Candle, RegimeRecord

logger = get_logger(__name__)

_CANDLE_COLUMNS = "time, open, high, low, close, volume"
_UPDATABLE_FIELDS = ("open", "high", "low", "close", "volume")


def _row_to_candle(row) -> Candle:  # type: ignore[no-untyped-def]
    return Candle(
        time=row[0],
        open=row[1],
        high=row[2],
        low=row[3],
        close=row[4],
        volume=row[5],
    )


class SQLiteCandleStore(CandleGateway):
    """Async SQLite store for candles and the regime checkpoint.

    Usage:
        async with MarketDatabase("data/market.db") as database:
            store = SQLiteCandleStore(database)
            latest = await store.find_latest_candle()
    """

    def __init__(self, database: MarketDatabase) -> None:
        self._database = database

    # ──────────────────────────────────────────────
    # Candle writes
    # ──────────────────────────────────────────────

    async def save_candle(self, candle: Candle) -> None:
        try:
            await self._database.db.execute(
                f"INSERT INTO candles ({_CANDLE_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?)",
                (
                    candle.time,
                    candle.open,
                    candle.high,
                    candle.low,
                    candle.close,
                    candle.volume,
                ),
            )
        except sqlite3.IntegrityError as e:
            raise DuplicateCandleError(candle.time) from e
        await self._database.db.commit()

    async def insert_candles(self, candles: list[Candle]) -> int:
        """Insert candles, ignoring existing times via INSERT OR IGNORE.

        Returns the number of actually inserted rows.
        """
        if not candles:
            return 0

        cursor = await self._database.db.executemany(
            f"INSERT OR IGNORE INTO candles ({_CANDLE_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?)",
            [(c.time, c.open, c.high, c.low, c.close, c.volume) for c in candles],
        )
        await self._database.db.commit()

        inserted = cursor.rowcount
        logger.debug("inserted_candles", total=len(candles), inserted=inserted)
        return inserted

    async def update_candle_fields(self, time: int, fields: dict) -> Candle | None:
        unknown = set(fields) - set(_UPDATABLE_FIELDS)
        if unknown:
            raise ValueError(f"cannot update candle fields: {sorted(unknown)}")
        if not fields:
            return await self.find_candle_by_time(time)

        names = [name for name in _UPDATABLE_FIELDS if name in fields]
        assignments = ", ".join(f"{name} = ?" for name in names)
        params = [fields[name] for name in names]
        params.append(time)

        cursor = await self._database.db.execute(
            f"UPDATE candles SET {assignments} WHERE time = ?",
            params,
        )
        await self._database.db.commit()
        if cursor.rowcount == 0:
            return None
        return await self.find_candle_by_time(time)

    async def delete_candles_by_ids(self, ids: list[int]) -> None:
        if not ids:
            return
        placeholders = ", ".join("?" for _ in ids)
        await self._database.db.execute(
            f"DELETE FROM candles WHERE id IN ({placeholders})",
            list(ids),
        )
        await self._database.db.commit()

    async def delete_all_candles(self) -> int:
        cursor = await self._database.db.execute("DELETE FROM candles")
        await self._database.db.commit()
        return cursor.rowcount

    # ──────────────────────────────────────────────
    # Candle reads
    # ──────────────────────────────────────────────

    async def find_latest_candle(self) -> Candle | None:
        cursor = await self._database.db.execute(
            f"SELECT {_CANDLE_COLUMNS} FROM candles ORDER BY time DESC LIMIT 1"
        )
        row = await cursor.fetchone()
        return _row_to_candle(row) if row is not None else None

    async def find_candle_by_time(self, time: int) -> Candle | None:
        cursor = await self._database.db.execute(
            f"SELECT {_CANDLE_COLUMNS} FROM candles WHERE time = ?",
            (time,),
        )
        row = await cursor.fetchone()
        return _row_to_candle(row) if row is not None else None

    async def count_candles(self) -> int:
        cursor = await self._database.db.execute("SELECT COUNT(*) FROM candles")
        return (await cursor.fetchone())[0]

    async def find_oldest_candle_ids(self, limit: int) -> list[int]:
        if limit <= 0:
            return []
        cursor = await self._database.db.execute(
            "SELECT id FROM candles ORDER BY time ASC LIMIT ?",
            (limit,),
        )
        rows = await cursor.fetchall()
        return [row[0] for row in rows]

    async def find_recent_candles(self, limit: int) -> list[Candle]:
        """Return the most recent candles ordered by time ASC."""
        if limit <= 0:
            return []
        cursor = await self._database.db.execute(
            f"SELECT {_CANDLE_COLUMNS} FROM candles ORDER BY time DESC LIMIT ?",
            (limit,),
        )
        rows = await cursor.fetchall()
        return [_row_to_candle(row) for row in reversed(rows)]

    # ──────────────────────────────────────────────
    # Regime checkpoint
    # ──────────────────────────────────────────────

    async def load_regime_state(self) -> RegimeRecord | None:
        cursor = await self._database.db.execute(
            "SELECT trend, strength, duration FROM regime_state WHERE id = 1"
        )
        row = await cursor.fetchone()
        if row is None:
            return None
        return RegimeRecord(trend=row[0], strength=row[1], duration=row[2])

    async def upsert_regime_state(self, record: RegimeRecord) -> None:
        now = int(_time.time())
        await self._database.db.execute(
            "INSERT OR REPLACE INTO regime_state (id, trend, strength, duration, updated_at) "
            "VALUES (1, ?, ?, ?, ?)",
            (record.trend, record.strength, record.duration, now),
        )
        await self._database.db.commit()
