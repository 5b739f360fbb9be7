"""Abstract persistence gateway for candles and the regime checkpoint.

The generator, gap repair and retention depend only on this interface,
keeping SQL details isolated in the concrete store.
"""

from abc import ABC, abstractmethod

from market_sim.models import Candle, RegimeRecord


class CandleGateway(ABC):
    """Durable store for candles (unique by time) and the regime record."""

    @abstractmethod
    async def find_latest_candle(self) -> Candle | None:
        """Return the candle with the greatest time, or None if empty."""
        ...

    @abstractmethod
    async def find_candle_by_time(self, time: int) -> Candle | None:
        ...

    @abstractmethod
    async def save_candle(self, candle: Candle) -> None:
        """Insert a new candle.

        Raises:
            DuplicateCandleError: If a candle with the same time exists.
        """
        ...

    @abstractmethod
    async def update_candle_fields(self, time: int, fields: dict) -> Candle | None:
        """Partially update the candle at ``time``; None if it does not exist."""
        ...

    @abstractmethod
    async def count_candles(self) -> int:
        ...

    @abstractmethod
    async def find_oldest_candle_ids(self, limit: int) -> list[int]:
        """Return up to ``limit`` candle ids in ascending time order."""
        ...

    @abstractmethod
    async def delete_candles_by_ids(self, ids: list[int]) -> None:
        ...

    @abstractmethod
    async def find_recent_candles(self, limit: int) -> list[Candle]:
        """Return the ``limit`` most recent candles, ascending by time."""
        ...

    @abstractmethod
    async def insert_candles(self, candles: list[Candle]) -> int:
        """Bulk insert, skipping existing times. Returns rows inserted."""
        ...

    @abstractmethod
    async def delete_all_candles(self) -> int:
        ...

    @abstractmethod
    async def load_regime_state(self) -> RegimeRecord | None:
        ...

    @abstractmethod
    async def upsert_regime_state(self, record: RegimeRecord) -> None:
        ...
