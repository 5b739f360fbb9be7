"""Retention window: keep at most ``cap`` candles, trimming oldest-first."""

from market_sim.data.gateway import CandleGateway
from market_sim.logging import get_logger

logger = get_logger(__name__)


class RetentionEnforcer:
    """Deletes the oldest candles once the store holds more than ``cap``.

    Deleting strictly from the oldest end means the just-written candle
    and the live candle are never touched.
    """

    def __init__(self, store: CandleGateway, cap: int) -> None:
        if cap <= 0:
            raise ValueError("retention cap must be positive")
        self._store = store
        self._cap = cap

    @property
    def cap(self) -> int:
        return self._cap

    async def enforce(self) -> int:
        """Trim the store down to the cap. Returns the number of candles deleted."""
        count = await self._store.count_candles()
        excess = count - self._cap
        if excess <= 0:
            return 0

        ids = await self._store.find_oldest_candle_ids(excess)
        await self._store.delete_candles_by_ids(ids)
        logger.info("retention_trimmed", deleted=len(ids), cap=self._cap)
        return len(ids)
