"""Shared data models for the market simulator.

Prices are plain floats rounded to two decimals at the point they are
produced; they are synthetic values, not settlement amounts.
"""

from dataclasses import asdict, dataclass
from enum import IntEnum


class Trend(IntEnum):
    """Direction of the current market regime.

    The integer value is the sign applied to the regime's pull on price.
    """

    DOWN = -1
    SIDEWAYS = 0
    UP = 1


@dataclass
class Candle:
    """One fixed-length time bucket of price/volume activity.

    ``time`` is the bucket start in Unix seconds, quantized to the candle
    interval, and is the unique key in the store.
    """

    time: int
    open: float
    high: float
    low: float
    close: float
    volume: float

    def to_dict(self) -> dict:
        return asdict(self)

    def live_fields(self) -> dict:
        """Fields that change while the candle is still open."""
        return {
            "high": self.high,
            "low": self.low,
            "close": self.close,
            "volume": self.volume,
        }

    def apply(self, fields: dict) -> None:
        """Overwrite live fields in place from a partial-update dict."""
        for name in ("high", "low", "close", "volume"):
            if name in fields:
                setattr(self, name, fields[name])


@dataclass
class RegimeRecord:
    """Persisted form of the regime checkpoint."""

    trend: int
    strength: float
    duration: int
