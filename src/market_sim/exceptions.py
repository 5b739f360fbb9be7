"""Custom exceptions for the market simulator.

Kept in one module so the store, generator and scheduler can share them
without importing each other.
"""


class MarketSimError(Exception):
    """Base exception for all simulator errors."""


class DuplicateCandleError(MarketSimError):
    """Raised when a candle for an already-persisted time bucket is saved."""

    def __init__(self, time: int) -> None:
        super().__init__(f"candle already exists for time {time}")
        self.time = time


class InvalidRegimeState(MarketSimError):
    """Raised when a persisted regime checkpoint cannot be interpreted."""
