"""Candle and regime persistence layer.

Provides the gateway contract the generator depends on, the SQLite
connection manager, and the SQLite-backed store.
"""

from market_sim.data.database import MarketDatabase
from market_sim.data.gateway import CandleGateway
from market_sim.data.store import SQLiteCandleStore

__all__ = [
    "CandleGateway",
    "MarketDatabase",
    "SQLiteCandleStore",
]
