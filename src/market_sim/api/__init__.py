"""HTTP read API over the persisted candles."""

from market_sim.api.app import create_api_app

__all__ = ["create_api_app"]
