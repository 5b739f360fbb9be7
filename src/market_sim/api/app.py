"""FastAPI application factory for the read API."""

from __future__ import annotations

from typing import Any

from fastapi import FastAPI

from market_sim.api import routes


def create_api_app(lifespan: Any = None) -> FastAPI:
    """Create and configure the read API application.

    Args:
        lifespan: Optional async context manager for application lifespan events.
                  Used by main.py to start and stop the generator's scheduler.

    Returns:
        Configured FastAPI application. Route handlers expect ``store``,
        ``generator`` and ``max_candles`` on ``app.state``.
    """
    app = FastAPI(
        title="Synthetic Market API",
        lifespan=lifespan,
    )

    app.state.max_candles = 500
    app.state.generator = None
    app.state.store = None

    app.include_router(routes.router, prefix="/api")

    return app
