"""Entry point for the synthetic market generator.

Wires the database, store, generator and scheduler together and,
optionally, embeds the FastAPI read API. When the API is enabled
(default) the generator and the server share a single asyncio event
loop via uvicorn's programmatic API and FastAPI's lifespan context
manager.

Handles SIGINT/SIGTERM for graceful shutdown when running headless.

Component wiring order (in _build_components):
1. MarketDatabase (SQLite connection, already connected)
2. SQLiteCandleStore (persistence gateway)
3. MarketGenerator (regime + live candle)
4. Scheduler (creation, update and checkpoint loops)
"""

import asyncio
import signal
from contextlib import asynccontextmanager
from typing import Any

import uvicorn
from fastapi import FastAPI

from market_sim.config import AppSettings
from market_sim.data.database import MarketDatabase
from market_sim.data.store import SQLiteCandleStore
from market_sim.generator import MarketGenerator
from market_sim.logging import get_logger, setup_logging
from market_sim.scheduler import Scheduler


def _build_components(settings: AppSettings, database: MarketDatabase) -> dict[str, Any]:
    """Build the generator stack on top of a connected database.

    Args:
        settings: Application-wide settings.
        database: Connected MarketDatabase.

    Returns:
        Dict mapping component names to instances.
    """
    store = SQLiteCandleStore(database)
    generator = MarketGenerator(store, settings.generator)
    scheduler = Scheduler(generator, settings.generator)
    return {
        "database": database,
        "store": store,
        "generator": generator,
        "scheduler": scheduler,
    }


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Start the scheduler with the server and stop it on shutdown."""
    logger = get_logger("market_sim.main")
    settings: AppSettings = app.state.settings
    components = app.state.components

    app.state.store = components["store"]
    app.state.generator = components["generator"]
    app.state.max_candles = settings.api.max_candles

    await components["scheduler"].start()
    logger.info("lifespan_started")

    yield

    await components["scheduler"].stop()
    logger.info("lifespan_stopped")


async def _run_headless(scheduler: Scheduler) -> None:
    """Run the scheduler until SIGINT/SIGTERM."""
    logger = get_logger("market_sim.main")
    loop = asyncio.get_running_loop()
    stop_event = asyncio.Event()

    def _graceful_handler() -> None:
        logger.info("graceful_shutdown_signal")
        stop_event.set()

    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, _graceful_handler)

    await scheduler.start()
    try:
        await stop_event.wait()
    finally:
        await scheduler.stop()


async def run() -> None:
    """Run the generator, with or without the read API.

    When the API is enabled (API_ENABLED=true, the default) uvicorn
    serves the app and the lifespan owns the scheduler. Otherwise the
    scheduler runs directly until a shutdown signal arrives.
    """
    settings = AppSettings()

    setup_logging(settings.log_level)
    logger = get_logger("market_sim.main")

    async with MarketDatabase(settings.storage.db_path) as database:
        components = _build_components(settings, database)

        if settings.api.enabled:
            from market_sim.api.app import create_api_app

            app = create_api_app(lifespan=lifespan)
            app.state.settings = settings
            app.state.components = components

            logger.info(
                "starting_with_api",
                host=settings.api.host,
                port=settings.api.port,
                db_path=settings.storage.db_path,
            )

            config = uvicorn.Config(
                app,
                host=settings.api.host,
                port=settings.api.port,
                log_level="warning",  # Suppress uvicorn access logs
            )
            server = uvicorn.Server(config)
            await server.serve()
        else:
            logger.info("starting_without_api", db_path=settings.storage.db_path)
            await _run_headless(components["scheduler"])

    logger.info("market_sim_stopped")


def main() -> None:
    """Synchronous entry point."""
    asyncio.run(run())


if __name__ == "__main__":
    main()
