"""Periodic tasks that drive the generator.

Three independent loops share one event loop:

- creation: opens a new candle at every ``candle_interval`` boundary
- update: advances the live candle every ``update_interval`` seconds
- checkpoint: persists the regime every ``checkpoint_interval`` seconds

Each loop re-arms itself after every run, whether the run succeeded or
raised. A failed tick is logged and the next one is scheduled as usual.
"""

import asyncio
from collections.abc import Awaitable, Callable

import structlog

from market_sim.config import GeneratorSettings
from market_sim.generator import MarketGenerator
from market_sim.logging import get_logger

logger = get_logger(__name__)


class PeriodicTask:
    """Supervisor loop that runs ``func`` every ``interval`` seconds.

    By default the interval is measured from the end of one run to the
    start of the next. A ``delay`` callable overrides that sleep, which
    lets a task fire on a fixed grid instead of drifting with run time. Exceptions from ``func`` are logged and swallowed so a single
    failed tick never stops future ticks; cancellation ends the loop.
    """

    def __init__(
        self,
        name: str,
        interval: float,
        func: Callable[[], Awaitable[object]],
        run_immediately: bool = False,
        delay: Callable[[], float] | None = None,
    ) -> None:
        self.name = name
        self.interval = interval
        self._func = func
        self._run_immediately = run_immediately
        self._delay = delay
        self._running = False
        self._task: asyncio.Task | None = None  # type: ignore[type-arg]
        self.runs = 0
        self.failures = 0

    @property
    def running(self) -> bool:
        return self._running

    def start(self) -> None:
        if self._running:
            logger.warning("periodic_task_already_running", task=self.name)
            return
        self._running = True
        self._task = asyncio.create_task(self._loop(), name=self.name)
        logger.info("periodic_task_started", task=self.name, interval=self.interval)

    async def stop(self) -> None:
        """Stop re-arming and cancel any pending sleep or run."""
        self._running = False
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        logger.info("periodic_task_stopped", task=self.name, runs=self.runs, failures=self.failures)

    async def run_once(self) -> bool:
        """Run ``func`` once. Returns False if it raised."""
        structlog.contextvars.bind_contextvars(task=self.name)
        self.runs += 1
        try:
            await self._func()
            return True
        except asyncio.CancelledError:
            raise
        except Exception:
            self.failures += 1
            logger.error("periodic_task_failed", exc_info=True)
            return False

    def next_delay(self) -> float:
        """Seconds to sleep before the next run."""
        if self._delay is None:
            return self.interval
        return max(0.0, self._delay())

    async def _loop(self) -> None:
        if not self._run_immediately:
            await asyncio.sleep(self.next_delay())
        while self._running:
            await self.run_once()
            if self._running:
                await asyncio.sleep(self.next_delay())


class Scheduler:
    """Arms the creation, update and checkpoint loops for one generator.

    The regime checkpoint is loaded before any loop is armed so the first
    tick continues from the persisted trend rather than defaults.
    """

    def __init__(self, generator: MarketGenerator, settings: GeneratorSettings) -> None:
        self._generator = generator
        self._settings = settings
        self._tasks = [
            PeriodicTask(
                "candle_create",
                settings.candle_interval,
                generator.create_candle,
                run_immediately=True,
                delay=generator.seconds_until_next_bucket,
            ),
            PeriodicTask("candle_update", settings.update_interval, generator.update_candle),
            PeriodicTask("regime_checkpoint", settings.checkpoint_interval, generator.checkpoint),
        ]
        self._started = False

    @property
    def tasks(self) -> list[PeriodicTask]:
        return list(self._tasks)

    @property
    def started(self) -> bool:
        return self._started

    async def start(self) -> None:
        if self._started:
            logger.warning("scheduler_already_started")
            return
        await self._generator.load_state()
        for task in self._tasks:
            task.start()
        self._started = True
        logger.info(
            "scheduler_started",
            candle_interval=self._settings.candle_interval,
            update_interval=self._settings.update_interval,
            checkpoint_interval=self._settings.checkpoint_interval,
        )

    async def stop(self) -> None:
        """Stop all loops, then write a final regime checkpoint."""
        if not self._started:
            return
        self._started = False
        for task in self._tasks:
            await task.stop()
        try:
            await self._generator.checkpoint()
        except Exception as e:
            logger.error("final_checkpoint_failed", error=str(e))
        logger.info("scheduler_stopped")
