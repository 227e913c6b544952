"""
Cancellable fixed-interval task.

PeriodicTask runs a coroutine function once immediately and then once per interval.
Each run is its own asyncio task, so a slow run never delays the timer; what happens
when a tick arrives while the previous run is still active is set by OverlapPolicy.
"""

import asyncio
import enum
from typing import Awaitable, Callable, Optional

from mcp.server.fastmcp.utilities.logging import get_logger

logger = get_logger(__name__)


class OverlapPolicy(str, enum.Enum):
    SKIP = "skip"  # drop the tick
    QUEUE = "queue"  # run once more as soon as the active run finishes


class PeriodicTask:
    def __init__(
        self,
        func: Callable[[], Awaitable[object]],
        interval: float,
        overlap: OverlapPolicy = OverlapPolicy.SKIP,
        sleep: Callable[[float], Awaitable[object]] = asyncio.sleep,
        name: str = "periodic-task",
    ):
        if interval <= 0:
            raise ValueError(f"interval must be positive, got {interval}")
        self.func = func
        self.interval = interval
        self.overlap = OverlapPolicy(overlap)
        self.name = name
        self._sleep = sleep
        self._timer: Optional[asyncio.Task] = None
        self._current: Optional[asyncio.Task] = None
        self._queued = False
        self.runs = 0
        self.skipped = 0
        self.failures = 0

    @property
    def running(self) -> bool:
        return self._timer is not None and not self._timer.done()

    @property
    def busy(self) -> bool:
        return self._current is not None and not self._current.done()

    def start(self) -> asyncio.Task:
        if self.running:
            raise RuntimeError(f"{self.name} is already running")
        logger.info(f"Starting {self.name}, every {self.interval}s ({self.overlap.value} on overlap)")
        self._timer = asyncio.create_task(self._loop(), name=self.name)
        return self._timer

    async def stop(self) -> None:
        """Cancels the timer and any run in progress."""
        for task in (self._timer, self._current):
            if task is not None and not task.done():
                task.cancel()
        for task in (self._timer, self._current):
            if task is not None:
                try:
                    await task
                except asyncio.CancelledError:
                    pass
        self._timer = None
        self._current = None
        self._queued = False
        logger.info(f"Stopped {self.name} after {self.runs} runs ({self.skipped} ticks skipped)")

    async def _loop(self) -> None:
        while True:
            self._tick()
            await self._sleep(self.interval)

    def _tick(self) -> None:
        if self.busy:
            if self.overlap is OverlapPolicy.SKIP:
                self.skipped += 1
                logger.warning(f"{self.name}: previous run still active, skipping tick")
            else:
                self._queued = True
                logger.info(f"{self.name}: previous run still active, queued one more run")
            return
        self._current = asyncio.create_task(self._run())

    async def _run(self) -> None:
        while True:
            self.runs += 1
            logger.info(f"{self.name}: run #{self.runs}")
            try:
                await self.func()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                self.failures += 1
                logger.exception(f"{self.name}: run #{self.runs} failed: {e}")
            if not self._queued:
                return
            self._queued = False
