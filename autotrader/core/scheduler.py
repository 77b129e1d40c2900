"""
Ticker - timer-driven loop with awaited shutdown.

Runs one coroutine per interval. Iterations never overlap: the next one
is scheduled only after the previous one returned, and a manual trigger
while an iteration is in flight is refused. stop() lets the in-flight
iteration finish (a trade is never aborted mid-flight) and then returns.

Usage:
    from autotrader.core import Ticker

    ticker = Ticker("positions", 15.0, manager.poll_all)
    ticker.start()
    ...
    await ticker.stop()
"""
import asyncio
import logging
import time
from typing import Awaitable, Callable, Optional

logger = logging.getLogger(__name__)


class Ticker:
    """Fixed-rate, non-overlapping async loop."""

    def __init__(
        self,
        name: str,
        interval: float,
        callback: Callable[[], Awaitable[None]],
        run_immediately: bool = True,
    ):
        if interval <= 0:
            raise ValueError("Ticker interval must be positive")
        self.name = name
        self.interval = interval
        self.callback = callback
        self.run_immediately = run_immediately

        self.running = False
        self.iterations = 0
        self.errors = 0
        self.rejected_triggers = 0
        self.last_run: Optional[float] = None

        self._in_flight = False
        self._task: Optional[asyncio.Task] = None
        self._stop_event: Optional[asyncio.Event] = None

    @property
    def in_flight(self) -> bool:
        return self._in_flight

    def start(self):
        """Schedule the loop on the running event loop."""
        if self.running:
            raise RuntimeError(f"Ticker {self.name} already running")
        self.running = True
        self._stop_event = asyncio.Event()
        self._task = asyncio.get_running_loop().create_task(self._run())
        logger.debug(f"Ticker {self.name} started (every {self.interval:.1f}s)")

    async def stop(self):
        """Stop scheduling; waits for the in-flight iteration to complete."""
        if not self.running:
            return
        self.running = False
        if self._stop_event is not None:
            self._stop_event.set()
        if self._task is not None:
            await self._task
            self._task = None
        logger.debug(f"Ticker {self.name} stopped after {self.iterations} iterations")

    async def trigger(self) -> bool:
        """
        Run one iteration now.

        Returns:
            False when an iteration is already in flight (nothing is run)
        """
        if self._in_flight:
            self.rejected_triggers += 1
            logger.debug(f"Ticker {self.name}: iteration in flight, trigger rejected")
            return False
        await self._iterate()
        return True

    async def _iterate(self):
        self._in_flight = True
        started = time.time()
        try:
            await self.callback()
        except Exception as e:
            self.errors += 1
            logger.error(f"Ticker {self.name} iteration failed: {e}")
        finally:
            self._in_flight = False
            self.iterations += 1
            self.last_run = started

    async def _run(self):
        if not self.run_immediately:
            if await self._wait(self.interval):
                return

        while self.running:
            started = time.time()
            if not self._in_flight:
                await self._iterate()
            elapsed = time.time() - started
            if await self._wait(max(0.0, self.interval - elapsed)):
                return

    async def _wait(self, seconds: float) -> bool:
        """Sleep up to `seconds`; True if stop was requested meanwhile."""
        try:
            await asyncio.wait_for(self._stop_event.wait(), timeout=seconds)
            return True
        except asyncio.TimeoutError:
            return not self.running
