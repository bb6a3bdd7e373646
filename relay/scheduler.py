"""
Reconciliation scheduling loop.

Runs ReconciliationEngine.run_tick on a fixed interval inside the
application's event loop. Shutdown lets the tick in progress finish its
current follow-up instead of cancelling it mid-transition.
"""

import asyncio
import logging
from typing import Optional

from relay.engine import ReconciliationEngine, TickReport

logger = logging.getLogger(__name__)


class ReconciliationScheduler:
    """Timer-driven tick loop. One instance per process."""

    def __init__(self, engine: ReconciliationEngine, interval: float = 60.0):
        if interval <= 0:
            raise ValueError("Tick interval must be positive")
        self.engine = engine
        self.interval = interval
        self.ticks = 0
        self._stop_event: Optional[asyncio.Event] = None
        self._task: Optional[asyncio.Task] = None

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Spawn the loop on the running event loop. First tick after one interval."""
        if self.is_running:
            return
        self._stop_event = asyncio.Event()
        self._task = asyncio.create_task(self._loop(), name="reconciliation-loop")
        logger.info(f"Reconciliation loop started (every {self.interval:g}s)")

    async def stop(self) -> None:
        """Request shutdown and wait for the tick in progress to wind down."""
        if self._task is None:
            return
        self._stop_event.set()
        await self._task
        self._task = None
        logger.info("Reconciliation loop stopped")

    async def trigger(self) -> TickReport:
        """Run one tick now. Shares the engine's single-flight guard."""
        return await self.engine.run_tick(self._stop_event)

    async def _loop(self) -> None:
        while not self._stop_event.is_set():
            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=self.interval)
                break
            except asyncio.TimeoutError:
                pass

            try:
                await self.engine.run_tick(self._stop_event)
            except Exception as e:
                logger.error(f"Reconciliation tick crashed: {e}", exc_info=True)
            self.ticks += 1
