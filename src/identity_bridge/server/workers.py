"""Background timers: periodic snapshot flush and pending-contact sweep."""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime

from identity_bridge.correlation.engine import CorrelationEngine
from identity_bridge.temporal.clock import utc_now

logger = logging.getLogger(__name__)


class PeriodicWorker:
    """Runs :meth:`run_cycle` every ``interval`` seconds until stopped."""

    name = "worker"

    def __init__(self, engine: CorrelationEngine, interval: float) -> None:
        self._engine = engine
        self._interval = interval
        self._task: asyncio.Task | None = None
        self._running = False
        self._cycle_count = 0
        self._last_run: datetime | None = None

    @property
    def cycle_count(self) -> int:
        return self._cycle_count

    @property
    def last_run(self) -> datetime | None:
        return self._last_run

    @property
    def running(self) -> bool:
        return self._running

    async def start(self) -> None:
        """Start the background loop."""
        if self._running:
            return
        self._running = True
        self._task = asyncio.create_task(self._loop())

    async def stop(self) -> None:
        """Cancel the background loop."""
        self._running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None

    async def _loop(self) -> None:
        logger.info("%s started (interval=%ss)", self.name, self._interval)
        while self._running:
            try:
                await asyncio.sleep(self._interval)
                if not self._running:
                    break
                await self.run_cycle()
            except asyncio.CancelledError:
                break
            except Exception:
                logger.exception("Error in %s cycle", self.name)

    async def run_cycle(self) -> None:
        self._cycle_count += 1
        self._last_run = utc_now()


class FlushWorker(PeriodicWorker):
    """Writes the snapshot when the engine has unsaved changes.

    Stopping performs one last flush so no committed mapping is lost.
    """

    name = "flush worker"

    async def run_cycle(self) -> None:
        if await asyncio.to_thread(self._engine.flush):
            logger.debug("Periodic snapshot flush written")
        await super().run_cycle()

    async def stop(self) -> None:
        await super().stop()
        await asyncio.to_thread(self._engine.flush)
        logger.info("Final snapshot flush done")


class SweepWorker(PeriodicWorker):
    """Evicts pending contacts past the retention window."""

    name = "sweep worker"

    async def run_cycle(self) -> None:
        evicted = self._engine.sweep()
        if evicted:
            logger.info("Sweep evicted %d pending contact(s)", evicted)
        await super().run_cycle()
