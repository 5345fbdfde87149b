"""
aggregation/sweeper.py

AggregateSweeper — periodic eviction of expired window aggregates.

Lazy rotation only replaces an aggregate when its key is seen again, so a
scanner that goes quiet would otherwise stay in memory forever. The sweeper
ticks on its own schedule (not per event) and calls counter.sweep().

Scheduling:
  - asyncio.sleep(interval) between passes
  - Graceful shutdown: on CancelledError, logs final stats and re-raises
"""

from __future__ import annotations

import asyncio
import logging

from ..metrics import METRICS
from .unique_counter import WindowedUniqueCounter

logger = logging.getLogger(__name__)


class AggregateSweeper:
    """
    Args:
        counter:          The counter whose expired aggregates are evicted.
        interval_seconds: Seconds between sweep passes.
    """

    def __init__(
        self,
        counter: WindowedUniqueCounter,
        interval_seconds: float = 30.0,
    ) -> None:
        if interval_seconds <= 0:
            raise ValueError(f"interval_seconds must be > 0 — got {interval_seconds}")
        self._counter = counter
        self._interval = interval_seconds

        self.stats: dict[str, int] = {
            "passes": 0,
            "evicted_total": 0,
        }

    async def run(self) -> None:
        """Sweep every interval until cancelled."""
        logger.info("Sweeper started — interval=%.0fs", self._interval)
        try:
            while True:
                await asyncio.sleep(self._interval)
                self.sweep_once()
        except asyncio.CancelledError:
            logger.info("Sweeper shutdown — final stats: %s", self.stats)
            raise

    def sweep_once(self) -> int:
        removed = self._counter.sweep()
        self.stats["passes"] += 1
        self.stats["evicted_total"] += removed
        if removed:
            METRICS.aggregates_swept.inc(removed)
        return removed
