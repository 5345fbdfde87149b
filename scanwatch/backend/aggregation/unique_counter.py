"""
aggregation/unique_counter.py

WindowedUniqueCounter — per-filter, per-key distinct-value counting over
fixed time windows, with a once-per-window threshold callback.

Window handling:
  - A key's window opens on its first observation: [now, now + window).
  - Rotation is lazy. The first observation at or after `end` discards the
    aggregate and opens a fresh one, so nothing carries over.
  - Keys that go quiet linger until their next observation or until
    sweep() removes them (see aggregation/sweeper.py).
  - Expiry is judged on observation time. The counter remembers the latest
    `now` passed to add() and sweep() defaults to it, so replayed or delayed
    events are never evicted by the wall clock while their window is open.
  - sweep() leaves alerted aggregates alone; only the key's next
    observation rotates them, which keeps one alert per (key, window).

Threshold handling:
  - Evaluated after every insert, unless the key already alerted this window.
  - Crossed when the filter's threshold_fn returns True, or when the distinct
    count reaches the filter's constant threshold.
  - On crossing, `alerted` is set and on_cross(key, snapshot) runs once.

Thread safety: all state mutation happens under a single lock, so concurrent
add() calls are linearized. on_cross runs after the lock is released.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable, Optional

from .models import ScanKey, WindowAggregate

logger = logging.getLogger(__name__)

ThresholdFn = Callable[[ScanKey, WindowAggregate], bool]
CrossCallback = Callable[[ScanKey, WindowAggregate], None]


@dataclass(frozen=True)
class FilterConfig:
    """
    Static configuration for one named aggregation.

    Args:
        name:           Filter identifier, e.g. 'scan.addr.fail'.
        window_seconds: Window duration.
        threshold:      Constant distinct-count threshold.
        on_cross:       Called once per key per window when the threshold is crossed.
        threshold_fn:   Optional per-key override check; True means crossed now.
    """

    name: str
    window_seconds: float
    threshold: int
    on_cross: CrossCallback
    threshold_fn: Optional[ThresholdFn] = None


class WindowedUniqueCounter:
    """
    Holds the FilterState (key → WindowAggregate) of every registered filter.

    Args:
        clock: Time source used when add() gets no explicit `now`.
    """

    def __init__(self, clock: Callable[[], float] = time.time) -> None:
        self._clock = clock
        self._filters: dict[str, FilterConfig] = {}
        self._state: dict[str, dict[ScanKey, WindowAggregate]] = {}
        self._lock = threading.Lock()
        self._high_water: float | None = None

        self.stats: dict[str, int] = {
            "observations": 0,
            "windows_opened": 0,
            "windows_rotated": 0,
            "thresholds_crossed": 0,
            "aggregates_swept": 0,
        }

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def add_filter(self, config: FilterConfig) -> None:
        if config.window_seconds <= 0:
            raise ValueError(f"window_seconds must be > 0 — got {config.window_seconds}")
        if config.threshold < 1:
            raise ValueError(f"threshold must be >= 1 — got {config.threshold}")
        with self._lock:
            if config.name in self._filters:
                raise ValueError(f"filter {config.name!r} already registered")
            self._filters[config.name] = config
            self._state[config.name] = {}
        logger.info(
            "Filter registered — name=%r window=%.0fs threshold=%d override=%s",
            config.name,
            config.window_seconds,
            config.threshold,
            config.threshold_fn is not None,
        )

    @property
    def filters(self) -> list[str]:
        return list(self._filters)

    # ------------------------------------------------------------------
    # Observation
    # ------------------------------------------------------------------

    def add(
        self,
        name: str,
        key: ScanKey,
        value: str,
        now: float | None = None,
    ) -> WindowAggregate:
        """
        Record one observation of `value` for `key` under filter `name`.

        Returns a snapshot of the key's aggregate after the update.
        Raises KeyError for an unregistered filter.
        """
        config = self._filters.get(name)
        if config is None:
            raise KeyError(f"unknown filter {name!r}")
        if now is None:
            now = self._clock()

        crossed = False
        with self._lock:
            table = self._state[name]
            agg = table.get(key)
            if agg is None or agg.expired(now):
                if agg is not None:
                    self.stats["windows_rotated"] += 1
                    logger.debug("Window rotated for %s %r", name, key)
                agg = WindowAggregate(begin=now, end=now + config.window_seconds)
                table[key] = agg
                self.stats["windows_opened"] += 1

            agg.values.add(value)
            agg.observations += 1
            agg.last_seen = max(agg.last_seen, now)
            if self._high_water is None or now > self._high_water:
                self._high_water = now
            self.stats["observations"] += 1

            if not agg.alerted and self._crossed(config, key, agg):
                agg.alerted = True
                crossed = True
                self.stats["thresholds_crossed"] += 1

            snapshot = agg.snapshot()

        if crossed:
            logger.info(
                "Threshold crossed — filter=%r key=%r unique=%d",
                name, key, snapshot.unique,
            )
            config.on_cross(key, snapshot)
        return snapshot

    @staticmethod
    def _crossed(config: FilterConfig, key: ScanKey, agg: WindowAggregate) -> bool:
        if config.threshold_fn is not None and config.threshold_fn(key, agg):
            return True
        return agg.unique >= config.threshold

    # ------------------------------------------------------------------
    # Inspection
    # ------------------------------------------------------------------

    def get(self, name: str, key: ScanKey) -> WindowAggregate | None:
        with self._lock:
            agg = self._state.get(name, {}).get(key)
            return agg.snapshot() if agg is not None else None

    def unique(self, name: str, key: ScanKey) -> int:
        agg = self.get(name, key)
        return agg.unique if agg is not None else 0

    @property
    def active_count(self) -> int:
        with self._lock:
            return sum(len(table) for table in self._state.values())

    @property
    def event_time(self) -> float | None:
        """Latest observation time seen by add(), or None before the first one."""
        with self._lock:
            return self._high_water

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def sweep(self, now: float | None = None) -> int:
        """
        Remove aggregates whose window has ended and that never alerted.

        `now` defaults to the latest observation time, not the clock, so a
        window still open in event time is never evicted. Alerted aggregates
        stay until their key is observed again and the window rotates.
        Returns the number of aggregates removed.
        """
        removed = 0
        with self._lock:
            if now is None:
                now = self._high_water
            if now is None:
                return 0
            for table in self._state.values():
                stale = [
                    k for k, agg in table.items()
                    if agg.expired(now) and not agg.alerted
                ]
                for key in stale:
                    del table[key]
                removed += len(stale)
            self.stats["aggregates_swept"] += removed
        if removed:
            logger.info(
                "Swept %d expired aggregate(s) (remaining: %d)",
                removed,
                self.active_count,
            )
        return removed

    def reset(self) -> None:
        """Drop all aggregates of all filters. Registrations are kept."""
        with self._lock:
            for table in self._state.values():
                table.clear()
            self._high_water = None
        logger.debug("WindowedUniqueCounter reset")
