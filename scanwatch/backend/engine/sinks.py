"""
engine/sinks.py

Notification sinks — where Alerts go once the emitter has built them.

NotificationSink    — the interface the emitter depends on
SuppressingLogSink  — logs alerts, suppressing repeats of (note, identifier)
BufferedSink        — collects alerts for an async consumer to drain
"""

from __future__ import annotations

import logging
import threading
import time
from typing import Callable, Protocol

from .models import Alert

logger = logging.getLogger(__name__)


class NotificationSink(Protocol):
    def notify(self, alert: Alert) -> None:
        ...


class SuppressingLogSink:
    """
    Logs every alert at WARNING unless the same (note, identifier) pair was
    logged less than `suppress_seconds` ago.

    Args:
        suppress_seconds: Suppression interval; 0 disables suppression.
        clock:            Time source (patched in tests).
    """

    def __init__(
        self,
        suppress_seconds: float = 3600.0,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._suppress_sec = suppress_seconds
        self._clock = clock
        self._last_logged: dict[tuple[str, str], float] = {}
        self._lock = threading.Lock()
        self.stats: dict[str, int] = {
            "alerts_logged": 0,
            "alerts_suppressed": 0,
        }

    def notify(self, alert: Alert) -> None:
        key = (alert.note.value, alert.identifier)
        now = self._clock()
        with self._lock:
            last = self._last_logged.get(key)
            if last is not None and now - last < self._suppress_sec:
                self.stats["alerts_suppressed"] += 1
                logger.debug(
                    "Alert suppressed for %r (%.0fs remaining)",
                    key,
                    self._suppress_sec - (now - last),
                )
                return
            self._last_logged[key] = now
            self.stats["alerts_logged"] += 1

        logger.warning(
            "NOTICE [%s] src=%s sub=%s — %s",
            alert.note.value,
            alert.src,
            alert.sub,
            alert.msg,
        )


class BufferedSink:
    """Thread-safe buffer; the detection consumer drains it after each event."""

    def __init__(self) -> None:
        self._alerts: list[Alert] = []
        self._lock = threading.Lock()

    def notify(self, alert: Alert) -> None:
        with self._lock:
            self._alerts.append(alert)

    def drain(self) -> list[Alert]:
        with self._lock:
            alerts, self._alerts = self._alerts, []
        return alerts

    def __len__(self) -> int:
        with self._lock:
            return len(self._alerts)
