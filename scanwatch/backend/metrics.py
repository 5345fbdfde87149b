"""
backend/metrics.py

Process-wide counters for the scan detection pipeline.

Groups:
  ingest    — lines read, parsed, rejected
  events    — one counter per ConnectionEventKind
  failures  — failed connections by attack direction
  queues    — items dropped by safe_put(), per queue
  detection — alerts raised per note, aggregates swept

The reader thread and the event loop both write here, so each counter
carries its own lock.

Usage:
    from scanwatch.backend.metrics import METRICS
    METRICS.count_event(event.kind)
    METRICS.as_dict()["events_rejected"]
"""

from __future__ import annotations

import threading
from collections.abc import Iterator

from .models import ConnectionEventKind


class Counter:
    """A named, thread-safe integer counter."""

    __slots__ = ("name", "_value", "_lock")

    def __init__(self, name: str) -> None:
        self.name = name
        self._value = 0
        self._lock = threading.Lock()

    def inc(self, amount: int = 1) -> None:
        with self._lock:
            self._value += amount

    def reset(self) -> None:
        with self._lock:
            self._value = 0

    @property
    def value(self) -> int:
        with self._lock:
            return self._value

    def __repr__(self) -> str:  # pragma: no cover
        return f"Counter({self.name}={self._value})"


class Metrics:
    def __init__(self) -> None:
        # ingest
        self.events_received = Counter("events_received")
        self.events_parsed_ok = Counter("events_parsed_ok")
        self.events_malformed = Counter("events_malformed")

        # events seen by the detector, per lifecycle kind
        self.events_by_kind: dict[ConnectionEventKind, Counter] = {
            kind: Counter(f"events_{kind.value}") for kind in ConnectionEventKind
        }

        # failures
        self.failed_forward = Counter("failed_forward")
        self.failed_reverse = Counter("failed_reverse")

        # queues
        self.event_queue_dropped = Counter("event_queue_dropped")
        self.alert_queue_dropped = Counter("alert_queue_dropped")

        # detection
        self.address_scan_alerts = Counter("address_scan_alerts")
        self.port_scan_alerts = Counter("port_scan_alerts")
        self.aggregates_swept = Counter("aggregates_swept")

    def count_event(self, kind: ConnectionEventKind) -> None:
        self.events_by_kind[kind].inc()

    def counters(self) -> Iterator[Counter]:
        for attr in vars(self).values():
            if isinstance(attr, Counter):
                yield attr
            elif isinstance(attr, dict):
                yield from attr.values()

    def as_dict(self) -> dict[str, int]:
        """Flat name → value mapping, JSON-safe."""
        return {c.name: c.value for c in self.counters()}

    def reset_all(self) -> None:
        for counter in self.counters():
            counter.reset()


METRICS = Metrics()
