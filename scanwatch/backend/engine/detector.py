"""
engine/detector.py

ScanDetector — wires classifier, key extraction, unique counter, threshold
policies and alert emitter together.

Per event:
    direction = direction_for_event(event)
    for (filter, key, value) in scan_observations(record, direction):
        counter.add(filter, key, value, now=event.timestamp)
    → a crossing calls AlertEmitter.fire() through the filter's on_cross

Filters registered at construction:
    scan.addr.fail — ScanKey(scanner, port),   values = victims
    scan.port.fail — ScanKey(scanner, victim), values = ports
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import TYPE_CHECKING

from ..aggregation.models import ScanKey, WindowAggregate
from ..aggregation.unique_counter import FilterConfig, WindowedUniqueCounter
from ..metrics import METRICS
from ..models import ConnectionEvent
from .alerts import AlertEmitter
from .classifier import direction_for_event
from .keys import ADDR_SCAN_FILTER, PORT_SCAN_FILTER, scan_observations
from .models import NoteKind, ScanDirection
from .thresholds import ThresholdPolicy

if TYPE_CHECKING:
    from ..config import Settings

logger = logging.getLogger(__name__)


class ScanDetector:
    def __init__(
        self,
        emitter: AlertEmitter,
        counter: WindowedUniqueCounter | None = None,
        addr_scan_interval: float = 300.0,
        port_scan_interval: float = 300.0,
        addr_scan_threshold: int = 25,
        port_scan_threshold: int = 15,
        addr_scan_custom_thresholds: Mapping[int, int] | None = None,
    ) -> None:
        self._emitter = emitter
        self.counter = counter if counter is not None else WindowedUniqueCounter()

        self.addr_policy = ThresholdPolicy(addr_scan_threshold, addr_scan_custom_thresholds)
        self.port_policy = ThresholdPolicy(port_scan_threshold)

        self.counter.add_filter(FilterConfig(
            name=ADDR_SCAN_FILTER,
            window_seconds=addr_scan_interval,
            threshold=addr_scan_threshold,
            threshold_fn=(
                self.addr_policy.custom_threshold_crossed
                if self.addr_policy.custom_thresholds else None
            ),
            on_cross=self._on_addr_scan,
        ))
        self.counter.add_filter(FilterConfig(
            name=PORT_SCAN_FILTER,
            window_seconds=port_scan_interval,
            threshold=port_scan_threshold,
            on_cross=self._on_port_scan,
        ))

        self.stats: dict[str, int] = {
            "events_seen": 0,
            "failed_forward": 0,
            "failed_reverse": 0,
            "alerts_fired": 0,
        }
        logger.info(
            "ScanDetector ready — addr: %r every %.0fs | port: %r every %.0fs",
            self.addr_policy,
            addr_scan_interval,
            self.port_policy,
            port_scan_interval,
        )

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        emitter: AlertEmitter,
        counter: WindowedUniqueCounter | None = None,
    ) -> ScanDetector:
        return cls(
            emitter=emitter,
            counter=counter,
            addr_scan_interval=settings.ADDR_SCAN_INTERVAL_SECONDS,
            port_scan_interval=settings.PORT_SCAN_INTERVAL_SECONDS,
            addr_scan_threshold=settings.ADDR_SCAN_THRESHOLD,
            port_scan_threshold=settings.PORT_SCAN_THRESHOLD,
            addr_scan_custom_thresholds=settings.ADDR_SCAN_CUSTOM_THRESHOLDS,
        )

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def handle(self, event: ConnectionEvent) -> ScanDirection:
        """Classify one connection event and feed any failure to the counter."""
        self.stats["events_seen"] += 1
        METRICS.count_event(event.kind)
        direction = direction_for_event(event)
        if direction == ScanDirection.NONE:
            return direction

        if direction == ScanDirection.FORWARD:
            self.stats["failed_forward"] += 1
            METRICS.failed_forward.inc()
        else:
            self.stats["failed_reverse"] += 1
            METRICS.failed_reverse.inc()
        logger.debug("Failed connection (%s): %r", direction.value, event.record)

        for obs in scan_observations(event.record, direction):
            self.counter.add(obs.filter_name, obs.key, obs.value, now=event.timestamp)
        return direction

    def reset(self) -> None:
        """Flush all window state; counters in `stats` are kept."""
        self.counter.reset()

    # ------------------------------------------------------------------
    # Threshold callbacks
    # ------------------------------------------------------------------

    def _on_addr_scan(self, key: ScanKey, aggregate: WindowAggregate) -> None:
        self.stats["alerts_fired"] += 1
        METRICS.address_scan_alerts.inc()
        self._emitter.fire(NoteKind.ADDRESS_SCAN, key, aggregate)

    def _on_port_scan(self, key: ScanKey, aggregate: WindowAggregate) -> None:
        self.stats["alerts_fired"] += 1
        METRICS.port_scan_alerts.inc()
        self._emitter.fire(NoteKind.PORT_SCAN, key, aggregate)
