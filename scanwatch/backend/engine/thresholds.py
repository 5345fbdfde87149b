"""
engine/thresholds.py

ThresholdPolicy — a constant distinct-count threshold plus an optional
per-port override table.

The override table is keyed by port and only makes sense for filters whose
ScanKey dimension is a port (the address-scan filter). A key whose port is
in the table crosses as soon as its distinct count reaches the override,
even when that is below the constant threshold.
"""

from __future__ import annotations

from collections.abc import Mapping

from ..aggregation.models import ScanKey, WindowAggregate


class ThresholdPolicy:
    """
    Args:
        threshold:         Constant threshold for every key.
        custom_thresholds: Port → threshold override.
    """

    def __init__(
        self,
        threshold: int,
        custom_thresholds: Mapping[int, int] | None = None,
    ) -> None:
        if threshold < 1:
            raise ValueError(f"threshold must be >= 1 — got {threshold}")
        self.threshold = threshold
        self.custom_thresholds: dict[int, int] = dict(custom_thresholds or {})

    def custom_threshold_crossed(self, key: ScanKey, aggregate: WindowAggregate) -> bool:
        """Per-key override check, usable as a FilterConfig.threshold_fn."""
        if not self.custom_thresholds:
            return False
        try:
            port = int(key.dimension)
        except ValueError:
            return False
        override = self.custom_thresholds.get(port)
        return override is not None and aggregate.unique >= override

    def crossed(self, key: ScanKey, aggregate: WindowAggregate) -> bool:
        if self.custom_threshold_crossed(key, aggregate):
            return True
        return aggregate.unique >= self.threshold

    def __repr__(self) -> str:
        return f"ThresholdPolicy(threshold={self.threshold} custom={self.custom_thresholds})"
