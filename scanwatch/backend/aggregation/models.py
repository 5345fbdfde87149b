"""
aggregation/models.py

Data models for the aggregation layer.

ScanKey         — hashable (host, dimension) pair used as dict key
WindowAggregate — distinct values seen for one key inside one window
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import NamedTuple


# ---------------------------------------------------------------------------
# ScanKey — hashable aggregation key
# ---------------------------------------------------------------------------

class ScanKey(NamedTuple):
    """
    Aggregation key for one scanner along one dimension.

    Address scan: dimension is the scanned port, e.g. ('10.0.0.5', '22').
    Port scan:    dimension is the victim address, e.g. ('10.0.0.5', '10.0.0.9').
    """

    host: str
    dimension: str

    def __repr__(self) -> str:
        return f"{self.host}/{self.dimension}"


# ---------------------------------------------------------------------------
# WindowAggregate — per-key state for the current window
# ---------------------------------------------------------------------------

@dataclass
class WindowAggregate:
    """
    Distinct-value state for a single ScanKey over [begin, end).

    `values` only ever grows inside a window; rotation replaces the whole
    aggregate rather than clearing it.
    """

    begin: float
    """Timestamp of the first observation, which opens the window."""

    end: float
    """begin + the filter's window duration."""

    values: set[str] = field(default_factory=set)

    alerted: bool = False
    """Set once the threshold callback has fired for this window."""

    last_seen: float = 0.0
    """Timestamp of the most recent observation."""

    observations: int = 0
    """Raw observation count, duplicates included."""

    @property
    def unique(self) -> int:
        return len(self.values)

    @property
    def duration(self) -> float:
        """Seconds between the first and the most recent observation."""
        return max(0.0, self.last_seen - self.begin)

    def expired(self, now: float) -> bool:
        return now >= self.end

    def snapshot(self) -> WindowAggregate:
        """Copy safe to hand to callbacks while the original keeps mutating."""
        return replace(self, values=set(self.values))

    def __repr__(self) -> str:
        return (
            f"WindowAggregate(unique={self.unique} obs={self.observations} "
            f"span={self.duration:.1f}s alerted={self.alerted})"
        )
