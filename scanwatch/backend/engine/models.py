"""
engine/models.py

Data models for the detection engine.

ScanDirection — classifier verdict for one connection
NoteKind      — which scan detector raised an alert
Alert         — structured alert handed to the notification sink
"""

from __future__ import annotations

import time
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any


# ---------------------------------------------------------------------------
# ScanDirection
# ---------------------------------------------------------------------------

class ScanDirection(str, Enum):
    NONE    = "none"
    """Not a failed connection."""

    FORWARD = "forward"
    """Failed, and the originator is the scanner."""

    REVERSE = "reverse"
    """Failed, and the responder is the scanner."""


# ---------------------------------------------------------------------------
# NoteKind
# ---------------------------------------------------------------------------

class NoteKind(str, Enum):
    ADDRESS_SCAN = "Scan::Address_Scan"
    PORT_SCAN    = "Scan::Port_Scan"


# ---------------------------------------------------------------------------
# Alert
# ---------------------------------------------------------------------------

@dataclass
class Alert:
    """
    Threshold-crossing alert produced by the AlertEmitter.

    Exactly one Alert is created per ScanKey per window.
    """

    note: NoteKind
    src: str
    """Scanner address."""

    msg: str
    """One-sentence human-readable summary."""

    identifier: str
    """Deterministic dedup hint for the sink, derived from the ScanKey."""

    sub: str = "remote"
    """Locality of the scanner: 'local' | 'remote'."""

    port: int | None = None
    """Scanned port (address scans only)."""

    dst: str | None = None
    """Scanned victim (port scans only)."""

    unique: int = 0
    window_start: float = 0.0
    window_end: float = 0.0

    alert_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    timestamp: float = field(default_factory=time.time)

    def to_dict(self) -> dict[str, Any]:
        return {
            "alert_id":     self.alert_id,
            "timestamp":    self.timestamp,
            "note":         self.note.value,
            "src":          self.src,
            "port":         self.port,
            "dst":          self.dst,
            "sub":          self.sub,
            "msg":          self.msg,
            "identifier":   self.identifier,
            "unique":       self.unique,
            "window_start": self.window_start,
            "window_end":   self.window_end,
        }

    def __repr__(self) -> str:
        return f"Alert({self.note.value} src={self.src!r} unique={self.unique})"
