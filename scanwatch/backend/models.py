"""
backend/models.py

Shared dataclasses for every stage of the pipeline.

Stage 1 — Ingest output:
    TcpState            — per-endpoint TCP state reported by the event source
    ConnectionRecord    — immutable connection summary (4-tuple, states, history)
    ConnectionEventKind — which lifecycle event produced the record
    ConnectionEvent     — record + kind + timestamp, the unit on the event queue

History flag string (as produced by the connection tracker):
    Upper-case letters describe the originator, lower-case the responder.
    S/s  SYN without ACK       H/h  SYN-ACK
    D/d  packet with payload   R/r  RST
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum


# ---------------------------------------------------------------------------
# TcpState
# ---------------------------------------------------------------------------

class TcpState(str, Enum):
    INACTIVE     = "INACTIVE"
    SYN_SENT     = "SYN_SENT"
    SYN_ACK_SENT = "SYN_ACK_SENT"
    PARTIAL      = "PARTIAL"
    ESTABLISHED  = "ESTABLISHED"
    CLOSED       = "CLOSED"
    RESET        = "RESET"


# ---------------------------------------------------------------------------
# ConnectionRecord
# ---------------------------------------------------------------------------

@dataclass(frozen=True, slots=True)
class ConnectionRecord:
    """Summary of a single TCP connection, as delivered by the event source."""

    orig_h: str
    """Originator address, e.g. '192.168.1.5'."""

    orig_p: int
    """Originator port (0–65535)."""

    resp_h: str
    """Responder address."""

    resp_p: int
    """Responder port (0–65535)."""

    orig_state: TcpState
    resp_state: TcpState

    history: str = ""
    """Flag history string, e.g. 'Sr' or 'ShR'."""

    def __repr__(self) -> str:
        return (
            f"{self.orig_h}:{self.orig_p}→{self.resp_h}:{self.resp_p} "
            f"[{self.orig_state.value}/{self.resp_state.value} {self.history!r}]"
        )


# ---------------------------------------------------------------------------
# ConnectionEvent
# ---------------------------------------------------------------------------

class ConnectionEventKind(str, Enum):
    ATTEMPT  = "attempt"
    """SYN sent, no reply before the attempt timeout."""

    REJECTED = "rejected"
    """SYN answered with a RST."""

    RESET    = "reset"
    """An endpoint reset the connection."""

    PENDING  = "pending"
    """Connection still open when the tracker shut down."""


@dataclass(slots=True)
class ConnectionEvent:
    kind: ConnectionEventKind
    record: ConnectionRecord
    timestamp: float = field(default_factory=time.time)
