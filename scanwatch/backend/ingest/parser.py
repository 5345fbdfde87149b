"""
ingest/parser.py

Converts one line of newline-delimited JSON into a ConnectionEvent.

Expected line shape:
    {"kind": "rejected", "ts": 1700000000.5,
     "orig_h": "10.0.0.5", "orig_p": 51234,
     "resp_h": "10.0.0.9", "resp_p": 22,
     "orig_state": "SYN_SENT", "resp_state": "RESET", "history": "Sr"}

`ts` is optional (defaults to the time the line is parsed). State names are
matched case-insensitively and may carry a 'TCP_' prefix ('TCP_SYN_SENT').

Design principles:
  - Called from the reader thread; must be synchronous and fast.
  - Blank lines and '#' comment lines return None so the caller can skip them.
  - Malformed lines raise EventParseError; the caller counts and logs them.
"""

from __future__ import annotations

import logging
import time
from typing import Literal

from pydantic import BaseModel, Field, ValidationError, field_validator

from ..models import ConnectionEvent, ConnectionEventKind, ConnectionRecord, TcpState

logger = logging.getLogger(__name__)


class EventParseError(ValueError):
    """Raised for a line that is not a valid connection event."""


class ConnectionEventIn(BaseModel):
    kind: Literal["attempt", "rejected", "reset", "pending"]
    ts: float | None = None
    orig_h: str = Field(min_length=1)
    orig_p: int = Field(ge=0, le=65535)
    resp_h: str = Field(min_length=1)
    resp_p: int = Field(ge=0, le=65535)
    orig_state: TcpState
    resp_state: TcpState
    history: str = ""

    @field_validator("kind", mode="before")
    @classmethod
    def normalise_kind(cls, v):
        if isinstance(v, str):
            return v.strip().lower()
        return v

    @field_validator("orig_state", "resp_state", mode="before")
    @classmethod
    def normalise_state(cls, v):
        if isinstance(v, str):
            v = v.strip().upper()
            if v.startswith("TCP_"):
                v = v[len("TCP_"):]
        return v

    def to_event(self) -> ConnectionEvent:
        return ConnectionEvent(
            kind=ConnectionEventKind(self.kind),
            record=ConnectionRecord(
                orig_h=self.orig_h,
                orig_p=self.orig_p,
                resp_h=self.resp_h,
                resp_p=self.resp_p,
                orig_state=self.orig_state,
                resp_state=self.resp_state,
                history=self.history,
            ),
            timestamp=self.ts if self.ts is not None else time.time(),
        )


def parse_event(line: str) -> ConnectionEvent | None:
    """
    Parse a single input line.

    Returns:
        ConnectionEvent on success, None for blank and comment lines.

    Raises:
        EventParseError: the line is not valid JSON or fails validation.
    """
    line = line.strip()
    if not line or line.startswith("#"):
        return None
    try:
        model = ConnectionEventIn.model_validate_json(line)
    except ValidationError as exc:
        raise EventParseError(
            f"invalid connection event ({exc.error_count()} error(s)): {line[:120]!r}"
        ) from exc
    return model.to_event()
