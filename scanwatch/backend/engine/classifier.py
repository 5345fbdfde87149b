"""
engine/classifier.py

Connection-outcome classifier.

Decides whether a connection record is a failed attempt and, if so, which
endpoint was the scanner. Both functions are pure and total: any state
combination not listed below is ScanDirection.NONE.

classify() rules, first match wins (history: upper = originator, lower = responder):

    orig          resp          history             verdict
    ------------  ------------  ------------------  -------
    SYN_SENT      RESET         any                 FORWARD
    RESET         SYN_SENT      any                 REVERSE
    *             *             has D or d          NONE
    RESET         SYN_ACK_SENT  -                   FORWARD
    SYN_ACK_SENT  RESET         -                   REVERSE
    RESET/EST     EST/RESET     has s               REVERSE
    RESET         ESTABLISHED   has S               FORWARD
"""

from __future__ import annotations

from ..models import ConnectionEvent, ConnectionEventKind, ConnectionRecord, TcpState
from .models import ScanDirection

_RESET = TcpState.RESET
_SYN_SENT = TcpState.SYN_SENT
_SYN_ACK_SENT = TcpState.SYN_ACK_SENT
_ESTABLISHED = TcpState.ESTABLISHED


def _data_sent(history: str) -> bool:
    return "D" in history or "d" in history


def classify(record: ConnectionRecord) -> ScanDirection:
    """Classify a finished or abandoned connection."""
    orig, resp, history = record.orig_state, record.resp_state, record.history

    if orig == _SYN_SENT and resp == _RESET:
        return ScanDirection.FORWARD
    if orig == _RESET and resp == _SYN_SENT:
        return ScanDirection.REVERSE

    if _data_sent(history):
        return ScanDirection.NONE

    if orig == _RESET and resp == _SYN_ACK_SENT:
        return ScanDirection.FORWARD
    if orig == _SYN_ACK_SENT and resp == _RESET:
        return ScanDirection.REVERSE

    if {orig, resp} == {_RESET, _ESTABLISHED}:
        if "s" in history:
            return ScanDirection.REVERSE
        if orig == _RESET and "S" in history:
            return ScanDirection.FORWARD

    return ScanDirection.NONE


def direction_for_event(event: ConnectionEvent) -> ScanDirection:
    """
    Map a connection lifecycle event to a scan direction.

    Attempt timeouts and rejections are failures by definition; only the
    direction needs deciding. Resets and pending connections go through
    classify().
    """
    history = event.record.history
    if event.kind == ConnectionEventKind.ATTEMPT:
        # Unanswered SYN-ACK from the "originator" side means roles were swapped
        return ScanDirection.REVERSE if "H" in history else ScanDirection.FORWARD
    if event.kind == ConnectionEventKind.REJECTED:
        return ScanDirection.REVERSE if "s" in history else ScanDirection.FORWARD
    if event.kind in (ConnectionEventKind.RESET, ConnectionEventKind.PENDING):
        return classify(event.record)
    return ScanDirection.NONE
