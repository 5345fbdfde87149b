"""
engine/alerts.py

AlertEmitter — turns a threshold crossing into a structured Alert and hands
it to the notification sink.

Message formats:
    Address scan: "<src> scanned at least <n> unique hosts on port <p> in <dur>"
    Port scan:    "<src> scanned at least <n> unique ports of host <dst> in <dur>"

<dur> is the time between the window's first and latest observation, as
"<minutes>m<seconds>s".
"""

from __future__ import annotations

import logging
import math

from ..aggregation.models import ScanKey, WindowAggregate
from ..site import LocalityLookup
from .models import Alert, NoteKind
from .sinks import NotificationSink

logger = logging.getLogger(__name__)


def format_duration(seconds: float) -> str:
    """Render a duration as minutes and seconds, e.g. 125.7 → '2m5s'."""
    seconds = max(0.0, seconds)
    return f"{math.floor(seconds / 60)}m{int(seconds % 60)}s"


class AlertEmitter:
    """
    Args:
        sink:     Receives every Alert built by fire().
        locality: Classifies the scanner address as local or remote.
    """

    def __init__(self, sink: NotificationSink, locality: LocalityLookup) -> None:
        self._sink = sink
        self._locality = locality

    def fire(self, kind: NoteKind, key: ScanKey, aggregate: WindowAggregate) -> Alert:
        alert = self.build(kind, key, aggregate)
        self._sink.notify(alert)
        logger.debug("Alert handed to sink: %r", alert)
        return alert

    def build(self, kind: NoteKind, key: ScanKey, aggregate: WindowAggregate) -> Alert:
        dur = format_duration(aggregate.duration)
        port: int | None = None
        dst: str | None = None

        if kind == NoteKind.ADDRESS_SCAN:
            port = int(key.dimension)
            msg = (
                f"{key.host} scanned at least {aggregate.unique} unique hosts "
                f"on port {key.dimension} in {dur}"
            )
        else:
            dst = key.dimension
            msg = (
                f"{key.host} scanned at least {aggregate.unique} unique ports "
                f"of host {key.dimension} in {dur}"
            )

        return Alert(
            note=kind,
            src=key.host,
            msg=msg,
            identifier=key.host,
            sub=self._locality.side(key.host),
            port=port,
            dst=dst,
            unique=aggregate.unique,
            window_start=aggregate.begin,
            window_end=aggregate.end,
        )
