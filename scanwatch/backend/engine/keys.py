"""
engine/keys.py

Turns a failed connection into the observations fed to the unique counter.
"""

from __future__ import annotations

from typing import NamedTuple

from ..aggregation.models import ScanKey
from ..models import ConnectionRecord
from .models import ScanDirection

ADDR_SCAN_FILTER = "scan.addr.fail"
PORT_SCAN_FILTER = "scan.port.fail"


class ScanObservation(NamedTuple):
    filter_name: str
    key: ScanKey
    value: str


def scan_observations(
    record: ConnectionRecord,
    direction: ScanDirection,
) -> list[ScanObservation]:
    """
    Address scan: key (scanner, port),   value victim.
    Port scan:    key (scanner, victim), value port.
    """
    if direction == ScanDirection.FORWARD:
        scanner, victim, port = record.orig_h, record.resp_h, record.resp_p
    elif direction == ScanDirection.REVERSE:
        scanner, victim, port = record.resp_h, record.orig_h, record.orig_p
    else:
        return []

    return [
        ScanObservation(ADDR_SCAN_FILTER, ScanKey(scanner, str(port)), str(victim)),
        ScanObservation(PORT_SCAN_FILTER, ScanKey(scanner, str(victim)), str(port)),
    ]
