"""
tests/test_detector.py

End-to-end tests for engine/detector.py: connection events in, alerts out.
Events carry explicit timestamps, so windows are deterministic.
"""

from __future__ import annotations

import pytest

from scanwatch.backend.aggregation.models import ScanKey
from scanwatch.backend.config import Settings
from scanwatch.backend.engine.alerts import AlertEmitter
from scanwatch.backend.engine.detector import ScanDetector
from scanwatch.backend.engine.keys import ADDR_SCAN_FILTER, PORT_SCAN_FILTER
from scanwatch.backend.engine.models import NoteKind, ScanDirection
from scanwatch.backend.engine.sinks import BufferedSink
from scanwatch.backend.metrics import METRICS
from scanwatch.backend.models import (
    ConnectionEvent,
    ConnectionEventKind,
    ConnectionRecord,
    TcpState,
)
from scanwatch.backend.site import LocalityLookup

SCANNER = "203.0.113.50"


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def rejected(
    victim: str,
    port: int,
    ts: float,
    scanner: str = SCANNER,
) -> ConnectionEvent:
    """Originator SYN answered by a RST."""
    return ConnectionEvent(
        kind=ConnectionEventKind.REJECTED,
        record=ConnectionRecord(
            orig_h=scanner,
            orig_p=40000,
            resp_h=victim,
            resp_p=port,
            orig_state=TcpState.SYN_SENT,
            resp_state=TcpState.RESET,
            history="Sr",
        ),
        timestamp=ts,
    )


def make_detector(**kwargs) -> tuple[ScanDetector, BufferedSink]:
    sink = BufferedSink()
    emitter = AlertEmitter(sink, LocalityLookup(["10.0.0.0/8"]))
    return ScanDetector(emitter, **kwargs), sink


# ---------------------------------------------------------------------------
# Address scan
# ---------------------------------------------------------------------------

class TestAddressScan:

    def test_one_alert_on_25th_victim(self):
        detector, sink = make_detector()
        fired_at: list[int] = []
        for i in range(1, 27):  # B1..B26, all within one minute
            detector.handle(rejected(f"10.1.0.{i}", 22, ts=1000.0 + i * 2))
            if len(sink):
                fired_at.append(i)
                alerts = sink.drain()

        assert fired_at == [25]
        assert len(alerts) == 1
        alert = alerts[0]
        assert alert.note == NoteKind.ADDRESS_SCAN
        assert alert.src == SCANNER
        assert alert.port == 22
        assert alert.unique == 25
        assert alert.sub == "remote"
        assert detector.stats["alerts_fired"] == 1

    def test_24_victims_no_alert(self):
        detector, sink = make_detector()
        for i in range(1, 25):
            detector.handle(rejected(f"10.1.0.{i}", 443, ts=1000.0))
        assert sink.drain() == []

    def test_repeated_victim_does_not_count(self):
        detector, sink = make_detector()
        for _ in range(100):
            detector.handle(rejected("10.1.0.1", 22, ts=1000.0))
        assert sink.drain() == []
        assert detector.counter.unique(ADDR_SCAN_FILTER, ScanKey(SCANNER, "22")) == 1


# ---------------------------------------------------------------------------
# Port scan
# ---------------------------------------------------------------------------

class TestPortScan:

    def test_one_alert_on_15th_port(self):
        detector, sink = make_detector()
        fired_at: list[int] = []
        for port in range(1, 17):
            detector.handle(rejected("10.1.0.9", port, ts=1000.0 + port))
            if len(sink):
                fired_at.append(port)
                alerts = sink.drain()

        assert fired_at == [15]
        assert len(alerts) == 1
        alert = alerts[0]
        assert alert.note == NoteKind.PORT_SCAN
        assert alert.dst == "10.1.0.9"
        assert alert.unique == 15
        assert alert.msg.startswith(f"{SCANNER} scanned at least 15 unique ports of host 10.1.0.9")


# ---------------------------------------------------------------------------
# Per-port overrides
# ---------------------------------------------------------------------------

class TestCustomThresholds:

    def test_override_fires_below_global_threshold(self):
        detector, sink = make_detector(
            addr_scan_threshold=25, addr_scan_custom_thresholds={80: 5}
        )
        for i in range(1, 6):
            detector.handle(rejected(f"10.1.0.{i}", 80, ts=1000.0))
        alerts = sink.drain()
        assert len(alerts) == 1
        assert alerts[0].port == 80
        assert alerts[0].unique == 5

    def test_other_ports_keep_global_threshold(self):
        detector, sink = make_detector(
            addr_scan_threshold=25, addr_scan_custom_thresholds={80: 5}
        )
        for i in range(1, 25):
            detector.handle(rejected(f"10.1.0.{i}", 443, ts=1000.0))
        assert sink.drain() == []

    def test_override_not_applied_to_port_scans(self):
        detector, sink = make_detector(
            port_scan_threshold=15, addr_scan_custom_thresholds={80: 1}
        )
        detector.handle(rejected("10.1.0.1", 80, ts=1000.0))
        alerts = sink.drain()
        assert [a.note for a in alerts] == [NoteKind.ADDRESS_SCAN]


# ---------------------------------------------------------------------------
# Windows
# ---------------------------------------------------------------------------

class TestWindowIsolation:

    def test_scanner_realerts_only_after_recrossing(self):
        detector, sink = make_detector(port_scan_threshold=3, port_scan_interval=60.0)
        for port in (1, 2, 3):
            detector.handle(rejected("10.1.0.9", port, ts=0.0))
        assert len(sink.drain()) == 1

        # Next window: same ports again, must re-accumulate
        detector.handle(rejected("10.1.0.9", 1, ts=61.0))
        detector.handle(rejected("10.1.0.9", 2, ts=62.0))
        assert sink.drain() == []
        key = ScanKey(SCANNER, "10.1.0.9")
        assert detector.counter.unique(PORT_SCAN_FILTER, key) == 2
        detector.handle(rejected("10.1.0.9", 3, ts=63.0))
        assert len(sink.drain()) == 1

    def test_slow_scan_spanning_windows_never_alerts(self):
        detector, sink = make_detector(port_scan_threshold=3, port_scan_interval=60.0)
        for n, port in enumerate(range(1, 10)):
            detector.handle(rejected("10.1.0.9", port, ts=n * 40.0))
        assert sink.drain() == []

    def test_reset_flushes_state(self):
        detector, sink = make_detector(port_scan_threshold=3)
        detector.handle(rejected("10.1.0.9", 1, ts=0.0))
        detector.handle(rejected("10.1.0.9", 2, ts=0.0))
        detector.reset()
        assert detector.counter.active_count == 0
        detector.handle(rejected("10.1.0.9", 3, ts=0.0))
        assert sink.drain() == []


# ---------------------------------------------------------------------------
# Direction handling
# ---------------------------------------------------------------------------

class TestDirection:

    def test_reverse_failure_blames_responder(self):
        detector, sink = make_detector(port_scan_threshold=2)
        for port in (7000, 7001):
            event = ConnectionEvent(
                kind=ConnectionEventKind.RESET,
                record=ConnectionRecord(
                    orig_h="10.1.0.9",
                    orig_p=port,
                    resp_h=SCANNER,
                    resp_p=40000,
                    orig_state=TcpState.RESET,
                    resp_state=TcpState.ESTABLISHED,
                    history="sR",
                ),
                timestamp=0.0,
            )
            assert detector.handle(event) == ScanDirection.REVERSE

        alerts = sink.drain()
        assert len(alerts) == 1
        assert alerts[0].src == SCANNER
        assert alerts[0].dst == "10.1.0.9"
        assert detector.stats["failed_reverse"] == 2

    def test_successful_connection_ignored(self):
        detector, sink = make_detector()
        event = ConnectionEvent(
            kind=ConnectionEventKind.PENDING,
            record=ConnectionRecord(
                orig_h="10.1.0.1", orig_p=40000, resp_h="10.1.0.2", resp_p=443,
                orig_state=TcpState.ESTABLISHED, resp_state=TcpState.ESTABLISHED,
                history="ShADad",
            ),
            timestamp=0.0,
        )
        assert detector.handle(event) == ScanDirection.NONE
        assert detector.counter.active_count == 0
        assert detector.stats["events_seen"] == 1


# ---------------------------------------------------------------------------
# Construction from settings
# ---------------------------------------------------------------------------

class TestFromSettings:

    def test_uses_configured_values(self):
        cfg = Settings(
            ADDR_SCAN_THRESHOLD=7,
            PORT_SCAN_THRESHOLD=4,
            ADDR_SCAN_CUSTOM_THRESHOLDS={22: 2},
            _env_file=None,
        )
        emitter = AlertEmitter(BufferedSink(), LocalityLookup([]))
        detector = ScanDetector.from_settings(cfg, emitter)
        assert detector.addr_policy.threshold == 7
        assert detector.port_policy.threshold == 4
        assert detector.addr_policy.custom_thresholds == {22: 2}
        assert sorted(detector.counter.filters) == [ADDR_SCAN_FILTER, PORT_SCAN_FILTER]

    def test_invalid_threshold_rejected(self):
        with pytest.raises(ValueError):
            make_detector(addr_scan_threshold=0)


# ---------------------------------------------------------------------------
# Process metrics
# ---------------------------------------------------------------------------

class TestMetrics:

    def test_kinds_directions_and_alerts_counted(self):
        METRICS.reset_all()
        detector, _ = make_detector(port_scan_threshold=2)
        detector.handle(rejected("10.9.0.1", 22, ts=1000.0))
        detector.handle(rejected("10.9.0.1", 23, ts=1001.0))
        detector.handle(ConnectionEvent(
            kind=ConnectionEventKind.PENDING,
            record=ConnectionRecord(
                orig_h=SCANNER, orig_p=40000, resp_h="10.9.0.1", resp_p=80,
                orig_state=TcpState.ESTABLISHED, resp_state=TcpState.ESTABLISHED,
                history="ShADad",
            ),
            timestamp=1002.0,
        ))

        counts = METRICS.as_dict()
        assert counts["events_rejected"] == 2
        assert counts["events_pending"] == 1
        assert counts["events_attempt"] == 0
        assert counts["failed_forward"] == 2
        assert counts["failed_reverse"] == 0
        assert counts["port_scan_alerts"] == 1
        assert counts["address_scan_alerts"] == 0
