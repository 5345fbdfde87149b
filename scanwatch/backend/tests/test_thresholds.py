"""
tests/test_thresholds.py

Tests for engine/thresholds.py — constant thresholds and per-port overrides.
"""

from __future__ import annotations

import pytest

from scanwatch.backend.aggregation.models import ScanKey, WindowAggregate
from scanwatch.backend.engine.thresholds import ThresholdPolicy


def agg_with(n: int) -> WindowAggregate:
    return WindowAggregate(begin=0.0, end=300.0, values={f"10.0.1.{i}" for i in range(n)})


class TestConstantThreshold:

    def test_below_threshold(self):
        policy = ThresholdPolicy(25)
        assert policy.crossed(ScanKey("10.0.0.5", "22"), agg_with(24)) is False

    def test_at_threshold(self):
        policy = ThresholdPolicy(25)
        assert policy.crossed(ScanKey("10.0.0.5", "22"), agg_with(25)) is True

    def test_invalid_threshold_rejected(self):
        with pytest.raises(ValueError):
            ThresholdPolicy(0)


class TestCustomThresholds:

    def test_empty_table_never_overrides(self):
        policy = ThresholdPolicy(25)
        assert policy.custom_threshold_crossed(ScanKey("10.0.0.5", "80"), agg_with(100)) is False

    def test_override_reached(self):
        policy = ThresholdPolicy(25, {80: 5})
        key = ScanKey("10.0.0.5", "80")
        assert policy.custom_threshold_crossed(key, agg_with(4)) is False
        assert policy.custom_threshold_crossed(key, agg_with(5)) is True
        assert policy.crossed(key, agg_with(5)) is True

    def test_other_ports_use_constant(self):
        policy = ThresholdPolicy(25, {80: 5})
        key = ScanKey("10.0.0.5", "443")
        assert policy.crossed(key, agg_with(24)) is False
        assert policy.crossed(key, agg_with(25)) is True

    def test_non_port_dimension_ignored(self):
        policy = ThresholdPolicy(15, {80: 5})
        key = ScanKey("10.0.0.5", "192.168.1.1")
        assert policy.custom_threshold_crossed(key, agg_with(10)) is False

    def test_table_is_copied(self):
        table = {80: 5}
        policy = ThresholdPolicy(25, table)
        table[443] = 1
        assert 443 not in policy.custom_thresholds
