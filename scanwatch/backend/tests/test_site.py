"""
tests/test_site.py

Tests for site.py — local/remote classification of scanner addresses.
"""

from __future__ import annotations

import pytest

from scanwatch.backend.site import LocalityLookup


@pytest.fixture
def lookup() -> LocalityLookup:
    return LocalityLookup(["192.168.0.0/16", "10.0.0.0/8", "fd00::/8"])


class TestLocalityLookup:

    @pytest.mark.parametrize("addr", ["192.168.1.5", "10.200.0.1", "fd00::1"])
    def test_local(self, lookup, addr):
        assert lookup.is_local(addr) is True
        assert lookup.side(addr) == "local"

    @pytest.mark.parametrize("addr", ["8.8.8.8", "172.16.0.1", "2001:db8::1"])
    def test_remote(self, lookup, addr):
        assert lookup.is_local(addr) is False
        assert lookup.side(addr) == "remote"

    def test_malformed_address_is_remote(self, lookup):
        assert lookup.side("not-an-ip") == "remote"

    def test_no_networks_means_everything_remote(self):
        assert LocalityLookup([]).side("10.0.0.1") == "remote"

    def test_invalid_network_rejected(self):
        with pytest.raises(ValueError):
            LocalityLookup(["10.0.0.0/33"])
