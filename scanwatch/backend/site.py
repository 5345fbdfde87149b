"""
backend/site.py

Local-vs-remote address classification.

Alerts carry a locality tag for the scanner: 'local' when its address falls
inside one of the configured site networks, 'remote' otherwise.
"""

from __future__ import annotations

import ipaddress
import logging
from typing import Iterable

logger = logging.getLogger(__name__)


class LocalityLookup:
    """
    Pure lookup of addresses against a fixed list of site networks.

    Args:
        networks: CIDR strings, e.g. ['10.0.0.0/8', 'fd00::/8'].
    """

    def __init__(self, networks: Iterable[str]) -> None:
        self._networks = [ipaddress.ip_network(n, strict=False) for n in networks]
        logger.debug("LocalityLookup initialised — networks=%s", self._networks)

    def is_local(self, addr: str) -> bool:
        try:
            ip = ipaddress.ip_address(addr)
        except ValueError:
            return False  # malformed address — treat as remote, don't crash
        return any(ip in net for net in self._networks if net.version == ip.version)

    def side(self, addr: str) -> str:
        """Return 'local' or 'remote'."""
        return "local" if self.is_local(addr) else "remote"
