"""
aggregation/__init__.py

Public API for the aggregation sub-package.
"""

from .models import ScanKey, WindowAggregate
from .sweeper import AggregateSweeper
from .unique_counter import FilterConfig, WindowedUniqueCounter

__all__ = [
    "AggregateSweeper",
    "FilterConfig",
    "ScanKey",
    "WindowAggregate",
    "WindowedUniqueCounter",
]
