"""
ingest/__init__.py

Public API for the ingest sub-package.
"""

from .parser import EventParseError, parse_event
from .source import EventSource

__all__ = ["EventSource", "EventParseError", "parse_event"]
