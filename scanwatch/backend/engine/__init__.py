"""engine/__init__.py"""
from .alerts import AlertEmitter, format_duration
from .classifier import classify, direction_for_event
from .detector import ScanDetector
from .models import Alert, NoteKind, ScanDirection
from .sinks import BufferedSink, NotificationSink, SuppressingLogSink

__all__ = [
    "Alert",
    "AlertEmitter",
    "BufferedSink",
    "NoteKind",
    "NotificationSink",
    "ScanDetector",
    "ScanDirection",
    "SuppressingLogSink",
    "classify",
    "direction_for_event",
    "format_duration",
]
