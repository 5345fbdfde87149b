"""
ingest/source.py

EventSource — reads newline-delimited JSON connection events from a text
stream in a background thread and bridges them into the asyncio event loop.

Key design decisions:
  - Reading a file or stdin blocks, so it runs in its own daemon thread.
    We must never put() to an asyncio.Queue from that thread directly;
    safe_put() is scheduled on the loop with run_coroutine_threadsafe().
  - Malformed lines are counted and logged, never fatal.
  - on_eof (optional) is scheduled on the loop when the stream is exhausted,
    so a finite replay can trigger a clean shutdown.

Lifecycle:
    source = EventSource(queue, loop, stream=sys.stdin)
    source.start()
    # ... asyncio event loop runs ...
    source.stop()
"""

from __future__ import annotations

import asyncio
import logging
import threading
from typing import Callable, TextIO

from ..metrics import METRICS
from ..pipeline import safe_put
from .parser import EventParseError, parse_event

logger = logging.getLogger(__name__)


class EventSource:
    """
    Args:
        queue:  asyncio.Queue[ConnectionEvent] — the event queue from pipeline.py
        loop:   The running asyncio event loop
        stream: Text stream yielding one JSON event per line
        on_eof: Called on the loop thread once the stream is exhausted
    """

    def __init__(
        self,
        queue: asyncio.Queue,
        loop: asyncio.AbstractEventLoop,
        stream: TextIO,
        on_eof: Callable[[], None] | None = None,
    ) -> None:
        self._queue = queue
        self._loop = loop
        self._stream = stream
        self._on_eof = on_eof
        self._thread: threading.Thread | None = None
        self._stop = threading.Event()
        self._lock = threading.Lock()

    # ------------------------------------------------------------------
    # Line handler — executes in the reader thread
    # ------------------------------------------------------------------

    def _handle_line(self, line: str) -> None:
        METRICS.events_received.inc()
        try:
            event = parse_event(line)
        except EventParseError as exc:
            METRICS.events_malformed.inc()
            logger.warning("Skipping malformed event: %s", exc)
            return

        if event is None:
            return  # blank or comment line

        METRICS.events_parsed_ok.inc()

        asyncio.run_coroutine_threadsafe(
            safe_put(self._queue, event, dropped=METRICS.event_queue_dropped),
            self._loop,
        )

    def _read_loop(self) -> None:
        for line in self._stream:
            if self._stop.is_set():
                break
            self._handle_line(line)
        else:
            logger.info("Event source exhausted — metrics: %s", METRICS.as_dict())
            if self._on_eof is not None:
                self._loop.call_soon_threadsafe(self._on_eof)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Start the reader thread."""
        with self._lock:
            if self._thread is not None:
                logger.warning("EventSource.start() called but already running")
                return
            self._stop.clear()
            self._thread = threading.Thread(
                target=self._read_loop,
                name="event-source",
                daemon=True,
            )
            self._thread.start()
            logger.info(
                "EventSource started — stream=%r",
                getattr(self._stream, "name", self._stream),
            )

    def stop(self) -> None:
        """Ask the reader thread to stop and wait briefly for it."""
        with self._lock:
            if self._thread is None:
                return
            self._stop.set()
            # A thread blocked on stdin cannot be interrupted; it is a daemon.
            self._thread.join(timeout=1.0)
            self._thread = None
            logger.info("EventSource stopped — metrics: %s", METRICS.as_dict())

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()
