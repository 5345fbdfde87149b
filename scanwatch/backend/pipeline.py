"""
backend/pipeline.py

The two queues between pipeline stages:

  event_queue — ConnectionEvents, reader thread → detection consumer
  alert_queue — Alerts, detection consumer → alert consumer / sink

Both are created by init_queues() inside the running loop (main.run() does
this; tests call it directly). Producers enqueue with safe_put(), which never
blocks: when a queue is full the oldest item gives way and the drop is
charged to the counter the caller names, so event and alert losses are
reported separately.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from .metrics import Counter

logger = logging.getLogger(__name__)

event_queue: asyncio.Queue | None = None
alert_queue: asyncio.Queue | None = None


def init_queues(event_size: int = 10_000, alert_size: int = 500) -> None:
    """Create fresh queues; any previous ones (and their items) are discarded."""
    global event_queue, alert_queue
    event_queue = asyncio.Queue(maxsize=event_size)
    alert_queue = asyncio.Queue(maxsize=alert_size)
    logger.info("Queues ready — event=%d alert=%d", event_size, alert_size)


def queue_depths() -> dict[str, int]:
    """Current backlog of each queue, 0 for a queue not yet created."""
    return {
        "event_queue": event_queue.qsize() if event_queue is not None else 0,
        "alert_queue": alert_queue.qsize() if alert_queue is not None else 0,
    }


async def safe_put(queue: asyncio.Queue, item: Any, *, dropped: Counter) -> bool:
    """
    Enqueue `item` without waiting, evicting the oldest entry if full.

    Every item lost (evicted, or `item` itself in the rare case the queue is
    still full) increments `dropped`. Returns False only in that last case.
    """
    if queue.full():
        try:
            queue.get_nowait()
        except asyncio.QueueEmpty:
            pass  # consumer emptied a slot in the meantime
        else:
            # Evicted items never reach task_done(); keep join() balanced.
            queue.task_done()
            dropped.inc()
            logger.warning(
                "Queue full (%d) — oldest item dropped (%s)", queue.maxsize, dropped.name
            )

    try:
        queue.put_nowait(item)
    except asyncio.QueueFull:
        dropped.inc()
        logger.error("%s: queue still full after eviction — item lost", dropped.name)
        return False
    return True
