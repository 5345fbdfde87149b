from __future__ import annotations

import argparse
import asyncio
import logging
import signal
import sys
import time
from typing import NoReturn, TextIO

from pydantic import ValidationError

from . import pipeline
from .aggregation import AggregateSweeper, WindowedUniqueCounter
from .config import Settings
from .engine import (
    Alert,
    AlertEmitter,
    BufferedSink,
    NoteKind,
    ScanDetector,
    SuppressingLogSink,
)
from .ingest import EventSource
from .metrics import METRICS
from .models import ConnectionEvent
from .pipeline import init_queues
from .site import LocalityLookup

logger = logging.getLogger("scanwatch.main")

_ANSI = {
    NoteKind.ADDRESS_SCAN: "\033[93m",
    NoteKind.PORT_SCAN:    "\033[96m",
    "RESET":               "\033[0m",
}


def _colour(note: NoteKind, text: str) -> str:
    return f"{_ANSI.get(note, '')}{text}{_ANSI['RESET']}"


# ---------------------------------------------------------------------------
# Detection consumer — ConnectionEvent → detector → alert_queue
# ---------------------------------------------------------------------------

async def detection_consumer(
    detector: ScanDetector,
    buffer: BufferedSink,
    shutdown_event: asyncio.Event,
) -> None:
    """Feed events to the detector and forward any alerts it raised."""
    logger.info("Detection consumer started")
    while not shutdown_event.is_set():
        try:
            event: ConnectionEvent = await asyncio.wait_for(
                pipeline.event_queue.get(), timeout=0.5
            )
            try:
                detector.handle(event)
                for alert in buffer.drain():
                    await pipeline.safe_put(
                        pipeline.alert_queue, alert, dropped=METRICS.alert_queue_dropped
                    )
            finally:
                pipeline.event_queue.task_done()

        except asyncio.TimeoutError:
            continue
        except asyncio.CancelledError:
            break
    logger.info("Detection consumer exiting")


# ---------------------------------------------------------------------------
# Alert consumer — alert_queue → notification sink + console
# ---------------------------------------------------------------------------

async def alert_consumer(
    sink: SuppressingLogSink,
    shutdown_event: asyncio.Event,
    quiet: bool = False,
) -> None:
    logger.info("Alert consumer started")
    while not shutdown_event.is_set():
        try:
            alert: Alert = await asyncio.wait_for(
                pipeline.alert_queue.get(), timeout=0.5
            )
            pipeline.alert_queue.task_done()
            sink.notify(alert)
            if not quiet:
                _print_alert(alert)
        except asyncio.TimeoutError:
            continue
        except asyncio.CancelledError:
            break
    logger.info("Alert consumer exiting")


def _print_alert(alert: Alert) -> None:
    header = _colour(alert.note, f"[{alert.note.value}]")
    print(
        f"\n{header} src={alert.src!r} sub={alert.sub} unique={alert.unique}\n"
        f"  {_colour(alert.note, alert.msg)}\n"
        f"  id={alert.alert_id[:8]} identifier={alert.identifier}\n",
        flush=True,
    )


# ---------------------------------------------------------------------------
# Periodic reporter
# ---------------------------------------------------------------------------

async def metrics_reporter(
    detector: ScanDetector,
    shutdown_event: asyncio.Event,
    interval: float = 30.0,
) -> None:
    while not shutdown_event.is_set():
        await asyncio.sleep(interval)
        logger.info(
            "METRICS %s queues=%s counter=%s active=%d",
            METRICS.as_dict(),
            pipeline.queue_depths(),
            detector.counter.stats,
            detector.counter.active_count,
        )


async def _drain_and_stop(shutdown_event: asyncio.Event) -> None:
    """Let queued events and alerts finish, then request shutdown."""
    await asyncio.sleep(0)
    await pipeline.event_queue.join()
    await pipeline.alert_queue.join()
    logger.info("Input exhausted and queues drained")
    shutdown_event.set()


# ---------------------------------------------------------------------------
# Main entry point
# ---------------------------------------------------------------------------

async def run(stream: TextIO, cfg: Settings, quiet: bool = False) -> dict:
    shutdown_event = asyncio.Event()
    loop = asyncio.get_running_loop()

    init_queues(event_size=cfg.EVENT_QUEUE_SIZE, alert_size=cfg.ALERT_QUEUE_SIZE)

    def _signal_handler(_signum, _frame) -> None:
        logger.info("Shutdown signal received")
        loop.call_soon_threadsafe(shutdown_event.set)

    previous_handlers = {
        sig: signal.signal(sig, _signal_handler)
        for sig in (signal.SIGINT, signal.SIGTERM)
    }

    # Detection core
    buffer = BufferedSink()
    emitter = AlertEmitter(buffer, LocalityLookup(cfg.LOCAL_NETWORKS))
    counter = WindowedUniqueCounter()
    detector = ScanDetector.from_settings(cfg, emitter, counter=counter)
    sweeper = AggregateSweeper(counter, interval_seconds=cfg.SWEEP_INTERVAL_SECONDS)
    log_sink = SuppressingLogSink(suppress_seconds=cfg.ALERT_SUPPRESS_SECONDS)

    drain_tasks: list[asyncio.Task] = []

    def _on_eof() -> None:
        drain_tasks.append(loop.create_task(_drain_and_stop(shutdown_event)))

    source = EventSource(pipeline.event_queue, loop, stream, on_eof=_on_eof)
    source.start()

    tasks = [
        asyncio.create_task(
            detection_consumer(detector, buffer, shutdown_event), name="detection"
        ),
        asyncio.create_task(
            alert_consumer(log_sink, shutdown_event, quiet=quiet), name="alerts"
        ),
        asyncio.create_task(sweeper.run(), name="sweeper"),
        asyncio.create_task(metrics_reporter(detector, shutdown_event), name="metrics"),
    ]

    logger.info(
        "ScanWatch started — addr threshold=%d/%.0fs port threshold=%d/%.0fs",
        cfg.ADDR_SCAN_THRESHOLD, cfg.ADDR_SCAN_INTERVAL_SECONDS,
        cfg.PORT_SCAN_THRESHOLD, cfg.PORT_SCAN_INTERVAL_SECONDS,
    )

    await shutdown_event.wait()

    for t in tasks + drain_tasks:
        t.cancel()
    await asyncio.gather(*tasks, *drain_tasks, return_exceptions=True)
    source.stop()
    detector.reset()
    for sig, handler in previous_handlers.items():
        signal.signal(sig, handler)

    final = {
        "ingest":   METRICS.as_dict(),
        "detector": dict(detector.stats),
        "sink":     dict(log_sink.stats),
    }
    logger.info("Final stats — %s", final)
    logger.info("ScanWatch stopped cleanly at %s", time.strftime("%H:%M:%S"))
    return final


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="ScanWatch — address / port scan detection from connection events",
    )
    parser.add_argument(
        "--input", default="-",
        help="newline-delimited JSON connection events ('-' for stdin)",
    )
    parser.add_argument("--addr-threshold", type=int, default=None)
    parser.add_argument("--port-threshold", type=int, default=None)
    parser.add_argument("--quiet", action="store_true", help="don't print alerts to stdout")
    parser.add_argument(
        "--log-level", default=None,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
    )
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> NoReturn:
    args = _parse_args(argv)
    overrides = {}
    if args.addr_threshold is not None:
        overrides["ADDR_SCAN_THRESHOLD"] = args.addr_threshold
    if args.port_threshold is not None:
        overrides["PORT_SCAN_THRESHOLD"] = args.port_threshold
    try:
        cfg = Settings(**overrides)
    except ValidationError as e:
        print(f"ERROR: invalid configuration:\n{e}", file=sys.stderr)
        sys.exit(1)

    logging.basicConfig(
        level=getattr(logging, args.log_level or cfg.LOG_LEVEL.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )

    if args.input == "-":
        asyncio.run(run(sys.stdin, cfg, quiet=args.quiet))
    else:
        try:
            stream = open(args.input, encoding="utf-8")
        except OSError as e:
            print(f"ERROR: cannot open --input: {e}", file=sys.stderr)
            sys.exit(1)
        with stream:
            asyncio.run(run(stream, cfg, quiet=args.quiet))
    sys.exit(0)


if __name__ == "__main__":
    main()
