"""
Block tracker CLI entry point.

Follow the head of a chain through a JSON-RPC endpoint and print every block
that joins or leaves the canonical chain.

Usage::

    python -m blocktracker --endpoint http://localhost:8545
    python -m blocktracker --endpoint http://localhost:8545 --reconcile
    python -m blocktracker --reconcile --poll-interval 2 --api-port 5080

Options:
    --endpoint            JSON-RPC endpoint (default: $BLOCKTRACKER_ENDPOINT or infura)
    --reconcile           Detect reorgs and backfill gaps instead of printing raw heads
    --poll-interval       Seconds between head requests (default: 4)
    --history-size        Blocks retained for reorg detection (default: 10)
    --max-backfill-depth  Ancestor fetches allowed per head (default: 64)
    --api-port            Port for the status API, 0 to disable (default: 0)
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import os
import signal
import sys
from typing import TextIO

import httpx
from pydantic import ValidationError

from blocktracker.api import ApiServer, ApiServerConfig
from blocktracker.chain import Block
from blocktracker.rpc import DEFAULT_ENDPOINT, JsonRpcBlockClient
from blocktracker.tracker import (
    BLOCK_POLL_INTERVAL,
    MAX_BACKFILL_DEPTH,
    MAX_HISTORY_BLOCKS,
    BlockTracker,
    ChainEvent,
    HeadEvent,
    TrackerConfig,
    TrackerEvent,
)

ENDPOINT_ENV = "BLOCKTRACKER_ENDPOINT"
"""Environment variable overriding the default endpoint."""

logger = logging.getLogger(__name__)


def format_block(block: Block) -> str:
    """Render a block as `<number>: <hash>`, or just the hash if unnumbered."""
    number = getattr(block, "number", None)
    if number is None:
        return block.hash.to_hex()
    return f"{number}: {block.hash.to_hex()}"


def format_event(event: TrackerEvent) -> list[str]:
    """
    Render an event as output lines.

    Head-only events print the bare block. Chain events print removals first
    (prefixed `-`) and additions after (prefixed `+`), matching the order in
    which the history was changed.
    """
    match event:
        case HeadEvent(block=block):
            return [format_block(block)]
        case ChainEvent(added=added, removed=removed):
            lines = [f"- {format_block(block)}" for block in removed]
            lines.extend(f"+ {format_block(block)}" for block in added)
            return lines
        case _:
            raise TypeError(f"Unknown event type: {type(event).__name__}")


async def consume_events(tracker: BlockTracker, out: TextIO = sys.stdout) -> None:
    """Print events from the tracker's queue until cancelled."""
    while True:
        event = await tracker.events.get()
        for line in format_event(event):
            print(line, file=out, flush=True)
        tracker.events.task_done()


class ColoredFormatter(logging.Formatter):
    """Logging formatter with ANSI colors for better readability."""

    GREY = "\x1b[38;5;244m"
    BLUE = "\x1b[38;5;39m"
    GREEN = "\x1b[38;5;40m"
    YELLOW = "\x1b[38;5;220m"
    RED = "\x1b[38;5;196m"
    BOLD_RED = "\x1b[38;5;196;1m"
    CYAN = "\x1b[38;5;51m"
    RESET = "\x1b[0m"

    LEVEL_COLORS = {
        logging.DEBUG: GREY,
        logging.INFO: GREEN,
        logging.WARNING: YELLOW,
        logging.ERROR: RED,
        logging.CRITICAL: BOLD_RED,
    }

    def format(self, record: logging.LogRecord) -> str:
        """Format log record with colors."""
        color = self.LEVEL_COLORS.get(record.levelno, self.RESET)
        timestamp = f"{self.CYAN}{self.formatTime(record, self.datefmt)}{self.RESET}"
        levelname = f"{color}{record.levelname:8}{self.RESET}"
        name = f"{self.BLUE}{record.name}{self.RESET}"
        return f"{timestamp} {levelname} {name}: {record.getMessage()}"


def setup_logging(verbose: bool = False, no_color: bool = False) -> None:
    """
    Configure logging for the tracker.

    Logs go to stderr so stdout carries only the block stream.
    """
    level = logging.DEBUG if verbose else logging.INFO

    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)

    if no_color:
        formatter = logging.Formatter(
            "%(asctime)s %(levelname)-8s %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
    else:
        formatter = ColoredFormatter(datefmt="%Y-%m-%d %H:%M:%S")

    handler.setFormatter(formatter)

    root = logging.getLogger()
    root.setLevel(level)
    root.addHandler(handler)

    # httpx logs every request at INFO; one per poll tick is noise.
    logging.getLogger("httpx").setLevel(logging.DEBUG if verbose else logging.WARNING)


async def run_tracker(
    endpoint: str,
    reconcile: bool,
    config: TrackerConfig,
    api_port: int = 0,
    install_signal_handlers: bool = True,
    *,
    shutdown: asyncio.Event | None = None,
    out: TextIO | None = None,
    http_client: httpx.AsyncClient | None = None,
) -> None:
    """
    Run the tracker until SIGINT or SIGTERM, or until output fails.

    The tracker and the event consumer run as sibling tasks. If the consumer
    dies (for example on a closed stdout pipe) the tracker is cancelled,
    since it would otherwise block forever handing off the next event.

    Args:
        endpoint: JSON-RPC endpoint to poll.
        reconcile: Whether to reconcile heads or print them raw.
        config: Tracker settings.
        api_port: Port for the status API. Zero disables it.
        install_signal_handlers: Whether to handle SIGINT/SIGTERM.
            Disable for testing or non-main threads.
        shutdown: Event that stops the tracker when set. A new one is
            created if omitted.
        out: Stream receiving the block lines. Defaults to stdout.
        http_client: Pre-built HTTP client for the JSON-RPC connection.
    """
    if shutdown is None:
        shutdown = asyncio.Event()

    if install_signal_handlers:
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, shutdown.set)

    async with JsonRpcBlockClient(endpoint, http_client=http_client) as client:
        tracker = BlockTracker(client=client, reconcile=reconcile, config=config)
        logger.info("Tracking %s", endpoint)

        api_server: ApiServer | None = None
        if api_port:
            api_server = ApiServer(
                config=ApiServerConfig(port=api_port),
                tracker_getter=lambda: tracker,
            )
            await api_server.start()

        tracker_task = asyncio.create_task(tracker.start(shutdown))
        consumer = asyncio.create_task(
            consume_events(tracker, out if out is not None else sys.stdout)
        )
        try:
            await asyncio.wait([tracker_task, consumer], return_when=asyncio.FIRST_COMPLETED)

            if consumer.done() and not consumer.cancelled():
                logger.error("Event output failed, stopping: %r", consumer.exception())
                shutdown.set()
        finally:
            consumer.cancel()
            tracker_task.cancel()
            tracker_result, _ = await asyncio.gather(
                tracker_task, consumer, return_exceptions=True
            )
            if api_server is not None:
                await api_server.aclose()

        if isinstance(tracker_result, Exception):
            raise tracker_result


def build_parser() -> argparse.ArgumentParser:
    """Build the command-line parser."""
    parser = argparse.ArgumentParser(
        prog="blocktracker",
        description="Follow a chain head and report added and removed blocks",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument(
        "--endpoint",
        default=os.environ.get(ENDPOINT_ENV, DEFAULT_ENDPOINT),
        help="JSON-RPC endpoint",
    )
    parser.add_argument(
        "--reconcile",
        action="store_true",
        help="Reconcile blocks (detect reorgs, backfill gaps)",
    )
    parser.add_argument(
        "--poll-interval",
        type=float,
        default=BLOCK_POLL_INTERVAL,
        help="Seconds between head requests",
    )
    parser.add_argument(
        "--history-size",
        type=int,
        default=MAX_HISTORY_BLOCKS,
        help="Blocks retained for reorg detection",
    )
    parser.add_argument(
        "--max-backfill-depth",
        type=int,
        default=MAX_BACKFILL_DEPTH,
        help="Ancestor fetches allowed per observed head",
    )
    parser.add_argument(
        "--api-port",
        type=int,
        default=0,
        help="Port for the status API (0 disables it)",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable debug logging",
    )
    parser.add_argument(
        "--no-color",
        action="store_true",
        help="Disable colored log output",
    )
    return parser


def main(argv: list[str] | None = None) -> None:
    """CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        config = TrackerConfig(
            poll_interval=args.poll_interval,
            history_size=args.history_size,
            max_backfill_depth=args.max_backfill_depth,
        )
    except ValidationError as exc:
        parser.error(str(exc))

    setup_logging(verbose=args.verbose, no_color=args.no_color)

    try:
        asyncio.run(
            run_tracker(
                endpoint=args.endpoint,
                reconcile=args.reconcile,
                config=config,
                api_port=args.api_port,
            )
        )
    except KeyboardInterrupt:
        logger.info("Interrupted")


if __name__ == "__main__":
    main()
