#!/usr/bin/env python3
"""
unixkv Server Entry Point

This is the main entry point for starting the unixkv server.

Usage:
    python -m unixkv.server                          # Default socket, no persistence
    python -m unixkv.server -p /run/unixkv.sock      # Custom socket path
    python -m unixkv.server -f /var/lib/unixkv.db    # Enable snapshots
    python -m unixkv.server --debug                  # Enable debug logging

Environment Variables:
    UNIXKV_SOCKET_PATH    - Socket file path
    UNIXKV_DB_FILE        - Snapshot file path
    UNIXKV_SAVE_INTERVAL  - Seconds between snapshots
    UNIXKV_DEBUG          - Enable debug mode (true/false)
    UNIXKV_LOG_LEVEL      - Log level when not in debug mode

Exit codes:
    0       clean shutdown
    2       invalid command line arguments
    errno   socket bind failure or unreadable/corrupt snapshot (1 if unknown)
"""

import argparse
import asyncio
import logging
import signal
import sys
from typing import List, Optional

from .config.settings import settings
from .lifecycle import LifecycleController
from .network.unix_server import KVServer, ServerBindError
from .storage.snapshot import SnapshotError
from .storage.store import KVStore

logger = logging.getLogger(__name__)


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="unixkv: In-Memory Key-Value Store Server",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )

    parser.add_argument(
        "-p", "--socket-path",
        type=str,
        default=settings.SOCKET_PATH,
        metavar="PATH",
        help="Path to file where the unix socket will be created",
    )

    parser.add_argument(
        "-f", "--db-file",
        type=str,
        default=settings.DB_FILE,
        metavar="FILE",
        help="Path to file where database state will be saved",
    )

    parser.add_argument(
        "--save-interval",
        type=float,
        default=settings.SAVE_INTERVAL,
        metavar="SECONDS",
        help="Seconds between periodic snapshots",
    )

    parser.add_argument(
        "--max-key-length",
        type=int,
        default=settings.MAX_KEY_LENGTH,
        help="Longest key accepted by SET",
    )

    parser.add_argument(
        "--debug",
        action="store_true",
        default=settings.DEBUG,
        help="Enable debug logging",
    )

    args = parser.parse_args(argv)
    if args.save_interval <= 0:
        parser.error("--save-interval must be positive")
    return args


def setup_logging(debug: bool = False) -> None:
    """Configure logging based on debug flag."""
    level = logging.DEBUG if debug else getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO)

    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[
            logging.StreamHandler(sys.stdout),
        ]
    )


def _exit_code(exc: Exception) -> int:
    return getattr(exc, "errno", None) or 1


async def run(args: argparse.Namespace) -> int:
    """
    Run the server until SIGINT/SIGTERM.

    Returns:
        Process exit code
    """
    store = KVStore()
    lifecycle = LifecycleController(
        store,
        db_file=args.db_file,
        save_interval=args.save_interval,
    )

    try:
        lifecycle.load()
    except SnapshotError as exc:
        logger.error(f"Cannot load snapshot: {exc}")
        return _exit_code(exc)

    server = KVServer(
        socket_path=args.socket_path,
        store=store,
        max_key_length=args.max_key_length,
    )

    try:
        await server.start()
    except ServerBindError as exc:
        logger.error(str(exc))
        return _exit_code(exc)

    shutdown_event = asyncio.Event()
    loop = asyncio.get_running_loop()

    def request_shutdown(sig: signal.Signals) -> None:
        logger.info(f"Received signal {sig.name}, initiating shutdown...")
        shutdown_event.set()

    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(sig, request_shutdown, sig)

    lifecycle.start()
    serve_task = asyncio.create_task(server.serve_forever())

    try:
        await shutdown_event.wait()
    finally:
        await lifecycle.shutdown()
        await server.stop()
        serve_task.cancel()
        await asyncio.gather(serve_task, return_exceptions=True)
        for sig in (signal.SIGTERM, signal.SIGINT):
            loop.remove_signal_handler(sig)

    logger.info("Server shutdown complete")
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the server."""
    args = parse_args(argv)
    setup_logging(debug=args.debug)

    logger.info("Starting unixkv server")
    logger.info(f"  Socket: {args.socket_path}")
    logger.info(f"  Snapshot: {args.db_file or 'disabled'}")
    logger.info(f"  Debug: {args.debug}")

    return asyncio.run(run(args))


if __name__ == "__main__":
    sys.exit(main())
