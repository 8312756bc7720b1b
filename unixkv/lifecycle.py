"""
Lifecycle Controller Module

Owns the store's persistence over the life of the process:

    STARTING -> RUNNING -> DRAINING -> STOPPED

- STARTING: load the snapshot if one is configured. A missing file
  means a fresh store; any other failure is fatal.
- RUNNING: write a snapshot every save_interval seconds. Failed writes
  are logged and retried on the next tick.
- DRAINING: on shutdown, stop the timer and write one last snapshot.
- STOPPED: terminal.

Without a db_file, persistence is disabled entirely.
"""

import asyncio
import logging
from enum import Enum
from typing import Optional

from .config.settings import settings
from .storage.snapshot import SnapshotCodec, SnapshotError, SnapshotNotFoundError
from .storage.store import KVStore

logger = logging.getLogger(__name__)


class LifecycleState(Enum):
    """Enumeration of lifecycle states."""
    STARTING = "starting"
    RUNNING = "running"
    DRAINING = "draining"
    STOPPED = "stopped"


class LifecycleController:
    """
    Loads, periodically saves and finally saves the shared KVStore.

    Usage:
        lifecycle = LifecycleController(store, db_file="/var/lib/unixkv.db")
        lifecycle.load()           # raises on a corrupt/unreadable snapshot
        lifecycle.start()          # spawns the periodic save task
        ...
        await lifecycle.shutdown()  # final snapshot

    Attributes:
        store: The KVStore shared with the server
        db_file: Snapshot path, or None to disable persistence
        save_interval: Seconds between periodic snapshots
        codec: SnapshotCodec used for reading and writing
    """

    def __init__(
            self,
            store: KVStore,
            db_file: Optional[str] = None,
            save_interval: float = None,
            codec: SnapshotCodec = None,
    ):
        self.store = store
        self.db_file = db_file
        self.save_interval = (
            save_interval if save_interval is not None else settings.SAVE_INTERVAL
        )
        self.codec = codec if codec is not None else SnapshotCodec()

        self.state = LifecycleState.STARTING
        self._save_task: Optional[asyncio.Task] = None
        self._save_lock = asyncio.Lock()
        self._saves = 0
        self._failed_saves = 0

    @property
    def persistence_enabled(self) -> bool:
        return self.db_file is not None

    def load(self) -> int:
        """
        Load the configured snapshot into the store.

        Returns:
            Number of keys loaded (0 when persistence is disabled or no
            snapshot exists yet)

        Raises:
            SnapshotIOError: If the snapshot exists but cannot be read
            SnapshotParseError: If the snapshot is malformed
        """
        if not self.persistence_enabled:
            return 0

        try:
            count = self.codec.load_into(self.store, self.db_file)
        except SnapshotNotFoundError:
            logger.info(f"No snapshot at {self.db_file}, starting with an empty store")
            return 0

        logger.info(f"Loaded {count} keys from {self.db_file}")
        return count

    def start(self) -> None:
        """Enter RUNNING and start the periodic save task if persistence is on."""
        if self.state != LifecycleState.STARTING:
            return

        self.state = LifecycleState.RUNNING
        if self.persistence_enabled:
            self._save_task = asyncio.create_task(self._run_periodic_save())

    async def save(self) -> bool:
        """
        Write a snapshot of the store to db_file.

        The write runs in the default executor so connections keep being
        served meanwhile. Failures are logged, never raised.

        Returns:
            True if the snapshot was written
        """
        if not self.persistence_enabled:
            return False

        loop = asyncio.get_running_loop()
        async with self._save_lock:
            try:
                count = await loop.run_in_executor(
                    None, self.codec.write_to_path, self.store, self.db_file
                )
            except SnapshotError as exc:
                self._failed_saves += 1
                logger.error(f"[db-save] Error: {exc}")
                return False

        self._saves += 1
        logger.debug(f"[db-save] Saved {count} keys to {self.db_file}")
        return True

    async def _run_periodic_save(self) -> None:
        while True:
            await asyncio.sleep(self.save_interval)
            await self.save()

    async def shutdown(self) -> None:
        """
        Drain: stop the timer, write one final snapshot, then stop.

        Safe to call more than once.
        """
        if self.state in (LifecycleState.DRAINING, LifecycleState.STOPPED):
            return

        self.state = LifecycleState.DRAINING
        logger.info("Shutting down, writing final snapshot")

        if self._save_task is not None:
            # Never cancel in the middle of a write
            async with self._save_lock:
                self._save_task.cancel()
            try:
                await self._save_task
            except asyncio.CancelledError:
                pass
            self._save_task = None

        await self.save()
        self.state = LifecycleState.STOPPED

    def get_stats(self) -> dict:
        return {
            "state": self.state.value,
            "db_file": self.db_file,
            "saves": self._saves,
            "failed_saves": self._failed_saves,
        }
