"""
Tests for the Lifecycle Controller

These tests verify LifecycleController:
- load(): startup snapshot handling (missing file is fine, bad file is fatal)
- start() / save(): periodic snapshots that survive write failures
- shutdown(): final snapshot and state transitions

Run with: python -m pytest tests/test_lifecycle.py -v
"""

import asyncio
import logging
import os

import pytest
from unixkv.lifecycle import LifecycleController, LifecycleState
from unixkv.storage.snapshot import SnapshotCodec, SnapshotIOError, SnapshotParseError
from unixkv.storage.store import KVStore


@pytest.fixture
def db_file(tmp_path) -> str:
    return str(tmp_path / "db.ini")


class TestLoad:
    """Test startup loading."""

    def test_load_without_db_file(self, store: KVStore):
        lifecycle = LifecycleController(store)
        assert lifecycle.persistence_enabled is False
        assert lifecycle.load() == 0

    def test_load_missing_snapshot_is_not_an_error(self, store: KVStore, db_file: str):
        lifecycle = LifecycleController(store, db_file=db_file)
        assert lifecycle.load() == 0
        assert store.size() == 0
        assert lifecycle.state == LifecycleState.STARTING

    def test_load_existing_snapshot(self, store: KVStore, db_file: str):
        with open(db_file, "wb") as f:
            f.write(b"[database]\nkey1=hello\nkey2=world\n")

        lifecycle = LifecycleController(store, db_file=db_file)
        assert lifecycle.load() == 2
        assert store.lookup("key1") == "hello"

    def test_load_corrupt_snapshot_raises(self, store: KVStore, db_file: str):
        with open(db_file, "wb") as f:
            f.write(b"this is not a snapshot\n")

        lifecycle = LifecycleController(store, db_file=db_file)
        with pytest.raises(SnapshotParseError):
            lifecycle.load()

    def test_load_unreadable_snapshot_raises(self, store: KVStore, tmp_path):
        lifecycle = LifecycleController(store, db_file=str(tmp_path))
        with pytest.raises(SnapshotIOError):
            lifecycle.load()


@pytest.mark.asyncio
class TestSave:
    """Test manual and periodic saves."""

    async def test_save_writes_snapshot(self, store: KVStore, db_file: str):
        store.insert("name", "Alice")
        lifecycle = LifecycleController(store, db_file=db_file)

        assert await lifecycle.save() is True
        assert SnapshotCodec().read_from_path(db_file) == [("name", "Alice")]
        assert lifecycle.get_stats()["saves"] == 1

    async def test_save_without_db_file(self, store: KVStore):
        lifecycle = LifecycleController(store)
        assert await lifecycle.save() is False

    async def test_save_failure_is_logged_not_raised(self, store: KVStore, tmp_path, caplog):
        lifecycle = LifecycleController(store, db_file=str(tmp_path / "missing" / "db.ini"))

        with caplog.at_level(logging.ERROR, logger="unixkv.lifecycle"):
            assert await lifecycle.save() is False

        assert "[db-save] Error" in caplog.text
        assert lifecycle.get_stats()["failed_saves"] == 1

    async def test_periodic_save(self, store: KVStore, db_file: str):
        lifecycle = LifecycleController(store, db_file=db_file, save_interval=0.05)
        lifecycle.start()
        assert lifecycle.state == LifecycleState.RUNNING

        store.insert("k", "v")
        await asyncio.sleep(0.3)
        try:
            assert SnapshotCodec().read_from_path(db_file) == [("k", "v")]
        finally:
            await lifecycle.shutdown()

    async def test_periodic_save_survives_failures(self, store: KVStore, tmp_path):
        target_dir = tmp_path / "later"
        db_file = str(target_dir / "db.ini")
        store.insert("k", "v")

        lifecycle = LifecycleController(store, db_file=db_file, save_interval=0.05)
        lifecycle.start()
        try:
            await asyncio.sleep(0.2)
            assert lifecycle.get_stats()["failed_saves"] >= 1

            os.mkdir(target_dir)
            await asyncio.sleep(0.3)
            assert os.path.exists(db_file)
        finally:
            await lifecycle.shutdown()

    async def test_start_without_db_file_schedules_nothing(self, store: KVStore):
        lifecycle = LifecycleController(store, save_interval=0.01)
        lifecycle.start()
        await asyncio.sleep(0.05)
        await lifecycle.shutdown()
        assert lifecycle.get_stats()["saves"] == 0


@pytest.mark.asyncio
class TestShutdown:
    """Test draining."""

    async def test_shutdown_writes_final_snapshot(self, store: KVStore, db_file: str):
        lifecycle = LifecycleController(store, db_file=db_file, save_interval=3600)
        lifecycle.start()

        store.insert("last", "write")
        await lifecycle.shutdown()

        assert lifecycle.state == LifecycleState.STOPPED
        assert SnapshotCodec().read_from_path(db_file) == [("last", "write")]

    async def test_shutdown_is_idempotent(self, store: KVStore, db_file: str):
        lifecycle = LifecycleController(store, db_file=db_file, save_interval=3600)
        lifecycle.start()

        await lifecycle.shutdown()
        await lifecycle.shutdown()

        assert lifecycle.get_stats()["saves"] == 1

    async def test_shutdown_without_db_file_writes_nothing(self, store: KVStore, tmp_path):
        lifecycle = LifecycleController(store)
        lifecycle.start()
        await lifecycle.shutdown()

        assert lifecycle.state == LifecycleState.STOPPED
        assert os.listdir(tmp_path) == []

    async def test_shutdown_failure_still_stops(self, store: KVStore, tmp_path):
        lifecycle = LifecycleController(store, db_file=str(tmp_path / "no" / "db.ini"))
        lifecycle.start()
        await lifecycle.shutdown()
        assert lifecycle.state == LifecycleState.STOPPED
