"""
Pytest Configuration and Fixtures

This module provides shared fixtures and configuration for all tests.
"""

import asyncio
import os
import shutil
import tempfile
from typing import AsyncGenerator, Iterator

import pytest
import pytest_asyncio

from unixkv.network.unix_server import KVServer
from unixkv.protocol.dispatcher import CommandDispatcher
from unixkv.protocol.parser import ProtocolParser
from unixkv.storage.snapshot import SnapshotCodec
from unixkv.storage.store import KVStore


# ============================================================================
# Storage Fixtures
# ============================================================================

@pytest.fixture
def store() -> KVStore:
    """Create a fresh, empty KVStore."""
    return KVStore()


@pytest.fixture
def codec() -> SnapshotCodec:
    """Create a SnapshotCodec using the default section."""
    return SnapshotCodec()


# ============================================================================
# Protocol Fixtures
# ============================================================================

@pytest.fixture
def parser() -> ProtocolParser:
    """Create a ProtocolParser instance."""
    return ProtocolParser()


@pytest.fixture
def dispatcher(store: KVStore) -> CommandDispatcher:
    """Create a CommandDispatcher bound to the store fixture (max key length 16)."""
    return CommandDispatcher(store, max_key_length=16)


# ============================================================================
# Server Fixtures
# ============================================================================

@pytest.fixture
def socket_dir() -> Iterator[str]:
    """
    Short-lived directory for socket files.

    Unix socket paths are limited to ~100 bytes, which pytest's tmp_path
    can exceed, so this lives directly under the system temp dir.
    """
    path = tempfile.mkdtemp(prefix="ukv")
    yield path
    shutil.rmtree(path, ignore_errors=True)


@pytest.fixture
def socket_path(socket_dir: str) -> str:
    """Socket path for the server under test."""
    return os.path.join(socket_dir, "kv.sock")


@pytest_asyncio.fixture
async def server(socket_path: str, store: KVStore) -> AsyncGenerator[KVServer, None]:
    """
    Create and start a server instance for testing.

    This fixture:
    1. Binds a KVServer on a temporary socket path, sharing the store fixture
    2. Runs the accept loop in a background task
    3. Yields the server for testing
    4. Cleans up after the test
    """
    srv = KVServer(socket_path=socket_path, store=store, max_key_length=16)
    await srv.start()
    server_task = asyncio.create_task(srv.serve_forever())

    yield srv

    await srv.stop()
    server_task.cancel()
    try:
        await server_task
    except asyncio.CancelledError:
        pass


# ============================================================================
# Client Fixtures
# ============================================================================

class AsyncClient:
    """
    Helper class for testing server interactions.

    Usage:
        async with AsyncClient(socket_path) as client:
            response = await client.send_command("SET key value")
            assert response == "OK"
    """

    def __init__(self, socket_path: str):
        self.socket_path = socket_path
        self.reader = None
        self.writer = None

    async def connect(self) -> None:
        """Establish connection to server."""
        self.reader, self.writer = await asyncio.open_unix_connection(self.socket_path)

    async def disconnect(self) -> None:
        """Close connection to server."""
        if self.writer:
            self.writer.close()
            try:
                await self.writer.wait_closed()
            except ConnectionError:
                pass

    async def send_raw(self, command: str) -> str:
        """Send a command and return the reply line including its CRLF."""
        if not command.endswith('\n'):
            command += '\n'

        self.writer.write(command.encode())
        await self.writer.drain()

        response = await asyncio.wait_for(self.reader.readline(), timeout=5)
        return response.decode()

    async def send_command(self, command: str) -> str:
        """Send a command and return the reply without its line terminator."""
        response = await self.send_raw(command)
        assert response.endswith("\r\n"), f"reply not CRLF-terminated: {response!r}"
        return response[:-2]

    async def __aenter__(self):
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.disconnect()


@pytest.fixture
def client_factory(socket_path: str):
    """
    Factory fixture to create test clients.

    Usage:
        async def test_something(server, client_factory):
            async with client_factory() as client:
                response = await client.send_command("GET key")
    """
    def factory() -> AsyncClient:
        return AsyncClient(socket_path)
    return factory


# ============================================================================
# Pytest Configuration
# ============================================================================

def pytest_configure(config):
    """Configure custom pytest markers."""
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')"
    )
    config.addinivalue_line(
        "markers", "integration: marks tests as integration tests"
    )
