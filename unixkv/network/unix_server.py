"""
Async Unix Socket Server Module

This module implements the asynchronous server for unixkv.

Each accepted connection runs handle_client() as its own coroutine:

    AwaitingLine -> Processing -> AwaitingLine -> ... -> Closed

A connection only ever suspends while waiting for its next line or for
its reply to drain, so a slow client delays nobody but itself. Clients
share nothing but the KVStore.
"""

import asyncio
import logging
import os
from asyncio import StreamReader, StreamWriter
from typing import Optional

from ..config.settings import settings
from ..protocol.commands import Response
from ..protocol.dispatcher import CommandDispatcher
from ..protocol.parser import ProtocolParser
from ..storage.store import KVStore

logger = logging.getLogger(__name__)


class ServerBindError(Exception):
    """
    The socket path could not be bound.

    Attributes:
        errno: OS error number when one is known, else None
    """

    def __init__(self, message: str, errno: Optional[int] = None):
        super().__init__(message)
        self.errno = errno


class KVServer:
    """
    Asynchronous Unix domain socket server for the unixkv service.

    Features:
    - Non-blocking I/O with asyncio
    - Persistent connections (multiple commands per connection)
    - One ProtocolParser per connection
    - Shared KVStore across all connections

    Usage:
        server = KVServer(socket_path='/tmp/unixkv.sock', store=store)
        await server.start()
        await server.serve_forever()

    Attributes:
        socket_path: Filesystem path of the listening socket
        store: The KVStore instance shared by all connections
        dispatcher: The CommandDispatcher executing commands on the store
    """

    def __init__(
            self,
            socket_path: str = None,
            store: KVStore = None,
            max_key_length: int = None,
    ):
        """
        Initialize the server.

        Args:
            socket_path: Socket file path (default from settings)
            store: KVStore instance (creates new one if not provided)
            max_key_length: Longest key SET accepts (default from settings)
        """
        self.socket_path = socket_path if socket_path is not None else settings.SOCKET_PATH
        self.store = store if store is not None else KVStore()
        self.dispatcher = CommandDispatcher(self.store, max_key_length=max_key_length)

        # Server state
        self._server: Optional[asyncio.Server] = None
        self._running = False
        self._connection_count = 0
        self._active_connections = 0
        self._total_requests = 0

    async def handle_client(
            self,
            reader: StreamReader,
            writer: StreamWriter
    ) -> None:
        """
        Handle a single client connection.

        Reads one line at a time, runs it through a connection-local
        parser and the shared dispatcher, and writes exactly one reply
        per line. The reply is drained before the next line is read.

        Args:
            reader: StreamReader for reading from the client
            writer: StreamWriter for writing to the client
        """
        self._connection_count += 1
        self._active_connections += 1
        conn_id = self._connection_count
        parser = ProtocolParser()
        logger.debug(f"Client {conn_id} connected")

        try:
            while True:
                data = await reader.readline()
                if not data:
                    logger.debug(f"Client {conn_id} disconnected")
                    break

                try:
                    line = data.decode("utf-8")
                except UnicodeDecodeError:
                    reply = parser.format_response(Response.error("Invalid Encoding"))
                else:
                    if line.endswith("\n"):
                        line = line[:-1]
                    if line.endswith("\r"):
                        line = line[:-1]

                    logger.debug(f"Received from {conn_id}: {line}")
                    self._total_requests += 1
                    reply = self.dispatcher.execute(line, parser)

                writer.write(reply.encode("utf-8"))
                await writer.drain()

        except ValueError as exc:
            # readline() raises ValueError when a line exceeds the stream limit
            logger.warning(f"Closing client {conn_id}: {exc}")
        except ConnectionError as exc:
            logger.debug(f"Connection error on client {conn_id}: {exc}")
        except Exception as exc:  # Log unexpected errors but keep server alive
            logger.exception(f"Error handling client {conn_id}: {exc}")
        finally:
            self._active_connections -= 1
            try:
                writer.close()
                await writer.wait_closed()
            except ConnectionError:
                pass

    async def start(self) -> None:
        """
        Bind the socket and begin accepting connections.

        Any file already present at socket_path is removed first.

        Raises:
            ServerBindError: If the socket cannot be created
        """
        if self._running:
            return

        try:
            os.unlink(self.socket_path)
        except FileNotFoundError:
            pass
        except OSError as exc:
            raise ServerBindError(
                f"Cannot remove existing {self.socket_path}: {exc.strerror or exc}",
                errno=exc.errno,
            ) from exc

        try:
            self._server = await asyncio.start_unix_server(
                self.handle_client,
                path=self.socket_path,
                limit=settings.READ_BUFFER_SIZE,
            )
        except OSError as exc:
            raise ServerBindError(
                f"Cannot bind {self.socket_path}: {exc.strerror or exc}",
                errno=exc.errno,
            ) from exc

        self._running = True
        logger.info(f"Listening on {self.socket_path}")

    async def serve_forever(self) -> None:
        """
        Run the accept loop until cancelled or stopped.

        Example:
            server = KVServer(socket_path='/tmp/unixkv.sock')
            await server.start()
            await server.serve_forever()
        """
        if self._server is None:
            await self.start()

        try:
            await self._server.serve_forever()
        except asyncio.CancelledError:
            # Expected during shutdown/fixture cleanup
            logger.debug("Accept loop cancelled")

    async def stop(self) -> None:
        """
        Stop accepting connections and remove the socket file.

        Connections that are already open are left to finish on their own;
        stop() waits for them at most settings.SHUTDOWN_GRACE seconds.
        """
        if self._server is None:
            return

        self._server.close()
        try:
            await asyncio.wait_for(self._server.wait_closed(), timeout=settings.SHUTDOWN_GRACE)
        except asyncio.TimeoutError:
            logger.info(f"{self._active_connections} connection(s) still open at shutdown")
        finally:
            self._server = None
            self._running = False
            try:
                os.unlink(self.socket_path)
            except FileNotFoundError:
                pass

    def is_running(self) -> bool:
        """Check if the server is currently accepting connections."""
        return self._running

    def get_stats(self) -> dict:
        """
        Get server statistics.

        Returns:
            Dictionary with server stats including connection counts,
            request counts, and store statistics.
        """
        return {
            "running": self._running,
            "socket_path": self.socket_path,
            "total_connections": self._connection_count,
            "active_connections": self._active_connections,
            "total_requests": self._total_requests,
            "store_stats": self.store.get_stats(),
        }
