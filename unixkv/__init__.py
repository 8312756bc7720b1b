"""
unixkv: In-Memory Key-Value Store

A small in-memory key-value server built with Python asyncio,
speaking a line-based text protocol over a Unix domain socket and
periodically snapshotting its contents to a key-file on disk.
"""

__version__ = "1.0.0"
