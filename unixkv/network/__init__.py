"""Network module for unixkv."""

from .unix_server import KVServer, ServerBindError

__all__ = ["KVServer", "ServerBindError"]
