"""
unixkv Configuration Settings

This module contains all configuration constants for the unixkv server.
Values can be overridden through environment variables or CLI flags.
"""

import os
from dataclasses import dataclass
from typing import Optional


@dataclass
class Settings:
    """Server configuration settings."""

    # Network settings
    SOCKET_PATH: str = os.environ.get("UNIXKV_SOCKET_PATH", "/tmp/unixkv.sock")

    # Store settings
    MAX_KEY_LENGTH: int = 256

    # Persistence settings
    DB_FILE: Optional[str] = os.environ.get("UNIXKV_DB_FILE") or None
    SAVE_INTERVAL: int = int(os.environ.get("UNIXKV_SAVE_INTERVAL", "30"))  # Seconds between snapshots
    SNAPSHOT_SECTION: str = "database"

    # Connection settings
    READ_BUFFER_SIZE: int = 64 * 1024  # Also the longest accepted request line
    SHUTDOWN_GRACE: float = 1.0  # Seconds stop() waits for open connections

    # Logging settings
    DEBUG: bool = os.environ.get("UNIXKV_DEBUG", "false").lower() == "true"
    LOG_LEVEL: str = os.environ.get("UNIXKV_LOG_LEVEL", "INFO")


# Global settings instance
settings = Settings()
