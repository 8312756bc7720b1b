"""Configuration module for unixkv."""

from .settings import Settings, settings

__all__ = ["Settings", "settings"]
