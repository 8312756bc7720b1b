"""
Key-Value Store Module

This module implements the shared in-memory key-value storage.

A single KVStore instance is owned by the process and handed by reference
to the server and the lifecycle controller. Connection handlers run on the
event loop while snapshot writes run in an executor thread, so every
operation takes the store lock for exactly one call.
"""

import threading
from typing import Dict, Iterable, List, Optional, Tuple


class KVStore:
    """
    Thread-safe in-memory mapping from string keys to string values.

    This class provides O(1) average-case time complexity for:
    - insert: Insert or replace a key-value pair
    - lookup: Retrieve a value by key
    - remove: Remove a key-value pair

    Whole-store operations (snapshot_view, clear_and_load) are O(n) and
    are atomic with respect to the single-key operations.

    Internal Storage:
        A plain dict guarded by one threading.Lock.
        Format: key -> value
    """

    def __init__(self, pairs: Optional[Iterable[Tuple[str, str]]] = None):
        """
        Initialize the KV store.

        Args:
            pairs: Optional initial contents
        """
        self._lock = threading.Lock()
        self._store: Dict[str, str] = dict(pairs) if pairs is not None else {}

    def insert(self, key: str, value: str) -> bool:
        """
        Insert or replace a key-value pair.

        Args:
            key: The key to store
            value: The value to associate with the key

        Returns:
            True if the key was newly created, False if an existing
            value was overwritten
        """
        with self._lock:
            created = key not in self._store
            self._store[key] = value
            return created

    def lookup(self, key: str) -> Optional[str]:
        """
        Retrieve the value for a given key.

        Args:
            key: The key to look up

        Returns:
            The value if found, None otherwise
        """
        with self._lock:
            return self._store.get(key)

    def remove(self, key: str) -> bool:
        """
        Remove a key-value pair.

        Args:
            key: The key to remove

        Returns:
            True if key was removed, False if key didn't exist
        """
        with self._lock:
            return self._store.pop(key, None) is not None

    def exists(self, key: str) -> bool:
        """Check if a key exists."""
        with self._lock:
            return key in self._store

    def size(self) -> int:
        """Get the current number of keys in the store."""
        with self._lock:
            return len(self._store)

    def snapshot_view(self) -> List[Tuple[str, str]]:
        """
        Take a consistent point-in-time copy of the store contents.

        Returns:
            List of (key, value) pairs, sorted by key
        """
        with self._lock:
            items = list(self._store.items())
        items.sort()
        return items

    def clear_and_load(self, pairs: Iterable[Tuple[str, str]]) -> None:
        """
        Replace the entire contents of the store.

        The new mapping is built before the lock is taken, so concurrent
        readers observe either the old contents or the new ones.

        Args:
            pairs: Iterable of (key, value) pairs; later duplicates win
        """
        fresh = dict(pairs)
        with self._lock:
            self._store = fresh

    def clear(self) -> None:
        """Remove all keys from the store."""
        self.clear_and_load(())

    def get_stats(self) -> Dict[str, int]:
        """
        Get statistics about the store.

        Returns:
            Dictionary containing:
            - total_keys: Total keys in store
            - total_bytes: Combined length of all keys and values
        """
        with self._lock:
            total = len(self._store)
            total_bytes = sum(len(k) + len(v) for k, v in self._store.items())

        return {
            "total_keys": total,
            "total_bytes": total_bytes,
        }
