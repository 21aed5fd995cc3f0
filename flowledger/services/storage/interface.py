"""
Abstract Storage Interface

The backing store is a plain string key-value store, the same shape as
browser localStorage. Everything above it (encryption, per-user keys,
legacy migration) is written against this interface, so the store can be:
1. In-memory for tests
2. A JSON file on disk
3. Any other persistent store with get/set/delete

The interface is intentionally small. There is one logical writer at a
time, so no locking or versioning is defined: the last write wins.
"""

from abc import ABC, abstractmethod
from typing import Iterator, Optional


class KeyValueStore(ABC):
    """
    Abstract string key-value store.

    Any storage backend must implement these methods.
    """

    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        """
        Read the raw value stored under a key.

        Args:
            key: Exact storage key

        Returns:
            The stored string, or None if nothing is stored there

        Raises:
            StorageError: If the backend cannot be read
        """
        pass

    @abstractmethod
    def set(self, key: str, value: str) -> None:
        """
        Store a value, overwriting whatever was there.

        Raises:
            StorageError: If the write fails
        """
        pass

    @abstractmethod
    def delete(self, key: str) -> bool:
        """
        Remove a key.

        Returns:
            True if something was removed, False if the key was absent
        """
        pass

    @abstractmethod
    def keys(self, prefix: str = "") -> Iterator[str]:
        """
        Iterate over stored keys starting with `prefix`.
        """
        pass

    def contains(self, key: str) -> bool:
        """Check whether anything is stored under `key`."""
        return self.get(key) is not None


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class StorageConnectionError(StorageError):
    """Could not reach or open the storage backend."""
    pass


class RekeyError(StorageError):
    """A collection could not be re-encrypted under a new secret."""
    pass
