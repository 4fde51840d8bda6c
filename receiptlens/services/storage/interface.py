"""
Abstract Record Store Interface

DESIGN DECISION: Every component reads and writes through this interface.
This allows us to:
1. Use an in-memory store in tests
2. Use a durable file-backed store in production
3. Keep ledger rules decoupled from the storage medium

The interface is intentionally tiny - a key-value store of opaque
string blobs. All JSON encoding and decoding happens in the callers.
There is no transaction primitive.
"""

from abc import ABC, abstractmethod
from typing import Optional


class RecordStore(ABC):
    """
    Abstract key-value blob store.

    Any storage implementation (in-memory, files, browser storage
    bridge, etc.) must implement these methods. All calls are
    synchronous.
    """

    @abstractmethod
    def read(self, key: str) -> Optional[str]:
        """
        Read a blob.

        Args:
            key: Blob name (e.g. 'expenses')

        Returns:
            The stored blob, or None if nothing is stored under the key

        Raises:
            StorageUnavailable: If the medium cannot be read at all
        """
        pass

    @abstractmethod
    def write(self, key: str, blob: str) -> None:
        """
        Write (overwrite) a blob.

        Durable until removed or overwritten.

        Raises:
            StorageUnavailable: If the medium is full or disabled.
                The write must be treated as not applied.
        """
        pass

    @abstractmethod
    def remove(self, key: str) -> None:
        """
        Remove a blob. Removing a missing key is not an error.

        Raises:
            StorageUnavailable: If the medium cannot be modified
        """
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class StorageUnavailable(StorageError):
    """The record store could not complete a read or write."""

    def __init__(self, key: str, message: str):
        self.key = key
        super().__init__(f"Storage unavailable for '{key}': {message}")


class ConcurrentModificationError(StorageError):
    """A blob changed between the read and the write of one operation."""

    def __init__(self, key: str):
        self.key = key
        super().__init__(
            f"Blob '{key}' was modified by another writer during the operation"
        )


class PartialCascadeFailure(StorageError):
    """
    A multi-blob cascade failed after at least one blob was written.

    Unlike StorageUnavailable, retrying the same call is not enough:
    the stores now disagree and need reconciliation.
    """

    def __init__(
        self,
        committed: list[str],
        failed_key: str,
        cause: Exception,
    ):
        self.committed = list(committed)
        self.failed_key = failed_key
        self.cause = cause
        super().__init__(
            f"Cascade failed writing '{failed_key}' after committing "
            f"{', '.join(self.committed)}: {cause}"
        )
