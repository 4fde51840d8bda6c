"""
Storage Services Package

Provides the abstract record store, its in-memory and file-backed
implementations, and the JSON blob repository base used by every
registry.
"""

from receiptlens.services.storage.interface import (
    ConcurrentModificationError,
    PartialCascadeFailure,
    RecordStore,
    StorageError,
    StorageUnavailable,
)
from receiptlens.services.storage.json_file import JsonFileRecordStore
from receiptlens.services.storage.memory import InMemoryRecordStore
from receiptlens.services.storage.repository import BlobSnapshot, JsonBlobRepository

__all__ = [
    # Interface
    "RecordStore",
    # Exceptions
    "ConcurrentModificationError",
    "PartialCascadeFailure",
    "StorageError",
    "StorageUnavailable",
    # Implementations
    "InMemoryRecordStore",
    "JsonFileRecordStore",
    # Repository base
    "BlobSnapshot",
    "JsonBlobRepository",
]
