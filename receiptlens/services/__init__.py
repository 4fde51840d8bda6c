"""Services package."""

from receiptlens.services.storage import (
    BlobSnapshot,
    ConcurrentModificationError,
    InMemoryRecordStore,
    JsonBlobRepository,
    JsonFileRecordStore,
    PartialCascadeFailure,
    RecordStore,
    StorageError,
    StorageUnavailable,
)

__all__ = [
    "BlobSnapshot",
    "ConcurrentModificationError",
    "InMemoryRecordStore",
    "JsonBlobRepository",
    "JsonFileRecordStore",
    "PartialCascadeFailure",
    "RecordStore",
    "StorageError",
    "StorageUnavailable",
]
