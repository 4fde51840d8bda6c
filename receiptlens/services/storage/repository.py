"""
JSON Blob Repository Base

Every registry in the engine owns exactly one named blob. This base
class holds the shared read-modify-write mechanics:

- Lenient reads: a blob that is not valid JSON is treated as absent,
  and list entries that fail model validation are hidden from callers.
  Both are logged so the anomaly is observable.
- Lossless writes: hidden list entries are carried through writes
  unchanged, so nothing stored is ever dropped by a read-modify-write.
- Guarded writes: the blob is re-read right before writing and the
  write is refused if it no longer matches what the operation read.
"""

import json
from typing import Any, NamedTuple, Optional, TypeVar

import structlog
from pydantic import BaseModel, ValidationError

from receiptlens.services.storage.interface import (
    ConcurrentModificationError,
    RecordStore,
)


ModelT = TypeVar("ModelT", bound=BaseModel)

logger = structlog.get_logger(__name__)


class BlobSnapshot(NamedTuple):
    """A blob as read at the start of an operation."""
    raw: Optional[str]
    value: Any

    @property
    def exists(self) -> bool:
        return self.value is not None


class JsonBlobRepository:
    """Base for components that persist one JSON blob."""

    key: str = ""

    def __init__(self, store: RecordStore):
        self._store = store

    @property
    def store(self) -> RecordStore:
        return self._store

    def _snapshot(self) -> BlobSnapshot:
        raw = self._store.read(self.key)
        if raw is None:
            return BlobSnapshot(raw=None, value=None)
        try:
            return BlobSnapshot(raw=raw, value=json.loads(raw))
        except json.JSONDecodeError as e:
            logger.warning("corrupt_blob_ignored", key=self.key, error=str(e))
            return BlobSnapshot(raw=raw, value=None)

    def _partition_list(
        self,
        value: Any,
        model: type[ModelT],
    ) -> Optional[tuple[list[ModelT], list[Any]]]:
        """
        Decode a JSON array into models, setting aside what won't decode.

        Returns (records, unreadable) where `unreadable` holds the raw
        entries that failed validation, untouched. Writers append them
        back so a later write never loses data it could not read.
        Returns None when the value is not a list at all, so callers can
        apply their own default.
        """
        if value is None:
            return None
        if not isinstance(value, list):
            logger.warning(
                "unexpected_blob_shape",
                key=self.key,
                expected="list",
                found=type(value).__name__,
            )
            return None

        records = []
        unreadable = []
        for entry in value:
            try:
                records.append(model.model_validate(entry))
            except ValidationError:
                unreadable.append(entry)

        if unreadable:
            logger.warning(
                "decode_skipped_records",
                key=self.key,
                skipped=len(unreadable),
                kept=len(records),
            )
        return records, unreadable

    def _decode_list(self, value: Any, model: type[ModelT]) -> Optional[list[ModelT]]:
        """Decoded records only; see `_partition_list`."""
        decoded = self._partition_list(value, model)
        return None if decoded is None else decoded[0]

    def _decode_object(self, value: Any, model: type[ModelT]) -> Optional[ModelT]:
        if value is None:
            return None
        try:
            return model.model_validate(value)
        except ValidationError as e:
            logger.warning(
                "decode_skipped_records",
                key=self.key,
                skipped=1,
                kept=0,
                error=str(e),
            )
            return None

    def _write(self, payload: Any, snapshot: BlobSnapshot) -> None:
        """
        Persist `payload` if the blob still matches `snapshot`.

        Raises:
            ConcurrentModificationError: The blob changed underneath us
            StorageUnavailable: The store refused the write
        """
        if self._store.read(self.key) != snapshot.raw:
            raise ConcurrentModificationError(self.key)
        self._store.write(self.key, json.dumps(payload, ensure_ascii=False))

    def _remove(self) -> None:
        self._store.remove(self.key)
