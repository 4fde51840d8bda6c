"""
File-backed Record Store

DESIGN DECISION: One JSON file per blob in a single directory because:
1. Users can inspect and back up their data with ordinary tools
2. Each blob is replaced atomically (write to temp file, then rename)
3. No database setup required

TRADEOFFS:
- No transactions across blobs (the callers order their writes and
  report partial failures)
- Single writer assumed
"""

import os
import re
import tempfile
from pathlib import Path
from typing import Optional, Union

import structlog
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from receiptlens.config import get_settings
from receiptlens.services.storage.interface import RecordStore, StorageUnavailable


_KEY_PATTERN = re.compile(r"^[A-Za-z][A-Za-z0-9_\-]*$")

logger = structlog.get_logger(__name__)


class JsonFileRecordStore(RecordStore):
    """
    Stores each blob as `<directory>/<key>.json`.

    Transient OS errors on write are retried a few times before the
    failure is surfaced as StorageUnavailable.
    """

    def __init__(self, directory: Optional[Union[str, Path]] = None):
        self._directory = Path(directory or get_settings().app.storage_dir)

    @property
    def directory(self) -> Path:
        return self._directory

    def _path_for(self, key: str) -> Path:
        if not _KEY_PATTERN.match(key):
            raise ValueError(f"Invalid blob key: {key!r}")
        return self._directory / f"{key}.json"

    def read(self, key: str) -> Optional[str]:
        path = self._path_for(key)
        try:
            return path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError as e:
            raise StorageUnavailable(key, str(e)) from e

    @retry(
        retry=retry_if_exception_type(OSError),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=0.05, max=0.5),
        reraise=True,
    )
    def _replace_file(self, path: Path, blob: str) -> None:
        self._directory.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(
            dir=self._directory,
            prefix=f".{path.stem}.",
            suffix=".tmp",
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(blob)
                handle.flush()
                os.fsync(handle.fileno())
            os.replace(tmp_name, path)
        except BaseException:
            # The temp file must not outlive a failed attempt
            try:
                os.unlink(tmp_name)
            except FileNotFoundError:
                pass
            raise

    def write(self, key: str, blob: str) -> None:
        path = self._path_for(key)
        try:
            self._replace_file(path, blob)
        except OSError as e:
            logger.error("blob_write_failed", key=key, error=str(e))
            raise StorageUnavailable(key, str(e)) from e

    def remove(self, key: str) -> None:
        path = self._path_for(key)
        try:
            path.unlink(missing_ok=True)
        except OSError as e:
            raise StorageUnavailable(key, str(e)) from e
