"""
JSON File Storage Implementation

Keeps the whole key-value map in one JSON object on disk, the desktop
equivalent of the browser's localStorage.

TRADEOFFS:
- Every write rewrites the file (fine for one user's ledger)
- No cross-process locking (one writer is assumed)
- Writes go to a temporary file first and replace the target atomically,
  so a crash mid-write leaves the previous version intact

Transient filesystem errors are retried a few times before surfacing as
StorageError.
"""

import json
import os
import tempfile
from pathlib import Path
from typing import Iterator, Optional

import structlog
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from flowledger.services.storage.interface import (
    KeyValueStore,
    StorageConnectionError,
    StorageError,
)


logger = structlog.get_logger(__name__)

_io_retry = retry(
    retry=retry_if_exception_type(OSError),
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=0.1, min=0.1, max=1),
    reraise=True,
)


class FileKeyValueStore(KeyValueStore):
    """
    Key-value store persisted as a single JSON file.

    The file is created on the first write. Its parent directory is
    created if needed.
    """

    def __init__(self, path: Path | str):
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    @_io_retry
    def _read_file(self) -> Optional[str]:
        if not self._path.exists():
            return None
        return self._path.read_text(encoding="utf-8")

    @_io_retry
    def _write_file(self, content: str) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(
            prefix=f".{self._path.name}.", dir=self._path.parent
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(content)
                handle.flush()
                os.fsync(handle.fileno())
            os.replace(tmp_name, self._path)
        except OSError:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise

    def _load(self) -> dict[str, str]:
        try:
            content = self._read_file()
        except OSError as e:
            raise StorageConnectionError(f"Cannot read {self._path}: {e}") from e

        if not content:
            return {}

        try:
            data = json.loads(content)
        except json.JSONDecodeError as e:
            raise StorageConnectionError(
                f"Storage file {self._path} is not valid JSON"
            ) from e

        if not isinstance(data, dict) or not all(
            isinstance(v, str) for v in data.values()
        ):
            raise StorageConnectionError(
                f"Storage file {self._path} does not hold a string map"
            )
        return data

    def _save(self, data: dict[str, str]) -> None:
        try:
            self._write_file(json.dumps(data, ensure_ascii=False, indent=2, sort_keys=True))
        except OSError as e:
            logger.error("storage_write_failed", path=str(self._path), error=str(e))
            raise StorageError(f"Failed to write {self._path}: {e}") from e

    def get(self, key: str) -> Optional[str]:
        return self._load().get(key)

    def set(self, key: str, value: str) -> None:
        if not isinstance(value, str):
            raise TypeError(f"Values must be strings, got {type(value).__name__}")
        data = self._load()
        data[key] = value
        self._save(data)

    def delete(self, key: str) -> bool:
        data = self._load()
        if key not in data:
            return False
        del data[key]
        self._save(data)
        return True

    def keys(self, prefix: str = "") -> Iterator[str]:
        return iter(sorted(k for k in self._load() if k.startswith(prefix)))
