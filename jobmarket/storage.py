"""Durable key-value blobs backing the session and job stores."""
import logging
import os
import tempfile
from pathlib import Path
from typing import Protocol

logger = logging.getLogger(__name__)

USER_KEY = "user"
JOBS_KEY = "jobs"


class BlobStorage(Protocol):
    def get(self, key: str) -> str | None: ...

    def set(self, key: str, value: str) -> None: ...

    def remove(self, key: str) -> None: ...


class MemoryBlobStorage:
    def __init__(self) -> None:
        self._blobs: dict[str, str] = {}

    def get(self, key: str) -> str | None:
        return self._blobs.get(key)

    def set(self, key: str, value: str) -> None:
        self._blobs[key] = value

    def remove(self, key: str) -> None:
        self._blobs.pop(key, None)


class FileBlobStorage:
    """One ``<key>.json`` file per key under ``data_path``.

    The directory is created on first write. Writes go to a temp file in the
    same directory which then replaces the target, so a reader never sees a
    half-written blob.
    """

    def __init__(self, data_path: str | Path) -> None:
        self.data_path = Path(data_path)

    def _path(self, key: str) -> Path:
        return self.data_path / f"{key}.json"

    def get(self, key: str) -> str | None:
        path = self._path(key)
        try:
            return path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None

    def set(self, key: str, value: str) -> None:
        self.data_path.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=self.data_path, prefix=f".{key}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(value)
            os.replace(tmp_name, self._path(key))
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise
        logger.debug("Wrote %d bytes to %s", len(value), self._path(key))

    def remove(self, key: str) -> None:
        self._path(key).unlink(missing_ok=True)
