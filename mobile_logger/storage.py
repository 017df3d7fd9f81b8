"""Device-local key-value storage.

The file store keeps every key in a single JSON document and writes it
atomically (tmp + os.replace), so a crash mid-write leaves the previous
state intact.
"""

import json
import logging
import os
import tempfile

logger = logging.getLogger(__name__)


class StorageError(Exception):
    """Raised when the persisted store cannot be read or written."""


class MemoryStore:
    """Ephemeral store used in tests and as the fallback when disk is unavailable."""

    def __init__(self, initial: dict | None = None):
        self._data: dict = dict(initial or {})

    def get(self, key: str, default=None):
        return self._data.get(key, default)

    def set(self, key: str, value) -> None:
        self._data[key] = value

    def delete(self, key: str) -> None:
        self._data.pop(key, None)


class JsonFileStore:
    def __init__(self, path: str):
        self._path = os.path.abspath(os.path.expanduser(path))

    @property
    def path(self) -> str:
        return self._path

    def _load(self) -> dict:
        if not os.path.exists(self._path):
            return {}
        try:
            with open(self._path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as exc:
            raise StorageError(f"cannot read {self._path}: {exc}") from exc
        if not isinstance(data, dict):
            raise StorageError(f"unexpected content in {self._path}")
        return data

    def _save(self, data: dict) -> None:
        directory = os.path.dirname(self._path)
        try:
            os.makedirs(directory, exist_ok=True)
            fd, tmp = tempfile.mkstemp(dir=directory)
        except OSError as exc:
            raise StorageError(f"cannot write {self._path}: {exc}") from exc
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f)
            os.replace(tmp, self._path)
        except OSError as exc:
            os.unlink(tmp)
            raise StorageError(f"cannot write {self._path}: {exc}") from exc

    def get(self, key: str, default=None):
        return self._load().get(key, default)

    def set(self, key: str, value) -> None:
        data = self._load()
        data[key] = value
        self._save(data)

    def delete(self, key: str) -> None:
        data = self._load()
        if data.pop(key, None) is not None:
            self._save(data)
