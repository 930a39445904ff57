"""Synchronous key-value stores backing Tier-1.

Tier-1 is small and fast: string values under string keys with a hard byte
quota. Writing past the quota raises `QuotaExceeded` and leaves the previous
value in place.
"""

import contextlib
import os
import tempfile
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional
from urllib.parse import quote, unquote

from lifeos_sync.persistence.errors import (
    QuotaExceeded,
    SerializationError,
    StorageUnavailable,
)

DEFAULT_QUOTA_BYTES = 5 * 1024 * 1024


def _entry_size(key: str, value: str) -> int:
    return len(key.encode("utf-8")) + len(value.encode("utf-8"))


class KeyValueStore(ABC):
    """Abstract interface for a quota-limited string key-value store."""

    def __init__(self, quota_bytes: int = DEFAULT_QUOTA_BYTES):
        self.quota_bytes = quota_bytes

    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        """Returns the value stored under key, or None.

        Raises:
            StorageUnavailable: If the backing medium cannot be read.
        """
        pass  # pragma: no cover

    @abstractmethod
    def set(self, key: str, value: str):
        """Stores value under key.

        Raises:
            QuotaExceeded: If the write would exceed the quota.
            StorageUnavailable: If the backing medium cannot be written.
        """
        pass  # pragma: no cover

    @abstractmethod
    def remove(self, key: str):
        """Deletes key if present."""
        pass  # pragma: no cover

    @abstractmethod
    def keys(self) -> list[str]:
        pass  # pragma: no cover

    def entry_size(self, key: str) -> int:
        """Bytes used by key and its value; 0 if the key is absent."""
        value = self.get(key)
        return 0 if value is None else _entry_size(key, value)

    def usage_bytes(self) -> int:
        """Total bytes currently used by all keys and values."""
        return sum(self.entry_size(key) for key in self.keys())

    def _check_quota(self, key: str, value: str):
        used = self.usage_bytes() - self.entry_size(key)
        required = used + _entry_size(key, value)
        if required > self.quota_bytes:
            raise QuotaExceeded(key, required, self.quota_bytes)


class InMemoryKeyValueStore(KeyValueStore):
    """Process-local store. Useful for tests and ephemeral sessions."""

    def __init__(self, quota_bytes: int = DEFAULT_QUOTA_BYTES):
        super().__init__(quota_bytes)
        self._data: dict[str, str] = {}

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str):
        self._check_quota(key, value)
        self._data[key] = value

    def remove(self, key: str):
        self._data.pop(key, None)

    def keys(self) -> list[str]:
        return list(self._data.keys())


class FileKeyValueStore(KeyValueStore):
    """Directory-backed store with one file per key.

    Each write goes to a temporary file that atomically replaces the
    previous one, so a crash mid-write never leaves a truncated value.
    """

    SUFFIX = ".json"

    def __init__(self, directory: Path, quota_bytes: int = DEFAULT_QUOTA_BYTES):
        super().__init__(quota_bytes)
        self.directory = Path(directory)

    def _path(self, key: str) -> Path:
        return self.directory / f"{quote(key, safe='')}{self.SUFFIX}"

    def _ensure_dir(self):
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StorageUnavailable(
                f"Cannot create store directory {self.directory}: {e}"
            ) from e

    def get(self, key: str) -> Optional[str]:
        path = self._path(key)
        try:
            return path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except UnicodeDecodeError as e:
            raise SerializationError(f"{path} is not valid UTF-8: {e}") from e
        except OSError as e:
            raise StorageUnavailable(f"Cannot read {path}: {e}") from e

    def entry_size(self, key: str) -> int:
        # Sized from disk so an undecodable value can still be replaced.
        try:
            return len(key.encode("utf-8")) + self._path(key).stat().st_size
        except FileNotFoundError:
            return 0
        except OSError as e:
            raise StorageUnavailable(f"Cannot stat '{key}': {e}") from e

    def set(self, key: str, value: str):
        self._ensure_dir()
        self._check_quota(key, value)
        path = self._path(key)
        try:
            fd, tmp_name = tempfile.mkstemp(dir=self.directory, suffix=".tmp")
        except OSError as e:
            raise StorageUnavailable(f"Cannot write {path}: {e}") from e
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(value)
            os.replace(tmp_name, path)
        except OSError as e:
            with contextlib.suppress(OSError):
                os.unlink(tmp_name)
            raise StorageUnavailable(f"Cannot write {path}: {e}") from e

    def remove(self, key: str):
        try:
            self._path(key).unlink()
        except FileNotFoundError:
            pass
        except OSError as e:
            raise StorageUnavailable(f"Cannot remove '{key}': {e}") from e

    def keys(self) -> list[str]:
        if not self.directory.exists():
            return []
        return [
            unquote(p.name[: -len(self.SUFFIX)])
            for p in self.directory.iterdir()
            if p.name.endswith(self.SUFFIX)
        ]
