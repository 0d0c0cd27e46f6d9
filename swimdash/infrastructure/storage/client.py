"""
Key-value storage for the session history.

The tracker keeps all of its state in a single named slot of a small
key-value store, the same shape as browser local storage: string keys,
string values, and a fixed byte budget shared by every key.

Two backends implement the protocol:
- FileKeyValueStorage: one JSON file per key in a local data directory
- MockKeyValueStorage: in-memory dict, for tests and local development

Both enforce the byte quota and raise StorageQuotaExceededError when a
write would go over it, so callers can tell "storage is full" apart
from any other write failure.
"""

import errno
import logging
import os
import re
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Protocol

logger = logging.getLogger(__name__)

# 5 MiB, the usual local storage budget per origin
DEFAULT_QUOTA_BYTES = 5 * 1024 * 1024

_KEY_PATTERN = re.compile(r"^[A-Za-z0-9_.-]+$")

_DISK_FULL_ERRNOS = {errno.ENOSPC, getattr(errno, "EDQUOT", errno.ENOSPC)}


class StorageError(Exception):
    """Raised when storage operations fail."""
    pass


class StorageQuotaExceededError(StorageError):
    """Raised when a write would exceed the storage byte quota."""

    def __init__(self, key: str, required_bytes: int, quota_bytes: int) -> None:
        self.key = key
        self.required_bytes = required_bytes
        self.quota_bytes = quota_bytes
        super().__init__(
            f"Storage quota exceeded writing '{key}': "
            f"{required_bytes} bytes needed, quota is {quota_bytes}"
        )


def entry_size(key: str, value: str) -> int:
    """Bytes an entry counts against the quota (UTF-8 key plus value)."""
    return len(key.encode("utf-8")) + len(value.encode("utf-8"))


@dataclass
class StorageConfig:
    """Configuration for the file-backed key-value store."""
    directory: Path
    quota_bytes: int = DEFAULT_QUOTA_BYTES


class KeyValueStorage(Protocol):
    """
    Protocol for key-value storage operations.

    All methods are synchronous: a write either succeeds or raises
    immediately, there is nothing to await.
    """

    quota_bytes: int

    def get_item(self, key: str) -> Optional[str]:
        """Return the stored value, or None if the key is absent."""
        ...

    def set_item(self, key: str, value: str) -> None:
        """Store a value, replacing any previous one."""
        ...

    def remove_item(self, key: str) -> None:
        """Remove a key. Absent keys are ignored."""
        ...

    def keys(self) -> list[str]:
        """All keys currently stored."""
        ...

    def usage_bytes(self) -> int:
        """Aggregate size of every stored key and value."""
        ...


class FileKeyValueStorage:
    """
    Key-value store backed by one file per key.

    Writes go to a temporary file in the same directory which is then
    renamed over the target, so a failed write leaves the previous
    value in place.
    """

    def __init__(self, config: StorageConfig) -> None:
        self._directory = Path(config.directory).expanduser()
        self.quota_bytes = config.quota_bytes

        try:
            self._directory.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            logger.error(
                "Failed to create storage directory",
                extra={"directory": str(self._directory), "error": str(e)}
            )
            raise StorageError(f"Cannot create storage directory: {e}")

        logger.info(
            "Initialized file storage",
            extra={
                "directory": str(self._directory),
                "quota_bytes": self.quota_bytes,
            }
        )

    @property
    def directory(self) -> Path:
        return self._directory

    def get_item(self, key: str) -> Optional[str]:
        path = self._path_for(key)
        if not path.exists():
            return None

        try:
            return path.read_text(encoding="utf-8")
        except OSError as e:
            logger.error(
                "Failed to read storage key",
                extra={"key": key, "error": str(e)}
            )
            raise StorageError(f"Read failed for '{key}': {e}")

    def set_item(self, key: str, value: str) -> None:
        path = self._path_for(key)

        current = self.get_item(key)
        current_size = entry_size(key, current) if current is not None else 0
        required = self.usage_bytes() - current_size + entry_size(key, value)
        if required > self.quota_bytes:
            logger.warning(
                "Storage quota exceeded",
                extra={
                    "key": key,
                    "required_bytes": required,
                    "quota_bytes": self.quota_bytes,
                }
            )
            raise StorageQuotaExceededError(key, required, self.quota_bytes)

        tmp_path = None
        try:
            with tempfile.NamedTemporaryFile(
                "w",
                encoding="utf-8",
                dir=self._directory,
                prefix=f".{key}.",
                suffix=".tmp",
                delete=False,
            ) as tmp:
                tmp_path = tmp.name
                tmp.write(value)
            os.replace(tmp_path, path)
            tmp_path = None

            logger.debug(
                "Wrote storage key",
                extra={"key": key, "size_bytes": entry_size(key, value)}
            )

        except OSError as e:
            logger.error(
                "Failed to write storage key",
                extra={"key": key, "error": str(e)}
            )
            # A full disk is reported the same way as the byte quota
            if e.errno in _DISK_FULL_ERRNOS:
                raise StorageQuotaExceededError(key, required, self.quota_bytes)
            raise StorageError(f"Write failed for '{key}': {e}")

        finally:
            if tmp_path is not None:
                try:
                    os.unlink(tmp_path)
                except OSError:
                    logger.debug("Temporary file already gone", extra={"path": tmp_path})

    def remove_item(self, key: str) -> None:
        path = self._path_for(key)
        try:
            path.unlink(missing_ok=True)
        except OSError as e:
            logger.error(
                "Failed to remove storage key",
                extra={"key": key, "error": str(e)}
            )
            raise StorageError(f"Remove failed for '{key}': {e}")

    def keys(self) -> list[str]:
        return sorted(
            path.stem for path in self._directory.glob("*.json")
            if path.is_file()
        )

    def usage_bytes(self) -> int:
        total = 0
        for key in self.keys():
            value = self.get_item(key)
            if value is not None:
                total += entry_size(key, value)
        return total

    def _path_for(self, key: str) -> Path:
        """Build the file path for a key."""
        if not _KEY_PATTERN.match(key):
            raise StorageError(f"Invalid storage key: {key!r}")
        return self._directory / f"{key}.json"


# ---------------------------------------------------------------------------
# Mock Storage for Local Development
# ---------------------------------------------------------------------------

class MockKeyValueStorage:
    """
    In-memory key-value store.

    Behaves like the file store, quota included, without touching the
    file system. Not suitable for real use since nothing survives the
    process, but it is what the tests run against.
    """

    def __init__(
        self,
        quota_bytes: int = DEFAULT_QUOTA_BYTES,
        initial: Optional[dict[str, str]] = None,
    ) -> None:
        self.quota_bytes = quota_bytes
        self._items: dict[str, str] = dict(initial or {})
        logger.info("Initialized mock key-value storage (in-memory)")

    def get_item(self, key: str) -> Optional[str]:
        return self._items.get(key)

    def set_item(self, key: str, value: str) -> None:
        current = self._items.get(key)
        current_size = entry_size(key, current) if current is not None else 0
        required = self.usage_bytes() - current_size + entry_size(key, value)
        if required > self.quota_bytes:
            logger.warning(
                "Mock storage quota exceeded",
                extra={
                    "key": key,
                    "required_bytes": required,
                    "quota_bytes": self.quota_bytes,
                }
            )
            raise StorageQuotaExceededError(key, required, self.quota_bytes)

        self._items[key] = value

    def remove_item(self, key: str) -> None:
        self._items.pop(key, None)

    def keys(self) -> list[str]:
        return sorted(self._items)

    def usage_bytes(self) -> int:
        return sum(entry_size(key, value) for key, value in self._items.items())


# ---------------------------------------------------------------------------
# Factory Function
# ---------------------------------------------------------------------------

def create_key_value_storage(
    config: Optional[StorageConfig] = None,
    mock_mode: bool = False,
) -> KeyValueStorage:
    """
    Create key-value storage based on configuration.

    Args:
        config: Storage configuration (required if not mock_mode)
        mock_mode: If True, return the in-memory store

    Returns:
        KeyValueStorage implementation (file or mock)
    """
    if mock_mode:
        quota = config.quota_bytes if config else DEFAULT_QUOTA_BYTES
        return MockKeyValueStorage(quota_bytes=quota)

    if config is None:
        raise ValueError("config is required when not in mock mode")

    return FileKeyValueStorage(config)
