"""
Local key-value storage for the session history.

File-backed store for real use, in-memory store for tests and development.
Both enforce a byte quota shared by all keys.
"""

from .client import (
    DEFAULT_QUOTA_BYTES,
    FileKeyValueStorage,
    KeyValueStorage,
    MockKeyValueStorage,
    StorageConfig,
    StorageError,
    StorageQuotaExceededError,
    create_key_value_storage,
    entry_size,
)

__all__ = [
    "DEFAULT_QUOTA_BYTES",
    "FileKeyValueStorage",
    "KeyValueStorage",
    "MockKeyValueStorage",
    "StorageConfig",
    "StorageError",
    "StorageQuotaExceededError",
    "create_key_value_storage",
    "entry_size",
]
