"""
Unit tests for the key-value storage backends.

File storage tests use pytest's tmp_path so nothing outside the test
directory is touched.
"""

import errno
import os

import pytest

from swimdash.infrastructure.storage.client import (
    FileKeyValueStorage,
    MockKeyValueStorage,
    StorageConfig,
    StorageError,
    StorageQuotaExceededError,
    create_key_value_storage,
    entry_size,
)


@pytest.fixture
def file_storage(tmp_path) -> FileKeyValueStorage:
    return FileKeyValueStorage(StorageConfig(directory=tmp_path / "data", quota_bytes=1000))


def test_entry_size_counts_utf8_bytes():
    """Quota is measured in encoded bytes, not characters."""
    assert entry_size("k", "é") == 3


class TestFileKeyValueStorage:
    """Tests for the file-backed store."""

    def test_creates_directory(self, tmp_path):
        """The data directory is created on first use."""
        FileKeyValueStorage(StorageConfig(directory=tmp_path / "nested" / "dir"))
        assert (tmp_path / "nested" / "dir").is_dir()

    def test_missing_key_is_none(self, file_storage):
        """An absent key reads as None, like local storage."""
        assert file_storage.get_item("swimSessions") is None

    def test_set_then_get(self, file_storage):
        """Each key is one <key>.json file."""
        file_storage.set_item("swimSessions", "[]")

        assert file_storage.get_item("swimSessions") == "[]"
        assert (file_storage.directory / "swimSessions.json").read_text(encoding="utf-8") == "[]"

    def test_value_survives_a_new_instance(self, tmp_path):
        """Data outlives the process that wrote it."""
        config = StorageConfig(directory=tmp_path)
        FileKeyValueStorage(config).set_item("swimSessions", '[{"id": "a"}]')

        assert FileKeyValueStorage(config).get_item("swimSessions") == '[{"id": "a"}]'

    def test_keys_and_usage(self, file_storage):
        """Keys are listed sorted and usage sums every entry."""
        file_storage.set_item("b", "22")
        file_storage.set_item("a", "1")

        assert file_storage.keys() == ["a", "b"]
        assert file_storage.usage_bytes() == 5

    def test_remove_item(self, file_storage):
        """Removing works, and removing an absent key is ignored."""
        file_storage.set_item("a", "1")
        file_storage.remove_item("a")
        file_storage.remove_item("never-there")

        assert file_storage.keys() == []

    def test_quota_exceeded_keeps_old_value(self, file_storage):
        """An oversized write fails and the previous value survives."""
        file_storage.set_item("swimSessions", "x" * 100)

        with pytest.raises(StorageQuotaExceededError) as exc_info:
            file_storage.set_item("swimSessions", "y" * 2000)

        assert exc_info.value.quota_bytes == 1000
        assert file_storage.get_item("swimSessions") == "x" * 100

    def test_overwrite_counts_only_new_value(self, file_storage):
        """Replacing a value frees the old value's bytes first."""
        file_storage.set_item("k", "x" * 900)
        file_storage.set_item("k", "y" * 950)

        assert file_storage.get_item("k") == "y" * 950

    def test_quota_is_shared_across_keys(self, file_storage):
        """One budget covers every key."""
        file_storage.set_item("a", "x" * 600)

        with pytest.raises(StorageQuotaExceededError):
            file_storage.set_item("b", "y" * 600)

    def test_no_temporary_files_left_behind(self, file_storage):
        """The temp file used for the atomic write is renamed away."""
        file_storage.set_item("a", "1")
        leftovers = [p.name for p in file_storage.directory.iterdir() if p.suffix == ".tmp"]
        assert leftovers == []

    @pytest.mark.parametrize("key", ["../escape", "a/b", ""])
    def test_rejects_unsafe_keys(self, file_storage, key):
        """Keys that aren't plain file names are a storage error."""
        with pytest.raises(StorageError, match="Invalid storage key"):
            file_storage.set_item(key, "1")

    def test_unsafe_key_read_is_a_storage_error(self, file_storage):
        """Reads check the key the same way writes do."""
        with pytest.raises(StorageError):
            file_storage.get_item("../escape")

    def test_disk_full_maps_to_quota_error(self, file_storage, monkeypatch):
        """A full disk is reported as a full store."""
        def full_disk(src, dst):
            raise OSError(errno.ENOSPC, "No space left on device")

        monkeypatch.setattr(os, "replace", full_disk)

        with pytest.raises(StorageQuotaExceededError):
            file_storage.set_item("a", "1")

    def test_other_os_errors_are_storage_errors(self, file_storage, monkeypatch):
        """Other OS failures are wrapped and leave no partial file."""
        def denied(src, dst):
            raise OSError(errno.EACCES, "Permission denied")

        monkeypatch.setattr(os, "replace", denied)

        with pytest.raises(StorageError) as exc_info:
            file_storage.set_item("a", "1")

        assert not isinstance(exc_info.value, StorageQuotaExceededError)
        assert file_storage.keys() == []


class TestMockKeyValueStorage:
    """Tests for the in-memory store."""

    def test_initial_items(self):
        """Seed items count against usage like written ones."""
        storage = MockKeyValueStorage(initial={"a": "1"})
        assert storage.get_item("a") == "1"
        assert storage.usage_bytes() == 2

    def test_quota(self):
        """The mock enforces the quota too."""
        storage = MockKeyValueStorage(quota_bytes=10)

        with pytest.raises(StorageQuotaExceededError):
            storage.set_item("key", "a much too long value")

        assert storage.keys() == []


class TestCreateKeyValueStorage:
    """Tests for the storage factory."""

    def test_mock_mode(self):
        """Mock mode needs no configuration."""
        storage = create_key_value_storage(mock_mode=True)
        assert isinstance(storage, MockKeyValueStorage)

    def test_mock_mode_keeps_configured_quota(self, tmp_path):
        """A configured quota carries over to the mock."""
        storage = create_key_value_storage(StorageConfig(directory=tmp_path, quota_bytes=42), mock_mode=True)
        assert storage.quota_bytes == 42

    def test_file_mode(self, tmp_path):
        """Otherwise the file store is built."""
        storage = create_key_value_storage(StorageConfig(directory=tmp_path))
        assert isinstance(storage, FileKeyValueStorage)

    def test_file_mode_requires_config(self):
        """The file store can't be built without a directory."""
        with pytest.raises(ValueError):
            create_key_value_storage()
