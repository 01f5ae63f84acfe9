"""Unit tests for the key-value storage backends.

Tests usage accounting and all-or-nothing transactions for both the
in-memory and the SQLite backend.
"""

from pathlib import Path

import pytest

from src.config_schema import StorageConfig
from src.registry.storage import (
    KeyValueStorage,
    MemoryStorage,
    SqliteStorage,
    build_storage,
)


@pytest.fixture(params=["memory", "sqlite"])
def backend(request: pytest.FixtureRequest, tmp_path: Path) -> KeyValueStorage:
    if request.param == "memory":
        return MemoryStorage()
    return SqliteStorage(tmp_path / "kv.db")


class TestBasicOperations:
    """get / set / remove on every backend."""

    def test_set_and_get(self, backend: KeyValueStorage) -> None:
        backend.set(b"k", b"v")
        assert backend.get(b"k") == b"v"
        assert backend.has(b"k")

    def test_missing_key_is_none(self, backend: KeyValueStorage) -> None:
        assert backend.get(b"nope") is None
        assert not backend.has(b"nope")

    def test_remove_reports_existence(self, backend: KeyValueStorage) -> None:
        backend.set(b"k", b"v")
        assert backend.remove(b"k") is True
        assert backend.remove(b"k") is False
        assert backend.get(b"k") is None

    def test_overwrite(self, backend: KeyValueStorage) -> None:
        backend.set(b"k", b"one")
        backend.set(b"k", b"two")
        assert backend.get(b"k") == b"two"


class TestUsageAccounting:
    """storage_usage() charges key + value + fixed overhead per record."""

    def test_empty_is_zero(self, backend: KeyValueStorage) -> None:
        assert backend.storage_usage() == 0

    def test_record_cost(self, backend: KeyValueStorage) -> None:
        backend.set(b"key", b"value")
        assert backend.storage_usage() == 3 + 5 + backend.entry_overhead_bytes

    def test_overwrite_replaces_cost(self, backend: KeyValueStorage) -> None:
        backend.set(b"k", b"aaaa")
        backend.set(b"k", b"bb")
        assert backend.storage_usage() == backend.record_cost(b"k", b"bb")

    def test_remove_releases_cost(self, backend: KeyValueStorage) -> None:
        backend.set(b"k", b"v")
        backend.remove(b"k")
        assert backend.storage_usage() == 0

    def test_usage_includes_pending_writes(self, backend: KeyValueStorage) -> None:
        backend.set(b"a", b"1")
        with backend.transaction():
            backend.set(b"b", b"22")
            backend.remove(b"a")
            assert backend.storage_usage() == backend.record_cost(b"b", b"22")

    def test_custom_overhead(self) -> None:
        storage = MemoryStorage(entry_overhead_bytes=0)
        storage.set(b"ab", b"cd")
        assert storage.storage_usage() == 4


class TestTransactions:
    """Buffered writes land together or not at all."""

    def test_commit_applies_all(self, backend: KeyValueStorage) -> None:
        with backend.transaction():
            backend.set(b"a", b"1")
            backend.set(b"b", b"2")
            assert backend.in_transaction
        assert not backend.in_transaction
        assert backend.get(b"a") == b"1"
        assert backend.get(b"b") == b"2"

    def test_reads_see_own_writes(self, backend: KeyValueStorage) -> None:
        with backend.transaction():
            backend.set(b"a", b"1")
            assert backend.get(b"a") == b"1"
            backend.remove(b"a")
            assert backend.get(b"a") is None

    def test_exception_discards_everything(self, backend: KeyValueStorage) -> None:
        backend.set(b"keep", b"x")
        with pytest.raises(RuntimeError):
            with backend.transaction():
                backend.set(b"a", b"1")
                backend.remove(b"keep")
                raise RuntimeError("boom")
        assert backend.get(b"a") is None
        assert backend.get(b"keep") == b"x"
        assert backend.storage_usage() == backend.record_cost(b"keep", b"x")

    def test_nested_transaction_joins_outer(self, backend: KeyValueStorage) -> None:
        with pytest.raises(ValueError):
            with backend.transaction():
                with backend.transaction():
                    backend.set(b"inner", b"1")
                raise ValueError("outer fails")
        assert backend.get(b"inner") is None


class TestSqlitePersistence:
    """SQLite data survives reopening the file."""

    def test_reopen(self, tmp_path: Path) -> None:
        path = tmp_path / "persist.db"
        first = SqliteStorage(path)
        first.set(b"k", b"v")
        usage = first.storage_usage()

        second = SqliteStorage(path)
        assert second.get(b"k") == b"v"
        assert second.storage_usage() == usage


class TestBuildStorage:
    """Backend selection from config."""

    def test_memory(self) -> None:
        storage = build_storage(StorageConfig(backend="memory", entry_overhead_bytes=7))
        assert isinstance(storage, MemoryStorage)
        assert storage.entry_overhead_bytes == 7

    def test_sqlite(self, tmp_path: Path) -> None:
        storage = build_storage(StorageConfig(backend="sqlite", path=str(tmp_path / "x.db")))
        assert isinstance(storage, SqliteStorage)
        assert (tmp_path / "x.db").exists()
