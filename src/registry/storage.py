"""Key-value storage backends for registry state.

The registry only ever needs point reads and writes on byte keys, plus a
running count of bytes stored. Two backends implement that:

- MemoryStorage: a dict, for tests and embedded use
- SqliteStorage: a single-file SQLite table, for persistent registries

Every stored record is charged len(key) + len(value) + a fixed per-record
overhead. storage_usage() is what the storage-cost probe diffs.

All-or-nothing mutations:
    Writes made inside `with storage.transaction():` are buffered and applied
    in one batch when the block exits normally. If the block raises, the
    buffer is dropped and nothing reaches the backend. Nested transaction()
    blocks join the outermost one.

Usage:
    storage = MemoryStorage()
    with storage.transaction():
        storage.set(b"k", b"v")
    storage.get(b"k")  # b"v"
"""

from __future__ import annotations

import logging
import sqlite3
import time
from contextlib import contextmanager
from pathlib import Path
from typing import TYPE_CHECKING, Callable, Iterator, TypeVar

if TYPE_CHECKING:
    from ..config_schema import StorageConfig

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_ENTRY_OVERHEAD_BYTES = 40


class KeyValueStorage:
    """Base class: transaction buffering and usage accounting.

    Subclasses provide _read, _apply and _committed_usage.

    Thread-safety: NOT thread-safe. Reads see this instance's uncommitted
    transaction buffer, so the registry holds one lock across every
    mutation and every query.
    """

    entry_overhead_bytes: int
    _pending: dict[bytes, bytes | None] | None

    def __init__(self, entry_overhead_bytes: int = DEFAULT_ENTRY_OVERHEAD_BYTES) -> None:
        self.entry_overhead_bytes = entry_overhead_bytes
        self._pending = None

    # ---- backend hooks ----

    def _read(self, key: bytes) -> bytes | None:
        raise NotImplementedError

    def _apply(self, changes: dict[bytes, bytes | None]) -> None:
        """Persist a batch of writes (None value = delete) atomically."""
        raise NotImplementedError

    def _committed_usage(self) -> int:
        raise NotImplementedError

    # ---- public API ----

    def record_cost(self, key: bytes, value: bytes) -> int:
        """Bytes charged for one stored record."""
        return len(key) + len(value) + self.entry_overhead_bytes

    def get(self, key: bytes) -> bytes | None:
        if self._pending is not None and key in self._pending:
            return self._pending[key]
        return self._read(key)

    def has(self, key: bytes) -> bool:
        return self.get(key) is not None

    def set(self, key: bytes, value: bytes) -> None:
        if self._pending is not None:
            self._pending[key] = value
        else:
            self._apply({key: value})

    def remove(self, key: bytes) -> bool:
        """Delete a key. Returns True if it existed."""
        existed = self.has(key)
        if not existed:
            return False
        if self._pending is not None:
            self._pending[key] = None
        else:
            self._apply({key: None})
        return True

    def storage_usage(self) -> int:
        """Total bytes charged, including writes buffered in a transaction."""
        usage = self._committed_usage()
        if self._pending:
            for key, new_value in self._pending.items():
                old_value = self._read(key)
                if old_value is not None:
                    usage -= self.record_cost(key, old_value)
                if new_value is not None:
                    usage += self.record_cost(key, new_value)
        return usage

    @property
    def in_transaction(self) -> bool:
        return self._pending is not None

    @contextmanager
    def transaction(self) -> Iterator[None]:
        """Buffer writes and apply them only if the block completes."""
        if self._pending is not None:
            yield
            return

        self._pending = {}
        try:
            yield
        except BaseException:
            discarded = len(self._pending)
            self._pending = None
            if discarded:
                logger.debug("Transaction aborted, discarded %d buffered writes", discarded)
            raise
        changes = self._pending
        self._pending = None
        if changes:
            self._apply(changes)

    def close(self) -> None:
        """Release backend resources. No-op by default."""


class MemoryStorage(KeyValueStorage):
    """In-process dict storage."""

    _data: dict[bytes, bytes]
    _usage: int

    def __init__(self, entry_overhead_bytes: int = DEFAULT_ENTRY_OVERHEAD_BYTES) -> None:
        super().__init__(entry_overhead_bytes)
        self._data = {}
        self._usage = 0

    def _read(self, key: bytes) -> bytes | None:
        return self._data.get(key)

    def _apply(self, changes: dict[bytes, bytes | None]) -> None:
        for key, value in changes.items():
            old = self._data.get(key)
            if old is not None:
                self._usage -= self.record_cost(key, old)
            if value is None:
                self._data.pop(key, None)
            else:
                self._data[key] = value
                self._usage += self.record_cost(key, value)

    def _committed_usage(self) -> int:
        return self._usage

    def __len__(self) -> int:
        return len(self._data)


def _with_retry(
    func: Callable[[], T],
    max_retries: int,
    base_delay: float,
    max_delay: float,
) -> T:
    """Execute a function with retry logic for SQLite lock errors.

    Uses exponential backoff to handle transient 'database is locked' errors
    that can occur when several processes open the same registry file.

    Raises:
        sqlite3.OperationalError: If func raises a non-lock error or
            exceeds max_retries with lock errors
    """
    attempt = 0
    while True:
        attempt += 1
        try:
            return func()
        except sqlite3.OperationalError as e:
            if "database is locked" not in str(e):
                raise

            if attempt >= max_retries:
                logger.warning(
                    "SQLite lock error after %d attempts, giving up: %s",
                    attempt,
                    e,
                )
                raise

            delay = min(base_delay * (2 ** (attempt - 1)), max_delay)
            logger.debug(
                "SQLite lock error (attempt %d/%d), retrying in %.2fs: %s",
                attempt,
                max_retries,
                delay,
                e,
            )
            time.sleep(delay)


class SqliteStorage(KeyValueStorage):
    """SQLite-backed key-value storage.

    One table of (key BLOB, value BLOB). Reads use DEFERRED isolation so
    concurrent readers are allowed in WAL mode; a committed transaction is
    written through one IMMEDIATE connection so the batch lands atomically.

    Each operation opens its own connection, so an instance may be used from
    whichever thread currently holds the registry lock.
    """

    def __init__(
        self,
        db_path: Path | str,
        entry_overhead_bytes: int = DEFAULT_ENTRY_OVERHEAD_BYTES,
        retry_max: int = 5,
        retry_base: float = 0.1,
        retry_max_delay: float = 5.0,
        lock_timeout: float = 5.0,
    ) -> None:
        super().__init__(entry_overhead_bytes)
        self.db_path = Path(db_path)
        self._retry_max = retry_max
        self._retry_base = retry_base
        self._retry_max_delay = retry_max_delay
        self._lock_timeout = lock_timeout
        self._ensure_db()

    def _ensure_db(self) -> None:
        """Create database and table if they don't exist."""
        with self._connect_write() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS kv (
                    key BLOB PRIMARY KEY,
                    value BLOB NOT NULL
                )
            """)
            conn.commit()

    def _open(self, isolation_level: str | None) -> sqlite3.Connection:
        if isolation_level is None:
            conn = sqlite3.connect(str(self.db_path), timeout=self._lock_timeout)
        else:
            conn = sqlite3.connect(
                str(self.db_path),
                timeout=self._lock_timeout,
                isolation_level=isolation_level,
            )
        conn.execute("PRAGMA journal_mode=WAL")
        return conn

    @contextmanager
    def _connect_read(self) -> Iterator[sqlite3.Connection]:
        conn = self._open(None)
        try:
            yield conn
        finally:
            conn.close()

    @contextmanager
    def _connect_write(self) -> Iterator[sqlite3.Connection]:
        conn = self._open("IMMEDIATE")
        try:
            yield conn
        finally:
            conn.close()

    def _retry(self, func: Callable[[], T]) -> T:
        return _with_retry(func, self._retry_max, self._retry_base, self._retry_max_delay)

    def _read(self, key: bytes) -> bytes | None:
        def do_read() -> bytes | None:
            with self._connect_read() as conn:
                row = conn.execute("SELECT value FROM kv WHERE key = ?", (key,)).fetchone()
            return None if row is None else bytes(row[0])

        return self._retry(do_read)

    def _apply(self, changes: dict[bytes, bytes | None]) -> None:
        upserts = [(k, v) for k, v in changes.items() if v is not None]
        deletes = [(k,) for k, v in changes.items() if v is None]

        def do_apply() -> None:
            with self._connect_write() as conn:
                try:
                    if upserts:
                        conn.executemany(
                            "INSERT OR REPLACE INTO kv (key, value) VALUES (?, ?)",
                            upserts,
                        )
                    if deletes:
                        conn.executemany("DELETE FROM kv WHERE key = ?", deletes)
                    conn.commit()
                except sqlite3.Error:
                    conn.rollback()
                    raise

        self._retry(do_apply)

    def _committed_usage(self) -> int:
        def do_usage() -> int:
            with self._connect_read() as conn:
                row = conn.execute(
                    "SELECT COALESCE(SUM(length(key) + length(value)), 0), COUNT(*) FROM kv"
                ).fetchone()
            return int(row[0]) + int(row[1]) * self.entry_overhead_bytes

        return self._retry(do_usage)


def build_storage(config: "StorageConfig") -> KeyValueStorage:
    """Create the backend named in config."""
    if config.backend == "sqlite":
        logger.info("Opening SQLite registry storage at %s", config.path)
        return SqliteStorage(
            config.path,
            entry_overhead_bytes=config.entry_overhead_bytes,
            retry_max=config.retry_max,
            retry_base=config.retry_base,
            retry_max_delay=config.retry_max_delay,
        )
    return MemoryStorage(entry_overhead_bytes=config.entry_overhead_bytes)
