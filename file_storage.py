"""Keyed blob storage for uploaded files."""

from __future__ import annotations

import sqlite3
import threading
import time
from dataclasses import dataclass
from pathlib import Path
from types import TracebackType


class StorageError(Exception):
    """Base class for storage failures."""


class StorageInitError(StorageError):
    pass


class StorageWriteError(StorageError):
    pass


class StorageReadError(StorageError):
    pass


class StoredFileNotFoundError(StorageError):
    def __init__(self, key: str) -> None:
        super().__init__(f"No stored file for key {key!r}")
        self.key = key


@dataclass(frozen=True, slots=True)
class StoredFile:
    key: str
    content: bytes
    content_type: str | None = None
    updated_at: float = 0.0

    @property
    def size(self) -> int:
        return len(self.content)


class FileStorage:
    backend_name: str = "memory"

    def put(self, key: str, content: bytes, content_type: str | None = None) -> bool:
        """Store ``content`` under ``key``; returns True when the key is new."""
        raise NotImplementedError

    def get(self, key: str) -> StoredFile:
        raise NotImplementedError

    def close(self) -> None:
        return None

    def __enter__(self) -> "FileStorage":
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        traceback: TracebackType | None,
    ) -> None:
        self.close()


class MemoryFileStorage(FileStorage):
    backend_name = "memory"

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._files: dict[str, StoredFile] = {}

    def put(self, key: str, content: bytes, content_type: str | None = None) -> bool:
        stored = StoredFile(
            key=key,
            content=bytes(content),
            content_type=content_type,
            updated_at=time.time(),
        )
        with self._lock:
            created = key not in self._files
            self._files[key] = stored
        return created

    def get(self, key: str) -> StoredFile:
        with self._lock:
            stored = self._files.get(key)
        if stored is None:
            raise StoredFileNotFoundError(key)
        return stored


class SqliteFileStorage(FileStorage):
    backend_name = "sqlite"

    def __init__(self, *, db_file: str) -> None:
        self._db_file = Path(db_file)
        self._lock = threading.Lock()
        try:
            self._db_file.parent.mkdir(parents=True, exist_ok=True)
            self._conn = sqlite3.connect(str(self._db_file), check_same_thread=False)
        except (OSError, sqlite3.Error) as exc:
            raise StorageInitError(f"Could not open database {self._db_file}: {exc}") from exc

        try:
            self._conn.execute("PRAGMA journal_mode=WAL")
            self._conn.execute("PRAGMA synchronous=NORMAL")
            self._init_schema()
        except sqlite3.Error as exc:
            self._conn.close()
            raise StorageInitError(f"Could not initialize database {self._db_file}: {exc}") from exc

    def _init_schema(self) -> None:
        self._conn.execute(
            """
            CREATE TABLE IF NOT EXISTS stored_files (
                key TEXT PRIMARY KEY,
                content BLOB NOT NULL,
                content_type TEXT,
                size INTEGER NOT NULL,
                updated_at REAL NOT NULL
            )
            """
        )
        self._conn.commit()

    def put(self, key: str, content: bytes, content_type: str | None = None) -> bool:
        payload = bytes(content)
        try:
            with self._lock, self._conn:
                existing = self._conn.execute(
                    "SELECT 1 FROM stored_files WHERE key = ?",
                    (key,),
                ).fetchone()
                self._conn.execute(
                    """
                    INSERT INTO stored_files (key, content, content_type, size, updated_at)
                    VALUES (?, ?, ?, ?, ?)
                    ON CONFLICT(key) DO UPDATE SET
                        content=excluded.content,
                        content_type=excluded.content_type,
                        size=excluded.size,
                        updated_at=excluded.updated_at
                    """,
                    (key, sqlite3.Binary(payload), content_type, len(payload), time.time()),
                )
        except sqlite3.Error as exc:
            raise StorageWriteError(f"Could not store {key!r}: {exc}") from exc
        return existing is None

    def get(self, key: str) -> StoredFile:
        try:
            with self._lock:
                row = self._conn.execute(
                    "SELECT content, content_type, updated_at FROM stored_files WHERE key = ?",
                    (key,),
                ).fetchone()
        except sqlite3.Error as exc:
            raise StorageReadError(f"Could not read {key!r}: {exc}") from exc

        if row is None:
            raise StoredFileNotFoundError(key)
        content, content_type, updated_at = row
        return StoredFile(
            key=key,
            content=bytes(content),
            content_type=content_type,
            updated_at=float(updated_at),
        )

    def close(self) -> None:
        with self._lock:
            self._conn.close()


def create_file_storage(*, backend: str, sqlite_file: str) -> FileStorage:
    normalized = backend.strip().lower()
    if normalized == "sqlite":
        return SqliteFileStorage(db_file=sqlite_file)
    if normalized == "memory":
        return MemoryFileStorage()
    raise StorageInitError(f"Unknown storage backend: {backend}")
