from __future__ import annotations

import sqlite3
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS content_records (
    compound_key TEXT PRIMARY KEY,
    kind TEXT NOT NULL,
    url TEXT NOT NULL,
    title TEXT NOT NULL DEFAULT '',
    author TEXT NOT NULL DEFAULT '',
    content BLOB NULL,
    is_reader_mode_by_default INTEGER NOT NULL DEFAULT 0,
    is_reader_mode_available INTEGER NOT NULL DEFAULT 0,
    rss_contains_full_content INTEGER NOT NULL DEFAULT 0,
    is_from_clipboard INTEGER NOT NULL DEFAULT 0,
    meaningful_content_min_length INTEGER NOT NULL DEFAULT 0,
    inject_entry_image_into_header INTEGER NOT NULL DEFAULT 0,
    image_url TEXT NULL,
    publication_date TEXT NULL,
    display_publication_date INTEGER NOT NULL DEFAULT 0,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_content_records_url
ON content_records(url, updated_at DESC);

CREATE INDEX IF NOT EXISTS idx_content_records_kind_url
ON content_records(kind, url);
"""


class Database:
    def __init__(self, path: Path) -> None:
        self._path = path

    @property
    def path(self) -> Path:
        return self._path

    @contextmanager
    def connection(self) -> Iterator[sqlite3.Connection]:
        conn = sqlite3.connect(self._path)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        try:
            yield conn
            conn.commit()
        finally:
            conn.close()

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        """Connection holding the write lock from the first read, for read-modify-write."""
        conn = sqlite3.connect(self._path, timeout=30.0)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        try:
            conn.execute("BEGIN IMMEDIATE")
            yield conn
            conn.commit()
        except BaseException:
            conn.rollback()
            raise
        finally:
            conn.close()

    def initialize(self) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        with self.connection() as conn:
            conn.executescript(SCHEMA_SQL)
