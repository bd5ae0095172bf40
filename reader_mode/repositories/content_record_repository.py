from __future__ import annotations

import zlib
from collections.abc import Callable, Iterable
from dataclasses import dataclass, replace
from datetime import datetime
from sqlite3 import Connection, Row

from reader_mode.repositories.common import (
    parse_iso_datetime,
    parse_iso_datetime_optional,
    utc_now,
)
from reader_mode.repositories.database import Database
from reader_mode.services.errors import ContentRecordNotFoundError
from reader_mode.services.reader_urls import is_snippet_url

RECORD_KIND_HISTORY = "history"
RECORD_KIND_BOOKMARK = "bookmark"
RECORD_KIND_FEED_ENTRY = "feed_entry"
RECORD_KINDS: frozenset[str] = frozenset(
    {RECORD_KIND_HISTORY, RECORD_KIND_BOOKMARK, RECORD_KIND_FEED_ENTRY}
)


@dataclass(frozen=True)
class ContentRecord:
    compound_key: str
    kind: str
    url: str
    created_at: datetime
    updated_at: datetime
    title: str = ""
    author: str = ""
    content: bytes | None = None
    is_reader_mode_by_default: bool = False
    is_reader_mode_available: bool = False
    rss_contains_full_content: bool = False
    is_from_clipboard: bool = False
    meaningful_content_min_length: int = 0
    inject_entry_image_into_header: bool = False
    image_url: str | None = None
    publication_date: datetime | None = None
    display_publication_date: bool = False

    @property
    def is_snippet_url(self) -> bool:
        return is_snippet_url(self.url)

    @property
    def html(self) -> str | None:
        return decompress_html(self.content)

    @property
    def has_html(self) -> bool:
        return bool(self.html)

    def with_html(self, html: str | None) -> ContentRecord:
        return replace(self, content=compress_html(html))


RecordMutation = Callable[[ContentRecord], ContentRecord]


def compress_html(html: str | None) -> bytes | None:
    if html is None:
        return None
    return zlib.compress(html.encode("utf-8"))


def decompress_html(content: bytes | None) -> str | None:
    if content is None:
        return None
    return zlib.decompress(content).decode("utf-8")


class ContentRecordRepository:
    def __init__(self, db: Database) -> None:
        self._db = db

    def get_record(self, compound_key: str) -> ContentRecord | None:
        with self._db.connection() as conn:
            return _get_record_with_conn(conn, compound_key)

    def find_records_by_urls(
        self,
        urls: Iterable[str],
        *,
        kinds: Iterable[str] | None = None,
    ) -> list[ContentRecord]:
        url_values = sorted({url for url in urls if url})
        if not url_values:
            return []
        clauses = [f"url IN ({', '.join('?' for _ in url_values)})"]
        params: list[object] = list(url_values)
        kind_values = sorted(set(kinds)) if kinds is not None else []
        if kind_values:
            clauses.append(f"kind IN ({', '.join('?' for _ in kind_values)})")
            params.extend(kind_values)
        where_sql = " AND ".join(clauses)
        with self._db.connection() as conn:
            rows = conn.execute(
                f"""
                SELECT *
                FROM content_records
                WHERE {where_sql}
                ORDER BY updated_at DESC, compound_key ASC
                """,
                tuple(params),
            ).fetchall()
        return [_row_to_record(row) for row in rows]

    def list_records(self, *, limit: int = 50) -> list[ContentRecord]:
        with self._db.connection() as conn:
            rows = conn.execute(
                """
                SELECT *
                FROM content_records
                ORDER BY updated_at DESC
                LIMIT ?
                """,
                (max(1, min(limit, 500)),),
            ).fetchall()
        return [_row_to_record(row) for row in rows]

    def upsert_record(self, record: ContentRecord) -> ContentRecord:
        if record.kind not in RECORD_KINDS:
            raise ValueError(f"Unsupported content record kind: {record.kind}")
        with self._db.transaction() as conn:
            _write_record_with_conn(conn, record)
            stored = _get_record_with_conn(conn, record.compound_key)
        if stored is None:
            raise RuntimeError("Content record was not found after upsert")
        return stored

    def update_record(self, compound_key: str, mutation: RecordMutation) -> ContentRecord:
        """Re-read the record under the write lock, apply `mutation` and persist the result."""
        with self._db.transaction() as conn:
            current = _get_record_with_conn(conn, compound_key)
            if current is None:
                raise ContentRecordNotFoundError(compound_key)
            updated = mutation(current)
            if updated.compound_key != compound_key:
                raise ValueError("Record mutations must not change the compound key")
            updated = replace(updated, updated_at=utc_now())
            _write_record_with_conn(conn, updated)
        return updated


def _get_record_with_conn(conn: Connection, compound_key: str) -> ContentRecord | None:
    row = conn.execute(
        """
        SELECT *
        FROM content_records
        WHERE compound_key = ?
        LIMIT 1
        """,
        (compound_key,),
    ).fetchone()
    if row is None:
        return None
    return _row_to_record(row)


def _write_record_with_conn(conn: Connection, record: ContentRecord) -> None:
    conn.execute(
        """
        INSERT INTO content_records (
            compound_key,
            kind,
            url,
            title,
            author,
            content,
            is_reader_mode_by_default,
            is_reader_mode_available,
            rss_contains_full_content,
            is_from_clipboard,
            meaningful_content_min_length,
            inject_entry_image_into_header,
            image_url,
            publication_date,
            display_publication_date,
            created_at,
            updated_at
        )
        VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        ON CONFLICT(compound_key) DO UPDATE SET
            kind = excluded.kind,
            url = excluded.url,
            title = excluded.title,
            author = excluded.author,
            content = excluded.content,
            is_reader_mode_by_default = excluded.is_reader_mode_by_default,
            is_reader_mode_available = excluded.is_reader_mode_available,
            rss_contains_full_content = excluded.rss_contains_full_content,
            is_from_clipboard = excluded.is_from_clipboard,
            meaningful_content_min_length = excluded.meaningful_content_min_length,
            inject_entry_image_into_header = excluded.inject_entry_image_into_header,
            image_url = excluded.image_url,
            publication_date = excluded.publication_date,
            display_publication_date = excluded.display_publication_date,
            updated_at = excluded.updated_at
        """,
        (
            record.compound_key,
            record.kind,
            record.url,
            record.title,
            record.author,
            record.content,
            int(record.is_reader_mode_by_default),
            int(record.is_reader_mode_available),
            int(record.rss_contains_full_content),
            int(record.is_from_clipboard),
            max(0, record.meaningful_content_min_length),
            int(record.inject_entry_image_into_header),
            record.image_url,
            record.publication_date.isoformat() if record.publication_date is not None else None,
            int(record.display_publication_date),
            record.created_at.isoformat(),
            record.updated_at.isoformat(),
        ),
    )


def _row_to_record(row: Row) -> ContentRecord:
    content = row["content"]
    return ContentRecord(
        compound_key=str(row["compound_key"]),
        kind=str(row["kind"]),
        url=str(row["url"]),
        title=str(row["title"] or ""),
        author=str(row["author"] or ""),
        content=bytes(content) if content is not None else None,
        is_reader_mode_by_default=bool(row["is_reader_mode_by_default"]),
        is_reader_mode_available=bool(row["is_reader_mode_available"]),
        rss_contains_full_content=bool(row["rss_contains_full_content"]),
        is_from_clipboard=bool(row["is_from_clipboard"]),
        meaningful_content_min_length=int(row["meaningful_content_min_length"] or 0),
        inject_entry_image_into_header=bool(row["inject_entry_image_into_header"]),
        image_url=row["image_url"],
        publication_date=parse_iso_datetime_optional(row["publication_date"]),
        display_publication_date=bool(row["display_publication_date"]),
        created_at=parse_iso_datetime(str(row["created_at"])),
        updated_at=parse_iso_datetime(str(row["updated_at"])),
    )
