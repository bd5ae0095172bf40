"""Helpers over content records: identity keys, display values and record creation."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Protocol
from urllib.parse import unquote, urlsplit
from uuid import uuid4

from reader_mode.repositories.common import utc_now
from reader_mode.repositories.content_record_repository import (
    RECORD_KIND_HISTORY,
    ContentRecord,
    compress_html,
)
from reader_mode.services.content_store import ContentStore
from reader_mode.services.html_utils import convert_plain_text_to_html, strip_html_tags
from reader_mode.services.reader_document import derive_title, parse_document
from reader_mode.services.reader_urls import (
    canonical_reader_content_url,
    is_about_url,
    is_file_url,
    is_internal_url,
    is_native_reader_view,
    is_reader_file_url,
    is_snippet_url,
    snippet_key,
    snippet_url,
)

LOGGER = logging.getLogger("reader_mode.reader_content")

UNTITLED = "Untitled"
CLIPBOARD_TITLE_PREFIX = "📎 "
_HASH_MASK = 0xFFFFFFFFFFFFFFFF


class ReaderFileReader(Protocol):
    async def read_html(self, url: str) -> str | None:
        ...


def stable_hash(value: str) -> int:
    """64-bit string hash that is stable across processes and platforms."""
    result = 5381
    for byte in value.encode("utf-8"):
        result = (127 * (result & 0x00FFFFFFFFFFFFFF) + byte) & _HASH_MASK
    return result


def make_compound_key(key_prefix: str | None, url: str | None, html: str | None) -> str | None:
    if url is None and html is None:
        return None
    key = f"{key_prefix}-" if key_prefix else ""
    if url is not None and is_snippet_url(url):
        embedded = snippet_key(url)
        if embedded is not None:
            return key + embedded
    if url is not None and not ((is_about_url(url) or is_internal_url(url)) and html):
        if is_about_url(url):
            return key + uuid4().hex.upper()
        return key + f"{stable_hash(url):02X}"
    if html:
        return key + f"{stable_hash(html):02X}"
    return key + uuid4().hex.upper()


def title_for_display(record: ContentRecord) -> str:
    title = strip_html_tags(record.title).strip() or UNTITLED
    if record.is_from_clipboard:
        return CLIPBOARD_TITLE_PREFIX + title
    return title


async def html_to_display(
    record: ContentRecord,
    *,
    file_reader: ReaderFileReader | None = None,
) -> str | None:
    """HTML to show for a record without a network load, or None when it must be fetched."""
    if record.rss_contains_full_content or record.is_from_clipboard:
        return record.html
    if is_reader_file_url(record.url):
        if file_reader is None:
            LOGGER.debug("no reader file reader configured url=%s", record.url)
            return None
        return await file_reader.read_html(record.url)
    if is_file_url(record.url):
        return await asyncio.to_thread(_read_local_file, record.url)
    return None


def _read_local_file(url: str) -> str | None:
    path = Path(unquote(urlsplit(url).path))
    if not path.is_file() or path.suffix.lower() not in {".html", ".htm", ".xhtml", ".txt"}:
        return None
    text = path.read_text(encoding="utf-8", errors="replace")
    if path.suffix.lower() == ".txt":
        return convert_plain_text_to_html(text, force_raw=True)
    return text


def wrap_html_body(body_html: str) -> str:
    return f"<html><body>{body_html}</body></html>"


class ReaderContentLoader:
    """Finds or creates the content record that backs a URL, pasted HTML or pasted text."""

    def __init__(self, *, store: ContentStore) -> None:
        self._store = store

    async def load(self, url: str) -> ContentRecord | None:
        content_url = canonical_reader_content_url(url)
        if is_native_reader_view(content_url):
            return None
        existing = await self._store.load_record(content_url)
        if existing is not None:
            return existing
        if is_internal_url(content_url) and not is_snippet_url(content_url):
            return None
        compound_key = make_compound_key(None, content_url, None)
        assert compound_key is not None
        now = utc_now()
        return await self._store.save_record(
            ContentRecord(
                compound_key=compound_key,
                kind=RECORD_KIND_HISTORY,
                url=content_url,
                created_at=now,
                updated_at=now,
            )
        )

    async def load_html(self, html: str, *, is_from_clipboard: bool = False) -> ContentRecord:
        key = f"{stable_hash(html):02X}"
        url = snippet_url(key)
        existing = await self._store.load_record(url)
        if existing is not None:
            return existing
        compound_key = make_compound_key(None, url, html)
        assert compound_key is not None
        now = utc_now()
        record = ContentRecord(
            compound_key=compound_key,
            kind=RECORD_KIND_HISTORY,
            url=url,
            created_at=now,
            updated_at=now,
            title=derive_title(parse_document(html)) or "",
            content=compress_html(html),
            is_reader_mode_by_default=True,
            rss_contains_full_content=True,
            is_from_clipboard=is_from_clipboard,
            publication_date=now,
        )
        LOGGER.info("snippet record created key=%s clipboard=%s", compound_key, is_from_clipboard)
        return await self._store.save_record(record)

    async def load_text(self, text: str) -> ContentRecord:
        body = convert_plain_text_to_html(text, force_raw=True)
        return await self.load_html(wrap_html_body(body), is_from_clipboard=True)
