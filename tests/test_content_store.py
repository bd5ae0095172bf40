from __future__ import annotations

import zlib
from dataclasses import replace

import pytest
from conftest import ARTICLE_URL, make_record

from reader_mode.repositories.content_record_repository import (
    RECORD_KIND_BOOKMARK,
    RECORD_KIND_FEED_ENTRY,
    ContentRecordRepository,
    compress_html,
    decompress_html,
)
from reader_mode.services.content_store import SQLiteContentStore
from reader_mode.services.errors import ContentRecordNotFoundError
from reader_mode.services.reader_urls import reader_loader_url


def test_html_is_stored_zlib_compressed(repository: ContentRecordRepository) -> None:
    stored = repository.upsert_record(make_record("A1", ARTICLE_URL, html="<p>río</p>"))

    assert stored.content is not None
    assert zlib.decompress(stored.content).decode("utf-8") == "<p>río</p>"
    assert stored.html == "<p>río</p>"
    assert stored.has_html is True
    assert decompress_html(compress_html(None)) is None
    assert stored.with_html("").has_html is False


def test_upsert_rejects_unknown_kind(repository: ContentRecordRepository) -> None:
    with pytest.raises(ValueError, match="Unsupported content record kind"):
        repository.upsert_record(make_record("A1", ARTICLE_URL, kind="playlist"))


def test_update_record_applies_mutation_and_bumps_timestamp(
    repository: ContentRecordRepository,
) -> None:
    original = repository.upsert_record(make_record("A1", ARTICLE_URL, title="Before"))

    updated = repository.update_record("A1", lambda current: replace(current, title="After"))

    assert updated.title == "After"
    assert updated.updated_at > original.updated_at
    fetched = repository.get_record("A1")
    assert fetched is not None
    assert fetched.title == "After"
    assert fetched.created_at == original.created_at


def test_update_record_for_missing_key_raises(repository: ContentRecordRepository) -> None:
    with pytest.raises(ContentRecordNotFoundError) as excinfo:
        repository.update_record("missing", lambda current: current)

    assert excinfo.value.compound_key == "missing"


def test_update_record_must_keep_compound_key(repository: ContentRecordRepository) -> None:
    repository.upsert_record(make_record("A1", ARTICLE_URL))

    with pytest.raises(ValueError):
        repository.update_record("A1", lambda current: replace(current, compound_key="B2"))


def test_list_records_newest_first(repository: ContentRecordRepository) -> None:
    repository.upsert_record(make_record("A1", ARTICLE_URL))
    repository.upsert_record(make_record("B2", "https://example.com/other"))
    repository.update_record("A1", lambda current: replace(current, title="touched"))

    keys = [record.compound_key for record in repository.list_records(limit=10)]

    assert keys == ["A1", "B2"]


async def test_store_resolves_loader_urls_and_feed_scheme_variants(
    store: SQLiteContentStore,
) -> None:
    http_url = "http" + ARTICLE_URL[len("https"):]
    await store.save_record(make_record("HIST", ARTICLE_URL))
    await store.save_record(make_record("BOOK", ARTICLE_URL, kind=RECORD_KIND_BOOKMARK))
    await store.save_record(make_record("FEED", http_url, kind=RECORD_KIND_FEED_ENTRY))
    await store.save_record(make_record("OTHER", http_url))

    records = await store.load_all_records_sharing_url(reader_loader_url(ARTICLE_URL))

    assert sorted(record.compound_key for record in records) == ["BOOK", "FEED", "HIST"]
    assert await store.load_record("https://example.com/nothing-here") is None


async def test_store_write_transaction_for_missing_key_raises(store: SQLiteContentStore) -> None:
    with pytest.raises(ContentRecordNotFoundError):
        await store.write_transaction("missing", lambda current: current)
