from __future__ import annotations

import asyncio
from typing import Protocol

from reader_mode.repositories.content_record_repository import (
    RECORD_KIND_FEED_ENTRY,
    ContentRecord,
    ContentRecordRepository,
    RecordMutation,
)
from reader_mode.services.reader_urls import canonical_reader_content_url, http_scheme_variants


class ContentStore(Protocol):
    async def load_record(self, url: str) -> ContentRecord | None:
        ...

    async def load_all_records_sharing_url(self, url: str) -> list[ContentRecord]:
        ...

    async def get_record(self, compound_key: str) -> ContentRecord | None:
        ...

    async def save_record(self, record: ContentRecord) -> ContentRecord:
        ...

    async def write_transaction(self, compound_key: str, mutation: RecordMutation) -> ContentRecord:
        ...


class SQLiteContentStore:
    """Async content store over the SQLite repository; blocking calls run in worker threads."""

    def __init__(self, repository: ContentRecordRepository) -> None:
        self._repository = repository

    async def load_record(self, url: str) -> ContentRecord | None:
        records = await self.load_all_records_sharing_url(url)
        if not records:
            return None
        return records[0]

    async def load_all_records_sharing_url(self, url: str) -> list[ContentRecord]:
        content_url = canonical_reader_content_url(url)
        records = await asyncio.to_thread(
            self._repository.find_records_by_urls,
            http_scheme_variants(content_url),
        )
        return [
            record
            for record in records
            if record.url == content_url or record.kind == RECORD_KIND_FEED_ENTRY
        ]

    async def get_record(self, compound_key: str) -> ContentRecord | None:
        return await asyncio.to_thread(self._repository.get_record, compound_key)

    async def save_record(self, record: ContentRecord) -> ContentRecord:
        return await asyncio.to_thread(self._repository.upsert_record, record)

    async def write_transaction(self, compound_key: str, mutation: RecordMutation) -> ContentRecord:
        return await asyncio.to_thread(self._repository.update_record, compound_key, mutation)
