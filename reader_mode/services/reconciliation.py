from __future__ import annotations

import logging
from dataclasses import replace

from reader_mode.repositories.content_record_repository import (
    ContentRecord,
    RecordMutation,
    compress_html,
)
from reader_mode.services.content_store import ContentStore
from reader_mode.services.reader_urls import (
    is_ebook_url,
    is_file_url,
    is_native_reader_view,
    is_reader_file_url,
    is_snippet_url,
)
from reader_mode.telemetry import TelemetryClient

LOGGER = logging.getLogger("reader_mode.reconciliation")


def apply_reader_mode_defaults(
    record: ContentRecord,
    *,
    url: str,
    extracted_html: str | None,
    fallback_title: str | None,
) -> ContentRecord:
    """Record state after reader mode has been rendered for `url`."""
    updated = replace(record, is_reader_mode_by_default=True, is_reader_mode_available=False)
    if is_ebook_url(url) or is_file_url(url) or is_native_reader_view(url):
        return updated
    if extracted_html and not is_reader_file_url(url) and not updated.content:
        updated = replace(updated, content=compress_html(extracted_html))
    if not updated.title.strip() and fallback_title:
        updated = replace(updated, title=fallback_title.strip())
    return replace(updated, rss_contains_full_content=True)


class ReaderModeReconciler:
    """Keeps every record that shares a URL in agreement about reader mode and cached HTML."""

    def __init__(self, *, store: ContentStore, telemetry: TelemetryClient | None = None) -> None:
        self._store = store
        self._telemetry = telemetry if telemetry is not None else TelemetryClient.disabled()

    async def propagate_reader_mode_defaults(
        self,
        url: str,
        primary_record_key: str,
        extracted_html: str | None,
        fallback_title: str | None,
    ) -> int:
        records = await self._store.load_all_records_sharing_url(url)
        updated = 0
        failed = 0
        for record in records:
            if record.compound_key == primary_record_key:
                continue
            try:
                await self._store.write_transaction(
                    record.compound_key,
                    lambda current: apply_reader_mode_defaults(
                        current,
                        url=url,
                        extracted_html=extracted_html,
                        fallback_title=fallback_title,
                    ),
                )
            except Exception:
                failed += 1
                LOGGER.warning(
                    "reader mode propagation failed key=%s url=%s",
                    record.compound_key,
                    url,
                    exc_info=True,
                )
                continue
            updated += 1
        if updated or failed:
            self._telemetry.emit_for_url(
                "reader.reconciliation.propagate",
                url,
                updated=updated,
                failed=failed,
            )
        return updated

    async def invalidate_cache(self, record: ContentRecord, url: str, reason: str) -> ContentRecord:
        keep_flags = is_snippet_url(url)

        def _invalidate(current: ContentRecord) -> ContentRecord:
            if keep_flags:
                return replace(current, content=None)
            return replace(
                current,
                content=None,
                rss_contains_full_content=False,
                is_reader_mode_by_default=False,
                is_reader_mode_available=False,
            )

        LOGGER.warning(
            "invalidating cached reader content key=%s url=%s reason=%s",
            record.compound_key,
            url,
            reason,
        )
        self._telemetry.emit_for_url("reader.cache.invalidate", url, reason=reason)
        return await self._store.write_transaction(record.compound_key, _invalidate)

    async def record_readability_result(self, url: str, *, available: bool) -> int:
        return await self._write_all_sharing_url(
            url,
            lambda current: replace(current, is_reader_mode_available=available),
        )

    async def propagate_image_url(self, url: str, image_url: str) -> int:
        return await self._write_all_sharing_url(
            url,
            lambda current: replace(current, image_url=image_url),
        )

    async def propagate_page_metadata(
        self,
        url: str,
        *,
        title: str | None,
        author: str | None,
    ) -> int:
        def _fill_blanks(current: ContentRecord) -> ContentRecord:
            updated = current
            if title and not current.title.strip():
                updated = replace(updated, title=title.strip())
            if author and not current.author.strip():
                updated = replace(updated, author=author.strip())
            return updated

        return await self._write_all_sharing_url(url, _fill_blanks)

    async def _write_all_sharing_url(self, url: str, mutation: RecordMutation) -> int:
        records = await self._store.load_all_records_sharing_url(url)
        written = 0
        for record in records:
            try:
                await self._store.write_transaction(record.compound_key, mutation)
            except Exception:
                LOGGER.warning(
                    "record write failed key=%s url=%s",
                    record.compound_key,
                    url,
                    exc_info=True,
                )
                continue
            written += 1
        return written
