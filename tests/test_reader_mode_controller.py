from __future__ import annotations

import asyncio
from collections.abc import Callable
from typing import Any

import pytest
from bs4 import BeautifulSoup
from conftest import ARTICLE_HTML, ARTICLE_PARAGRAPHS, ARTICLE_URL, FakeBrowserSurface, make_record

from reader_mode.models.reader_events import (
    ImageUpdated,
    NavigationFailed,
    NavigationFinished,
    PageMetadataUpdated,
    ReadabilityModeUnavailable,
    ReadabilityParsed,
)
from reader_mode.repositories.content_record_repository import (
    RECORD_KIND_BOOKMARK,
    ContentRecord,
    RecordMutation,
)
from reader_mode.services.browser_surface import FrameRef
from reader_mode.services.content_store import SQLiteContentStore
from reader_mode.services.errors import LoadCancelledError
from reader_mode.services.reader_mode_controller import LoadToken, ReaderModeController
from reader_mode.services.reader_urls import reader_loader_url, snippet_url

OTHER_URL = "https://example.com/articles/still-lakes"
ControllerFactory = Callable[..., ReaderModeController]


class _GatedStore:
    """Store whose `load_record` blocks until the test opens the gate."""

    def __init__(self, inner: SQLiteContentStore) -> None:
        self._inner = inner
        self.entered = asyncio.Event()
        self.gate = asyncio.Event()

    async def load_record(self, url: str) -> ContentRecord | None:
        self.entered.set()
        await self.gate.wait()
        return await self._inner.load_record(url)

    async def load_all_records_sharing_url(self, url: str) -> list[ContentRecord]:
        return await self._inner.load_all_records_sharing_url(url)

    async def get_record(self, compound_key: str) -> ContentRecord | None:
        return await self._inner.get_record(compound_key)

    async def save_record(self, record: ContentRecord) -> ContentRecord:
        return await self._inner.save_record(record)

    async def write_transaction(self, compound_key: str, mutation: RecordMutation) -> ContentRecord:
        return await self._inner.write_transaction(compound_key, mutation)


class _BrokenStore(_GatedStore):
    async def load_record(self, url: str) -> ContentRecord | None:
        raise RuntimeError("database is locked")


def _reader_body(html: str) -> BeautifulSoup:
    return BeautifulSoup(html, "lxml")


async def _save_article(store: SQLiteContentStore, **changes: Any) -> ContentRecord:
    options: dict[str, Any] = {"html": ARTICLE_HTML, "rss_contains_full_content": True}
    options.update(changes)
    return await store.save_record(make_record("HIST", ARTICLE_URL, **options))


async def test_loader_commit_renders_reader_view(
    controller: ReaderModeController,
    store: SQLiteContentStore,
    browser: FakeBrowserSurface,
    completions: list[str],
) -> None:
    await _save_article(store)
    await store.save_record(make_record("SAVED", ARTICLE_URL, kind=RECORD_KIND_BOOKMARK))

    controller.begin_load(ARTICLE_URL, reason="open")
    assert controller.snapshot.is_loading is True
    assert controller.snapshot.pending_url == ARTICLE_URL

    await controller.on_navigation_committed(reader_loader_url(ARTICLE_URL))

    state = controller.snapshot
    assert state.pending_url is None
    assert state.is_loading is False
    assert state.is_reader_mode is True
    assert state.last_rendered_url == ARTICLE_URL
    assert state.expected_synthetic_commit_url == ARTICLE_URL
    assert completions == [ARTICLE_URL]

    assert len(browser.loaded_html) == 1
    base_url, html = browser.loaded_html[0]
    assert base_url == ARTICLE_URL
    soup = _reader_body(html)
    assert soup.body is not None
    assert "readability-mode" in soup.body["class"]
    assert soup.body["style"] == "font-size: 21px"
    content = soup.select_one("#reader-content")
    assert content is not None
    assert "count the stones on the bottom" in content.get_text()
    date = soup.select_one("#reader-publication-date")
    assert date is not None and date.get_text() == "March 5, 2024"

    primary = await store.get_record("HIST")
    bookmark = await store.get_record("SAVED")
    assert primary is not None and bookmark is not None
    assert primary.is_reader_mode_by_default is True
    assert primary.title
    assert primary.html == ARTICLE_HTML
    assert bookmark.is_reader_mode_by_default is True
    assert bookmark.rss_contains_full_content is True


async def test_synthetic_commit_is_consumed_once_and_completion_repeats(
    controller: ReaderModeController,
    store: SQLiteContentStore,
    browser: FakeBrowserSurface,
    completions: list[str],
) -> None:
    await _save_article(store)
    controller.begin_load(ARTICLE_URL)
    await controller.on_navigation_committed(reader_loader_url(ARTICLE_URL))

    await controller.on_navigation_committed(ARTICLE_URL)

    assert controller.snapshot.expected_synthetic_commit_url is None
    assert completions == [ARTICLE_URL]
    assert len(browser.loaded_html) == 1

    controller.mark_load_complete(ARTICLE_URL)

    assert completions == [ARTICLE_URL, ARTICLE_URL]
    assert controller.snapshot.is_loading is False


async def test_synthetic_commit_requires_exact_url_match(
    controller: ReaderModeController,
    store: SQLiteContentStore,
) -> None:
    await _save_article(store)
    controller.begin_load(ARTICLE_URL)
    await controller.on_navigation_committed(reader_loader_url(ARTICLE_URL))

    assert controller.consume_synthetic_commit_expectation(reader_loader_url(ARTICLE_URL)) is False
    assert controller.consume_synthetic_commit_expectation(ARTICLE_URL + "#top") is False
    assert controller.consume_synthetic_commit_expectation(ARTICLE_URL) is True
    assert controller.consume_synthetic_commit_expectation(ARTICLE_URL) is False


def test_begin_load_is_idempotent_and_newer_load_supersedes(
    controller: ReaderModeController,
    completions: list[str],
) -> None:
    controller.begin_load(ARTICLE_URL)
    controller.begin_load(reader_loader_url(ARTICLE_URL))

    assert controller.snapshot.pending_url == ARTICLE_URL
    assert controller.is_load_pending(reader_loader_url(ARTICLE_URL)) is True

    controller.begin_load(OTHER_URL)
    controller.mark_load_complete(ARTICLE_URL)

    assert controller.snapshot.pending_url == OTHER_URL
    assert controller.snapshot.is_loading is True
    assert controller.is_load_pending(ARTICLE_URL) is False
    assert completions == []


def test_cancelled_token_keeps_first_reason() -> None:
    token = LoadToken(ARTICLE_URL)
    token.cancel("first")
    token.cancel("second")

    with pytest.raises(LoadCancelledError) as excinfo:
        token.check()

    assert excinfo.value.reason == "first"
    assert excinfo.value.url == ARTICLE_URL
    assert token.is_cancelled is True


def test_suppressed_spinner_load(controller: ReaderModeController) -> None:
    controller.begin_load(ARTICLE_URL, suppress_spinner=True)

    assert controller.snapshot.pending_url == ARTICLE_URL
    assert controller.snapshot.is_loading is False
    assert controller.snapshot.load_started_at is not None


def test_cancel_without_pending_load_reports_about_blank(
    controller: ReaderModeController,
    completions: list[str],
) -> None:
    controller.cancel_load(reason="user stopped")

    assert completions == ["about:blank"]
    assert controller.snapshot.is_loading is False


def test_cancel_pending_load_clears_state(
    controller: ReaderModeController,
    completions: list[str],
) -> None:
    controller.begin_load(ARTICLE_URL)

    controller.cancel_load(reader_loader_url(ARTICLE_URL), reason="user stopped")

    state = controller.snapshot
    assert state.pending_url is None
    assert state.is_loading is False
    assert state.expected_synthetic_commit_url is None
    assert completions == [ARTICLE_URL]


def test_snippet_completion_without_extraction_is_terminal(
    controller: ReaderModeController,
    completions: list[str],
) -> None:
    url = snippet_url("PASTE1")
    controller.begin_load(url)

    controller.mark_load_complete(url)

    assert controller.snapshot.pending_url is None
    assert controller.snapshot.last_fallback_url == url
    assert completions == [url]


def test_completion_without_extraction_finishes_ordinary_pages(
    controller: ReaderModeController,
    completions: list[str],
) -> None:
    controller.begin_load(OTHER_URL)

    controller.mark_load_complete(OTHER_URL)

    assert controller.snapshot.pending_url is None
    assert controller.snapshot.last_fallback_url == OTHER_URL
    assert completions == [OTHER_URL]


async def test_completion_waits_for_outstanding_synthetic_commit(
    controller: ReaderModeController,
    store: SQLiteContentStore,
    completions: list[str],
) -> None:
    await _save_article(store)
    controller.begin_load(ARTICLE_URL)
    await controller.on_navigation_committed(reader_loader_url(ARTICLE_URL))
    completions.clear()

    controller.begin_load(OTHER_URL)
    controller.mark_load_complete(OTHER_URL)

    assert controller.snapshot.pending_url == OTHER_URL
    assert completions == []


async def test_unreadable_content_falls_back_to_original_html_once(
    controller: ReaderModeController,
    store: SQLiteContentStore,
    browser: FakeBrowserSurface,
    completions: list[str],
) -> None:
    short_html = "<html><body><p>Too short to read.</p></body></html>"
    await _save_article(store, html=short_html, meaningful_content_min_length=500)

    controller.begin_load(ARTICLE_URL)
    await controller.on_navigation_committed(reader_loader_url(ARTICLE_URL))

    assert browser.loaded_html == [(ARTICLE_URL, short_html)]
    assert controller.snapshot.pending_url is None
    assert controller.snapshot.last_fallback_url == ARTICLE_URL
    assert controller.snapshot.expected_synthetic_commit_url is None
    assert completions == [ARTICLE_URL]
    record = await store.get_record("HIST")
    assert record is not None
    assert record.is_reader_mode_available is False

    await controller.on_navigation_committed(reader_loader_url(ARTICLE_URL))

    assert len(browser.loaded_html) == 1
    assert completions == [ARTICLE_URL, ARTICLE_URL]


async def test_missing_cached_content_is_invalidated_and_refetched_once(
    controller: ReaderModeController,
    store: SQLiteContentStore,
    browser: FakeBrowserSurface,
    completions: list[str],
) -> None:
    await _save_article(store, html="<html><body>   </body></html>", is_reader_mode_by_default=True)
    loader_url = reader_loader_url(ARTICLE_URL)

    controller.begin_load(ARTICLE_URL)
    await controller.on_navigation_committed(loader_url)

    record = await store.get_record("HIST")
    assert record is not None
    assert record.content is None
    assert record.rss_contains_full_content is False
    assert browser.requests == [ARTICLE_URL]
    assert browser.loaded_html == []
    assert controller.snapshot.pending_url is None
    assert completions == [loader_url]

    await controller.on_navigation_committed(loader_url)

    assert browser.requests == [ARTICLE_URL]


async def test_newer_navigation_cancels_stale_commit_work(
    make_controller: ControllerFactory,
    store: SQLiteContentStore,
    browser: FakeBrowserSurface,
) -> None:
    await _save_article(store)
    gated = _GatedStore(store)
    controller = make_controller(store=gated)

    controller.begin_load(ARTICLE_URL)
    task = asyncio.create_task(controller.on_navigation_committed(reader_loader_url(ARTICLE_URL)))
    await gated.entered.wait()
    controller.begin_load(OTHER_URL)
    gated.gate.set()
    await task

    assert browser.loaded_html == []
    assert controller.snapshot.pending_url == OTHER_URL
    assert controller.snapshot.last_rendered_url is None


async def test_failing_step_cancels_the_load(
    make_controller: ControllerFactory,
    store: SQLiteContentStore,
    completions: list[str],
) -> None:
    controller = make_controller(store=_BrokenStore(store))

    controller.begin_load(ARTICLE_URL)
    await controller.on_navigation_committed(reader_loader_url(ARTICLE_URL))

    assert controller.snapshot.pending_url is None
    assert completions == [ARTICLE_URL]


async def test_commit_without_record_cancels(
    controller: ReaderModeController,
    completions: list[str],
) -> None:
    controller.begin_load(OTHER_URL)

    await controller.on_navigation_committed(OTHER_URL)

    assert controller.snapshot.pending_url is None
    assert completions == [OTHER_URL]


async def test_reader_default_record_starts_load_on_plain_commit(
    controller: ReaderModeController,
    store: SQLiteContentStore,
    browser: FakeBrowserSurface,
) -> None:
    await _save_article(store, is_reader_mode_by_default=True)

    await controller.on_navigation_committed(ARTICLE_URL)

    assert controller.snapshot.is_reader_mode is True
    assert controller.is_load_pending(ARTICLE_URL) is True
    assert browser.loaded_html == []


async def test_commit_for_another_reader_default_page_replaces_pending_load(
    controller: ReaderModeController,
    store: SQLiteContentStore,
    browser: FakeBrowserSurface,
    completions: list[str],
) -> None:
    await store.save_record(make_record("FIRST", OTHER_URL, is_reader_mode_by_default=True))
    await store.save_record(make_record("HIST", ARTICLE_URL, is_reader_mode_by_default=True))

    await controller.on_navigation_committed(OTHER_URL)
    assert controller.is_load_pending(OTHER_URL) is True

    browser.current_url = ARTICLE_URL
    browser.document_html = ARTICLE_HTML
    await controller.on_navigation_committed(ARTICLE_URL)

    state = controller.snapshot
    assert state.pending_url == ARTICLE_URL
    assert state.is_loading is True
    assert completions == [OTHER_URL]

    await controller.handle(NavigationFinished(url=ARTICLE_URL))

    state = controller.snapshot
    assert state.pending_url is None
    assert state.is_loading is False
    assert state.last_rendered_url == ARTICLE_URL
    assert completions == [OTHER_URL, ARTICLE_URL]
    assert [base_url for base_url, _ in browser.loaded_html] == [ARTICLE_URL]


async def test_navigation_finished_extracts_live_page(
    controller: ReaderModeController,
    store: SQLiteContentStore,
    browser: FakeBrowserSurface,
    completions: list[str],
) -> None:
    await store.save_record(make_record("HIST", ARTICLE_URL))
    browser.current_url = ARTICLE_URL
    browser.document_html = ARTICLE_HTML

    controller.begin_load(ARTICLE_URL)
    await controller.handle(NavigationFinished(url=ARTICLE_URL))

    assert len(browser.loaded_html) == 1
    assert browser.loaded_html[0][0] == ARTICLE_URL
    assert completions == [ARTICLE_URL]
    record = await store.get_record("HIST")
    assert record is not None
    assert record.is_reader_mode_by_default is True
    assert record.html is not None
    assert ARTICLE_PARAGRAPHS[0][:40] in record.html


async def test_navigation_finished_leaves_non_article_pages_alone(
    controller: ReaderModeController,
    store: SQLiteContentStore,
    browser: FakeBrowserSurface,
    completions: list[str],
) -> None:
    await store.save_record(make_record("HIST", ARTICLE_URL, is_reader_mode_available=True))
    browser.current_url = ARTICLE_URL
    browser.document_html = "<html><body><p>Sign in to continue.</p></body></html>"

    controller.begin_load(ARTICLE_URL)
    await controller.handle(NavigationFinished(url=ARTICLE_URL))

    assert browser.loaded_html == []
    assert completions == [ARTICLE_URL]
    assert controller.snapshot.is_loading is False
    record = await store.get_record("HIST")
    assert record is not None
    assert record.is_reader_mode_available is False


async def test_navigation_failed_cancels_pending_load(
    controller: ReaderModeController,
    completions: list[str],
) -> None:
    controller.begin_load(ARTICLE_URL)

    await controller.handle(NavigationFailed(url=ARTICLE_URL, error="offline"))

    assert controller.snapshot.pending_url is None
    assert completions == [ARTICLE_URL]


async def test_readability_parsed_shows_reader_view_for_reader_default_record(
    controller: ReaderModeController,
    store: SQLiteContentStore,
    browser: FakeBrowserSurface,
    completions: list[str],
) -> None:
    await store.save_record(make_record("HIST", ARTICLE_URL, is_reader_mode_by_default=True))
    browser.current_url = ARTICLE_URL
    controller.begin_load(ARTICLE_URL)

    await controller.handle(
        ReadabilityParsed(
            window_url=ARTICLE_URL,
            content="<p>Parsed in the page.</p><script>track()</script>",
            title="Parsed Title",
            byline="By Jane Doe",
            published_time="2024-03-05",
        )
    )

    assert completions == [ARTICLE_URL]
    soup = _reader_body(browser.loaded_html[0][1])
    title = soup.select_one("#reader-title")
    byline = soup.select_one("#reader-byline")
    content = soup.select_one("#reader-content")
    assert title is not None and title.get_text() == "Parsed Title"
    assert byline is not None and byline.get_text() == "Jane Doe"
    assert content is not None and content.find("script") is None
    record = await store.get_record("HIST")
    assert record is not None
    assert record.title == "Parsed Title"


async def test_readability_parsed_in_sub_frame_replaces_frame_document(
    controller: ReaderModeController,
    store: SQLiteContentStore,
    browser: FakeBrowserSurface,
) -> None:
    await store.save_record(make_record("HIST", ARTICLE_URL, is_reader_mode_by_default=True))
    browser.current_url = ARTICLE_URL
    controller.begin_load(ARTICLE_URL)

    await controller.handle(
        ReadabilityParsed(
            window_url=ARTICLE_URL,
            content="<p>Frame text.</p>",
            frame_is_main=False,
            frame_id="frame-7",
        )
    )

    assert browser.loaded_html == []
    assert len(browser.scripts) == 1
    script, frame = browser.scripts[0]
    assert frame == FrameRef(frame_id="frame-7", is_main=False)
    assert "Frame text." in script
    assert controller.snapshot.expected_synthetic_commit_url is None
    assert controller.snapshot.last_rendered_url == ARTICLE_URL


async def test_readability_result_for_another_page_is_dropped(
    controller: ReaderModeController,
    store: SQLiteContentStore,
    browser: FakeBrowserSurface,
) -> None:
    await store.save_record(make_record("HIST", ARTICLE_URL, is_reader_mode_by_default=True))
    browser.current_url = OTHER_URL

    await controller.handle(ReadabilityParsed(window_url=ARTICLE_URL, content="<p>late</p>"))

    assert controller.snapshot.extracted_content is None
    record = await store.get_record("HIST")
    assert record is not None
    assert record.is_reader_mode_available is False


async def test_readability_unavailable_completes_pending_load(
    controller: ReaderModeController,
    store: SQLiteContentStore,
    completions: list[str],
) -> None:
    await store.save_record(make_record("HIST", ARTICLE_URL, is_reader_mode_available=True))
    controller.begin_load(ARTICLE_URL)

    await controller.handle(ReadabilityModeUnavailable(window_url=ARTICLE_URL))

    record = await store.get_record("HIST")
    assert record is not None
    assert record.is_reader_mode_available is False
    assert completions == [ARTICLE_URL]


async def test_image_and_metadata_events_update_records(
    controller: ReaderModeController,
    store: SQLiteContentStore,
) -> None:
    await store.save_record(make_record("HIST", ARTICLE_URL))

    await controller.handle(
        ImageUpdated(main_document_url=reader_loader_url(ARTICLE_URL), image_url="https://example.com/c.jpg")
    )
    await controller.handle(PageMetadataUpdated(url=ARTICLE_URL, title="Quiet Rivers", author="Jane"))

    record = await store.get_record("HIST")
    assert record is not None
    assert record.image_url == "https://example.com/c.jpg"
    assert record.title == "Quiet Rivers"
    assert record.author == "Jane"


async def test_clear_readability_cache_forgets_rendered_page(
    controller: ReaderModeController,
    store: SQLiteContentStore,
) -> None:
    await _save_article(store)
    controller.begin_load(ARTICLE_URL)
    await controller.on_navigation_committed(reader_loader_url(ARTICLE_URL))

    controller.clear_readability_cache(ARTICLE_URL, reason="font changed")

    state = controller.snapshot
    assert state.extracted_content is None
    assert state.last_rendered_url is None
    assert state.expected_synthetic_commit_url is None
