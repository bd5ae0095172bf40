"""Reader-mode load state machine.

One `ReaderModeController` drives one browser surface. Every public entry point
runs on the same asyncio event loop and mutates `LoadState` only between
suspension points, so there is no field-level locking. Parsing, extraction and
document assembly run in worker threads via `asyncio.to_thread`; their results
are applied back on the loop after the load token has been re-checked.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Coroutine
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Any

from structlog.contextvars import bind_contextvars, reset_contextvars

from reader_mode.config import ReaderSettings
from reader_mode.models.reader_events import (
    ImageUpdated,
    NavigationCommitted,
    NavigationFailed,
    NavigationFinished,
    PageMetadataUpdated,
    ReadabilityModeUnavailable,
    ReadabilityParsed,
    ReaderEvent,
)
from reader_mode.repositories.common import utc_now
from reader_mode.repositories.content_record_repository import ContentRecord
from reader_mode.services.browser_surface import BrowserSurface, FrameRef
from reader_mode.services.content_store import ContentStore
from reader_mode.services.errors import ContentRecordNotFoundError, LoadCancelledError
from reader_mode.services.readability_extractor import (
    ExtractionResult,
    ExtractionSuccess,
    ReadabilityExtractor,
)
from reader_mode.services.reader_content import ReaderFileReader, html_to_display
from reader_mode.services.reader_dates import format_publication_date, short_duration_string
from reader_mode.services.reader_document import (
    assemble_reader_document,
    derive_title,
    frame_replacement_script,
    has_readability_markers,
    parse_document,
    render_reader_document,
    strip_readability_markers,
)
from reader_mode.services.reader_urls import (
    ABOUT_BLANK,
    canonical_reader_content_url,
    is_blob_url,
    is_ebook_url,
    is_file_url,
    is_http_url,
    is_native_reader_view,
    is_reader_file_url,
    is_reader_loader_url,
    is_snippet_url,
    matches_reader_url,
)
from reader_mode.services.reconciliation import ReaderModeReconciler, apply_reader_mode_defaults
from reader_mode.services.sanitizer import sanitize
from reader_mode.telemetry import TelemetryClient

LOGGER = logging.getLogger("reader_mode.controller")

LoadCompleteCallback = Callable[[str], None]


@dataclass(frozen=True)
class ExtractedContent:
    """Reader document produced for a page, waiting to be delivered or already shown."""

    html: str
    url: str
    frame: FrameRef | None = None
    published_time: str | None = None

    @property
    def is_sub_frame(self) -> bool:
        return self.frame is not None and not self.frame.is_main


@dataclass(frozen=True)
class LoadState:
    pending_url: str | None = None
    expected_synthetic_commit_url: str | None = None
    last_rendered_url: str | None = None
    last_fallback_url: str | None = None
    is_loading: bool = False
    is_reader_mode: bool = False
    extracted_content: ExtractedContent | None = None
    load_started_at: datetime | None = None


class LoadToken:
    """Cancellation handle for the work belonging to one load."""

    def __init__(self, url: str) -> None:
        self.url = url
        self._cancel_reason: str | None = None

    @property
    def is_cancelled(self) -> bool:
        return self._cancel_reason is not None

    def cancel(self, reason: str) -> None:
        if self._cancel_reason is None:
            self._cancel_reason = reason

    def check(self) -> None:
        if self._cancel_reason is not None:
            raise LoadCancelledError(self.url, reason=self._cancel_reason)


class ReaderModeController:
    def __init__(
        self,
        *,
        store: ContentStore,
        browser: BrowserSurface,
        extractor: ReadabilityExtractor,
        reconciler: ReaderModeReconciler,
        settings: ReaderSettings,
        file_reader: ReaderFileReader | None = None,
        on_load_complete: LoadCompleteCallback | None = None,
        telemetry: TelemetryClient | None = None,
        sanitizer: Callable[[str], str] = sanitize,
    ) -> None:
        self._store = store
        self._browser = browser
        self._extractor = extractor
        self._reconciler = reconciler
        self._settings = settings
        self._file_reader = file_reader
        self._on_load_complete = on_load_complete
        self._telemetry = telemetry if telemetry is not None else TelemetryClient.disabled()
        self._sanitizer = sanitizer
        self._state = LoadState()
        self._token: LoadToken | None = None

    @property
    def snapshot(self) -> LoadState:
        return self._state

    # Load lifecycle.

    def begin_load(
        self,
        url: str,
        *,
        suppress_spinner: bool = False,
        reason: str | None = None,
    ) -> None:
        content_url = canonical_reader_content_url(url)
        state = self._state
        if state.pending_url == content_url and (suppress_spinner or state.is_loading):
            LOGGER.debug("reader load already pending url=%s", content_url)
            return

        if state.last_rendered_url is not None and state.last_rendered_url != content_url:
            self._update(last_rendered_url=None)
        elif (
            state.last_rendered_url == content_url
            and state.pending_url is None
            and state.is_reader_mode
        ):
            if self._extracted_html_for(content_url):
                LOGGER.debug("reader load skipped; already rendered url=%s", content_url)
                self._update(is_loading=False)
                return
            self._update(last_rendered_url=None)

        self._token_for(content_url)
        if self._state.pending_url == content_url:
            self._update(is_loading=True)
            return
        if self._state.last_fallback_url not in (None, content_url):
            self._update(last_fallback_url=None)
        self._update(
            pending_url=content_url,
            is_loading=not suppress_spinner,
            load_started_at=utc_now(),
        )
        LOGGER.info(
            "reader load begin url=%s reason=%s spinner=%s",
            content_url,
            reason,
            not suppress_spinner,
        )
        self._telemetry.emit_for_url("reader.load.begin", content_url, reason=reason)

    def cancel_load(self, url: str | None = None, *, reason: str | None = None) -> None:
        content_url = canonical_reader_content_url(url) if url is not None else None
        state = self._state
        if (
            content_url is not None
            and not matches_reader_url(content_url, state.pending_url)
            and self._extracted_html_for(content_url)
        ):
            LOGGER.debug("reader load cancel ignored; content already rendered url=%s", content_url)
            return

        token = self._token
        if token is not None and (
            content_url is None
            or state.pending_url is not None
            or matches_reader_url(token.url, content_url)
        ):
            token.cancel(reason or "cancelled")
            self._token = None

        if state.pending_url is None:
            self._update(is_loading=False)
            self._fire_completion(
                content_url or state.last_rendered_url or ABOUT_BLANK,
                outcome="cancelled",
            )
            return

        cancelled_url = state.pending_url
        self._update(
            pending_url=None,
            is_loading=False,
            expected_synthetic_commit_url=None,
            last_rendered_url=None,
        )
        LOGGER.info("reader load cancelled url=%s reason=%s", cancelled_url, reason)
        self._fire_completion(cancelled_url, outcome="cancelled")

    def mark_load_complete(self, url: str) -> None:
        content_url = canonical_reader_content_url(url)
        state = self._state
        if not matches_reader_url(content_url, state.pending_url):
            if matches_reader_url(content_url, state.last_rendered_url):
                self._update(is_loading=False)
                self._fire_completion(content_url, outcome="already_rendered")
                return
            LOGGER.debug(
                "stale reader load completion ignored url=%s pending=%s",
                content_url,
                state.pending_url,
            )
            if state.pending_url is None and state.is_loading:
                self._update(is_loading=False)
            return

        if not self._extracted_html_for(content_url):
            self._complete_without_extraction(content_url)
            return

        self._update(
            pending_url=None,
            is_loading=False,
            last_rendered_url=state.last_rendered_url or content_url,
        )
        self._release_token(content_url)
        self._fire_completion(content_url, outcome="rendered")

    def _complete_without_extraction(self, url: str) -> None:
        state = self._state
        if matches_reader_url(url, state.last_rendered_url):
            # Extraction state may have been dropped after rendering.
            self._update(pending_url=None, is_loading=False)
            outcome = "already_rendered"
        elif is_snippet_url(url):
            self._update(
                pending_url=None,
                is_loading=False,
                expected_synthetic_commit_url=None,
                last_fallback_url=url,
            )
            outcome = "snippet"
        elif state.expected_synthetic_commit_url is not None:
            LOGGER.debug(
                "reader load completion deferred until synthetic commit url=%s expected=%s",
                url,
                state.expected_synthetic_commit_url,
            )
            return
        else:
            self._update(pending_url=None, is_loading=False, last_fallback_url=url)
            outcome = "no_readable_content"
        self._release_token(url)
        self._fire_completion(url, outcome=outcome)

    def is_load_pending(self, url: str) -> bool:
        return matches_reader_url(url, self._state.pending_url)

    def clear_readability_cache(self, url: str, *, reason: str | None = None) -> None:
        content_url = canonical_reader_content_url(url)
        state = self._state
        extracted = state.extracted_content
        rendered_match = matches_reader_url(content_url, state.last_rendered_url)
        if not (
            rendered_match
            or matches_reader_url(content_url, state.pending_url)
            or (extracted is not None and matches_reader_url(content_url, extracted.url))
        ):
            return
        self._update(
            extracted_content=None,
            expected_synthetic_commit_url=None,
            last_rendered_url=None if rendered_match else state.last_rendered_url,
        )
        LOGGER.info("readability cache cleared url=%s reason=%s", content_url, reason)

    def consume_synthetic_commit_expectation(self, committed_url: str) -> bool:
        """Consume the echo of our own `load_html`; only an exact URL match counts."""
        expected = self._state.expected_synthetic_commit_url
        if expected is None or committed_url != expected:
            return False
        self._update(expected_synthetic_commit_url=None)
        content_url = canonical_reader_content_url(committed_url)
        if self.is_load_pending(content_url):
            self.mark_load_complete(content_url)
        return True

    # Browser notifications.

    async def handle(self, event: ReaderEvent) -> None:
        if isinstance(event, NavigationCommitted):
            await self.on_navigation_committed(event.url)
        elif isinstance(event, NavigationFinished):
            await self.on_navigation_finished(event.url)
        elif isinstance(event, NavigationFailed):
            self.on_navigation_failed(event.url)
        elif isinstance(event, ReadabilityParsed):
            await self._on_readability_parsed(event)
        elif isinstance(event, ReadabilityModeUnavailable):
            if event.frame_is_main:
                await self._on_readability_unavailable(
                    canonical_reader_content_url(event.window_url)
                )
        elif isinstance(event, ImageUpdated):
            url = canonical_reader_content_url(event.main_document_url)
            await self._run_guarded(
                url,
                self._reconciler.propagate_image_url(url, event.image_url),
                cancel_on_error=False,
            )
        elif isinstance(event, PageMetadataUpdated):
            url = canonical_reader_content_url(event.url)
            await self._run_guarded(
                url,
                self._reconciler.propagate_page_metadata(
                    url,
                    title=event.title,
                    author=event.author,
                ),
                cancel_on_error=False,
            )

    async def on_navigation_committed(self, url: str) -> None:
        content_url = canonical_reader_content_url(url)
        pending_url = self._state.pending_url
        if pending_url is not None and not matches_reader_url(content_url, pending_url):
            self.cancel_load(pending_url, reason="superseded by navigation")
        token = self._token_for(content_url)
        await self._run_guarded(content_url, self._navigation_committed(url, content_url, token))

    async def on_navigation_finished(self, url: str) -> None:
        content_url = canonical_reader_content_url(url)
        state = self._state
        if not self.is_load_pending(content_url):
            if state.pending_url is None and state.is_loading:
                self._update(is_loading=False)
            return
        if (
            is_reader_loader_url(url)
            or state.expected_synthetic_commit_url is not None
            or self._extracted_html_for(content_url)
        ):
            return
        token = self._token_for(content_url)
        await self._run_guarded(content_url, self._extract_current_page(content_url, token))

    def on_navigation_failed(self, url: str) -> None:
        content_url = canonical_reader_content_url(url)
        if self.is_load_pending(content_url):
            self.cancel_load(content_url, reason="navigation failed")
        elif self._state.pending_url is None and self._state.is_loading:
            self._update(is_loading=False)

    async def show_reader_view(self, record: ContentRecord) -> None:
        extracted = self._state.extracted_content
        url = canonical_reader_content_url(extracted.url if extracted is not None else record.url)
        token = self._token_for(url)
        await self._run_guarded(url, self._show_reader_view(record, token))

    # Flows.

    async def _navigation_committed(self, url: str, content_url: str, token: LoadToken) -> None:
        record = await self._store.load_record(url)
        token.check()
        if record is None:
            self.cancel_load(content_url, reason="no content record")
            return
        if not matches_reader_url(record.url, url):
            self.cancel_load(content_url, reason="content record url mismatch")
            return

        if self.consume_synthetic_commit_expectation(url) and not record.is_snippet_url:
            return

        if not is_ebook_url(content_url):
            if record.is_reader_mode_by_default:
                if not self._state.is_reader_mode:
                    self._update(is_reader_mode=True)
                if not self.is_load_pending(content_url):
                    self.begin_load(content_url, reason="reader mode by default")
                    token = self._token_for(content_url)
            elif self._state.is_reader_mode:
                self._update(is_reader_mode=False)
                self.cancel_load(content_url, reason="reader mode off for record")
                token = self._token_for(content_url)

        if not is_reader_loader_url(url):
            return
        if not self.is_load_pending(content_url):
            self.begin_load(content_url, reason="loader commit")
            token = self._token_for(content_url)

        html = await html_to_display(record, file_reader=self._file_reader)
        token.check()
        if not html or (
            record.rss_contains_full_content
            and not await asyncio.to_thread(_has_body_content, html)
        ):
            token.check()
            await self._recover_missing_html(record, url, content_url, token)
            return
        token.check()

        if await asyncio.to_thread(has_readability_markers, html, content_url):
            token.check()
            self._update(extracted_content=ExtractedContent(html=html, url=content_url))
            await self._show_reader_view(record, token)
            return
        token.check()

        if not _extraction_applies(record, content_url):
            await self._load_fallback(content_url, html, token, reason="extraction not applicable")
            return
        await self._extract_and_show(record, html, content_url, token, load_fallback=True)

    async def _extract_current_page(self, content_url: str, token: LoadToken) -> None:
        record = await self._store.load_record(content_url)
        token.check()
        if record is None:
            self.mark_load_complete(content_url)
            return
        html = await self._browser.read_document_html()
        token.check()
        if not html:
            self.mark_load_complete(content_url)
            return
        if await asyncio.to_thread(has_readability_markers, html, content_url):
            token.check()
            self._update(extracted_content=ExtractedContent(html=html, url=content_url))
            await self._show_reader_view(record, token)
            return
        token.check()
        await self._extract_and_show(record, html, content_url, token, load_fallback=False)

    async def _extract_and_show(
        self,
        record: ContentRecord,
        html: str,
        content_url: str,
        token: LoadToken,
        *,
        load_fallback: bool,
    ) -> None:
        min_length = (
            record.meaningful_content_min_length or self._settings.meaningful_content_min_length
        )
        # Live pages get the quick pre-check; stored content is extracted as is.
        result, document = await asyncio.to_thread(
            self._extract_document,
            html,
            content_url,
            min_length,
            not load_fallback,
        )
        token.check()
        if isinstance(result, ExtractionSuccess) and document:
            self._update(
                extracted_content=ExtractedContent(
                    html=document,
                    url=content_url,
                    published_time=result.published_time,
                )
            )
            await self._show_reader_view(record, token)
            return

        reason = result.reason if not isinstance(result, ExtractionSuccess) else "empty document"
        await self._reconciler.record_readability_result(content_url, available=False)
        token.check()
        if load_fallback:
            await self._load_fallback(content_url, html, token, reason=reason)
        else:
            LOGGER.info("reader mode unavailable url=%s reason=%s", content_url, reason)
            self.mark_load_complete(content_url)

    def _extract_document(
        self,
        html: str,
        url: str,
        min_length: int,
        require_readerable: bool,
    ) -> tuple[ExtractionResult, str | None]:
        result = self._extractor.extract(
            html,
            url,
            meaningful_content_min_length=min_length,
            require_readerable=require_readerable,
        )
        if not isinstance(result, ExtractionSuccess):
            return result, None
        return result, assemble_reader_document(result, url, sanitizer=self._sanitizer)

    async def _load_fallback(
        self,
        content_url: str,
        html: str,
        token: LoadToken,
        *,
        reason: str,
    ) -> None:
        if self._state.last_fallback_url == content_url:
            LOGGER.info("duplicate fallback load suppressed url=%s", content_url)
        else:
            original_html = await asyncio.to_thread(strip_readability_markers, html)
            token.check()
            self._update(last_fallback_url=content_url)
            LOGGER.info("loading original html url=%s reason=%s", content_url, reason)
            await self._browser.load_html(original_html, base_url=content_url)
            token.check()
        self._drop_extracted_content(content_url)
        self.mark_load_complete(content_url)

    async def _recover_missing_html(
        self,
        record: ContentRecord,
        committed_url: str,
        content_url: str,
        token: LoadToken,
    ) -> None:
        LOGGER.warning(
            "cached reader content missing key=%s url=%s",
            record.compound_key,
            content_url,
        )
        try:
            await self._reconciler.invalidate_cache(record, content_url, reason="empty cached content")
        except ContentRecordNotFoundError:
            LOGGER.warning("record vanished before invalidation key=%s", record.compound_key)
        token.check()

        token.cancel("cached content missing")
        if self._token is token:
            self._token = None
        self._update(pending_url=None, is_loading=False, expected_synthetic_commit_url=None)
        self._fire_completion(committed_url, outcome="missing_content")

        if is_http_url(content_url) and self._state.last_fallback_url != content_url:
            self._update(last_fallback_url=content_url)
            LOGGER.info("refetching original page url=%s", content_url)
            await self._browser.load_request(content_url)

    async def _show_reader_view(self, record: ContentRecord, token: LoadToken) -> None:
        extracted = self._state.extracted_content
        if extracted is None:
            LOGGER.warning("reader view requested without extracted content url=%s", record.url)
            self.cancel_load(record.url, reason="missing extracted content")
            return
        content_url = canonical_reader_content_url(extracted.url)
        publication_date_text = _publication_date_text(extracted, record)

        fallback_title = await asyncio.to_thread(_derive_title_from_html, extracted.html)
        token.check()
        primary = await self._store.write_transaction(
            record.compound_key,
            lambda current: apply_reader_mode_defaults(
                current,
                url=content_url,
                extracted_html=extracted.html,
                fallback_title=fallback_title,
            ),
        )
        token.check()
        self._update(is_reader_mode=True)

        final_html = await asyncio.to_thread(
            render_reader_document,
            extracted.html,
            content_url,
            font_size_px=self._settings.default_font_size_px,
            default_title=primary.title or None,
            image_url=primary.image_url,
            inject_header_image=primary.inject_entry_image_into_header,
            publication_date_text=publication_date_text,
            is_cache_warmer=self._settings.is_cache_warmer,
            light_theme=self._settings.light_theme,
            dark_theme=self._settings.dark_theme,
        )
        token.check()
        await self._reconciler.propagate_reader_mode_defaults(
            content_url,
            primary.compound_key,
            extracted.html,
            fallback_title,
        )
        token.check()

        current_url = self._browser.current_url
        if current_url is not None and not matches_reader_url(current_url, content_url):
            LOGGER.info(
                "reader view delivery aborted; browser moved url=%s current=%s",
                content_url,
                current_url,
            )
            self.cancel_load(content_url, reason="browser url changed")
            return

        if extracted.is_sub_frame:
            await self._browser.evaluate_script(
                frame_replacement_script(final_html),
                frame=extracted.frame,
            )
        else:
            self._update(expected_synthetic_commit_url=content_url)
            await self._browser.load_html(final_html, base_url=content_url)
        token.check()

        self._update(last_rendered_url=content_url)
        self._telemetry.emit_for_url(
            "reader.render.finish",
            content_url,
            sub_frame=extracted.is_sub_frame,
            document_size=len(final_html),
        )
        self.mark_load_complete(content_url)

    async def _on_readability_parsed(self, event: ReadabilityParsed) -> None:
        content_url = canonical_reader_content_url(event.window_url)
        if not self._is_current_page(content_url):
            LOGGER.debug("readability result for another page dropped url=%s", content_url)
            return
        if not event.content.strip():
            if event.frame_is_main:
                await self._on_readability_unavailable(content_url)
            return
        existing = self._state.extracted_content
        if (
            not event.frame_is_main
            and existing is not None
            and not existing.is_sub_frame
            and matches_reader_url(existing.url, content_url)
        ):
            LOGGER.debug("sub-frame readability result ignored url=%s", content_url)
            return
        token = self._token_for(content_url)
        await self._run_guarded(content_url, self._apply_readability_result(event, content_url, token))

    async def _apply_readability_result(
        self,
        event: ReadabilityParsed,
        content_url: str,
        token: LoadToken,
    ) -> None:
        await self._reconciler.record_readability_result(content_url, available=True)
        token.check()
        state = self._state
        if state.is_reader_mode and matches_reader_url(content_url, state.last_rendered_url):
            return

        extraction = ExtractionSuccess(
            title=event.title,
            byline=event.byline or None,
            published_time=event.published_time,
            content_html=event.content,
        )
        document = await asyncio.to_thread(
            assemble_reader_document,
            extraction,
            content_url,
            sanitizer=self._sanitizer,
        )
        token.check()
        frame = None if event.frame_is_main else FrameRef(frame_id=event.frame_id or "", is_main=False)
        self._update(
            extracted_content=ExtractedContent(
                html=document,
                url=content_url,
                frame=frame,
                published_time=event.published_time,
            )
        )

        record = await self._store.load_record(content_url)
        token.check()
        if record is not None and record.is_reader_mode_by_default:
            await self._show_reader_view(record, token)

    async def _on_readability_unavailable(self, content_url: str) -> None:
        if not self._is_current_page(content_url):
            LOGGER.debug("readability unavailable for another page dropped url=%s", content_url)
            return
        await self._run_guarded(
            content_url,
            self._reconciler.record_readability_result(content_url, available=False),
            cancel_on_error=False,
        )
        if self.is_load_pending(content_url):
            self.mark_load_complete(content_url)

    # Helpers.

    async def _run_guarded(
        self,
        url: str,
        step: Coroutine[Any, Any, Any],
        *,
        cancel_on_error: bool = True,
    ) -> None:
        context_tokens = bind_contextvars(reader_url=url)
        try:
            await step
        except LoadCancelledError as exc:
            LOGGER.debug("reader load step cancelled url=%s reason=%s", exc.url, exc.reason)
        except Exception:
            LOGGER.exception("reader load step failed url=%s", url)
            self._telemetry.emit_for_url("reader.load.error", url)
            if cancel_on_error:
                self.cancel_load(url, reason="step failed")
        finally:
            reset_contextvars(**context_tokens)

    def _token_for(self, url: str) -> LoadToken:
        token = self._token
        if token is not None and token.url == url and not token.is_cancelled:
            return token
        if token is not None:
            token.cancel(f"superseded by {url}")
        self._token = LoadToken(url)
        return self._token

    def _release_token(self, url: str) -> None:
        if self._token is not None and matches_reader_url(self._token.url, url):
            self._token = None

    def _is_current_page(self, url: str) -> bool:
        current_url = self._browser.current_url
        return current_url is None or matches_reader_url(current_url, url)

    def _extracted_html_for(self, url: str) -> str:
        extracted = self._state.extracted_content
        if extracted is None or not matches_reader_url(extracted.url, url):
            return ""
        return extracted.html

    def _drop_extracted_content(self, url: str) -> None:
        extracted = self._state.extracted_content
        if extracted is not None and matches_reader_url(extracted.url, url):
            self._update(extracted_content=None)

    def _fire_completion(self, url: str, *, outcome: str) -> None:
        started_at = self._state.load_started_at
        elapsed_seconds = (utc_now() - started_at).total_seconds() if started_at else 0.0
        LOGGER.info(
            "reader load finished url=%s outcome=%s elapsed=%s",
            url,
            outcome,
            short_duration_string(elapsed_seconds) or "0s",
        )
        self._telemetry.emit_for_url(
            "reader.load.finish",
            url,
            outcome=outcome,
            duration_ms=int(elapsed_seconds * 1000),
        )
        if self._on_load_complete is not None:
            self._on_load_complete(url)

    def _update(self, **changes: Any) -> None:
        self._state = replace(self._state, **changes)


def _extraction_applies(record: ContentRecord, url: str) -> bool:
    if is_ebook_url(url) or is_native_reader_view(url) or is_blob_url(url):
        return False
    return (
        record.rss_contains_full_content
        or record.is_from_clipboard
        or is_file_url(url)
        or is_reader_file_url(url)
        or is_snippet_url(url)
    )


def _has_body_content(html: str) -> bool:
    body = parse_document(html).body
    if body is None:
        return False
    return bool(body.get_text(strip=True)) or body.find("img") is not None


def _derive_title_from_html(html: str) -> str | None:
    return derive_title(parse_document(html))


def _publication_date_text(extracted: ExtractedContent, record: ContentRecord) -> str | None:
    if extracted.published_time:
        return format_publication_date(extracted.published_time)
    if record.display_publication_date and record.publication_date is not None:
        return format_publication_date(record.publication_date)
    return None
